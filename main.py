"""
Main script for running rod and cone phototransduction simulation
"""

import argparse
import logging
import sys

import pandas as pd

from src.configs.params import DEFAULT_SETTINGS, STIMULUS_PROTOCOLS, STORAGE_FORMATS
from src.environment.adapter import IOAdapter
from src.processes.physiology.photoreceptor import cone_constants, rod_constants
from src.system.retina import (
    SimulationDriver,
    find_half_saturation,
    intensity_response_curve,
    simulate_phototransduction,
)
from src.utils.function import log_intensity_grid

logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(name)s:%(message)s")
logger = logging.getLogger("main")


def create_parser():
    """
    Create argument parser for command line options

    Returns:
        ArgumentParser: Configured argument parser
    """
    parser = argparse.ArgumentParser(description="Rod and Cone Phototransduction Simulation")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log per-tick detail")

    # Shared timing options
    timing = argparse.ArgumentParser(add_help=False)
    timing.add_argument("--dt", type=float, default=DEFAULT_SETTINGS["dt"], help="Integration step (s)")
    timing.add_argument(
        "--substeps",
        type=int,
        default=DEFAULT_SETTINGS["substeps"],
        help="Integrator calls per cell per tick",
    )
    timing.add_argument(
        "--tick-interval",
        type=float,
        default=DEFAULT_SETTINGS["tick_interval"],
        help="Outer tick (s); must equal substeps * dt",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # Batch simulation
    run = subparsers.add_parser("run", parents=[timing], help="Simulate a stimulus and save results")
    run.add_argument("--stimulus-file", type=str, help="Path to intensity trace (.xlsx or .csv)")
    run.add_argument("--sheet-name", type=str, default=DEFAULT_SETTINGS["sheet_name"])
    run.add_argument("--time-column", type=str, default=DEFAULT_SETTINGS["time_column"])
    run.add_argument("--intensity-column", type=str, default=DEFAULT_SETTINGS["intensity_column"])
    run.add_argument(
        "--protocol",
        type=str,
        choices=list(STIMULUS_PROTOCOLS.keys()),
        default=DEFAULT_SETTINGS["protocol"],
        help="Generated protocol when no stimulus file is given",
    )
    run.add_argument("--intensity", type=float, help="Step or flash intensity (R*/s)")
    run.add_argument("--onset", type=float, help="Step or flash onset (s)")
    run.add_argument("--duration", type=float, default=DEFAULT_SETTINGS["duration"], help="Simulated seconds")
    run.add_argument("--response-curve", action="store_true", help="Also compute steady-state curves")
    run.add_argument(
        "--storage-format",
        type=str,
        choices=list(STORAGE_FORMATS.keys()),
        default=DEFAULT_SETTINGS["storage_format"],
        help="Format for storing results",
    )
    run.add_argument("--output-dir", type=str, default=DEFAULT_SETTINGS["output_dir"])
    run.add_argument("--no-trace", action="store_true", help="Do not save the per-tick trace")
    run.add_argument("--no-summary", action="store_true", help="Do not save summary tables")
    run.add_argument("--compress", action="store_true", help="Compress output files")

    # Real-time loop
    realtime = subparsers.add_parser(
        "realtime", parents=[timing], help="Pace the simulation against the wall clock"
    )
    source = realtime.add_mutually_exclusive_group()
    source.add_argument("--normalized", type=float, default=0.5, help="Slider position in [0, 1]")
    source.add_argument("--adc", type=float, help="Potentiometer reading (0 ... adc max)")
    realtime.add_argument("--ticks", type=int, help="Stop after this many ticks (default: run forever)")

    # Intensity-response curve
    curve = subparsers.add_parser("curve", parents=[timing], help="Steady-state intensity-response curves")
    curve.add_argument("--start", type=float, default=0.1, help="Lowest intensity (R*/s)")
    curve.add_argument("--stop", type=float, default=1e7, help="Highest intensity (R*/s)")
    curve.add_argument("--points-per-decade", type=int, default=2)

    return parser


def run_batch(args):
    """Run a batch simulation and report where results were saved."""
    protocol_options = {}
    if args.intensity is not None:
        protocol_options["intensity"] = args.intensity
    if args.onset is not None:
        protocol_options["onset"] = args.onset

    print("Running simulation with:")
    if args.stimulus_file:
        print(f"  - Stimulus file: {args.stimulus_file} (Sheet: {args.sheet_name})")
    else:
        print(f"  - Protocol: {args.protocol} {protocol_options or ''}")
    print(f"  - Duration: {args.duration} s")
    print(f"  - Timing: {args.substeps} x {args.dt} s per {args.tick_interval} s tick")
    print(f"  - Storage format: {args.storage_format}")
    print(f"  - Output directory: {args.output_dir}")

    result = simulate_phototransduction(
        stimulus_file=args.stimulus_file,
        sheet_name=args.sheet_name,
        time_column=args.time_column,
        intensity_column=args.intensity_column,
        protocol=args.protocol,
        protocol_options=protocol_options,
        duration=args.duration,
        dt=args.dt,
        substeps=args.substeps,
        tick_interval=args.tick_interval,
        response_curve=args.response_curve,
        storage_format=args.storage_format,
        output_dir=args.output_dir,
        save_trace=not args.no_trace,
        create_summary=not args.no_summary,
        compress=args.compress,
    )

    print(result["cell_summary"].to_string(index=False))
    for category, path in result.get("files", {}).items():
        print(f"  - {category}: {path}")
    return result


def run_realtime(args):
    """Run the wall-clock paced loop, printing one log line per tick."""
    adapter = IOAdapter()
    if args.adc is not None:
        intensity = adapter.intensity_from_adc(args.adc)
    else:
        intensity = adapter.intensity_from_normalized(args.normalized)

    driver = SimulationDriver(
        dt=args.dt, substeps=args.substeps, tick_interval=args.tick_interval, adapter=adapter
    )
    print("t,I,J_rod,J_cone,combined")
    try:
        return driver.run_realtime(
            lambda: intensity,
            sink=lambda result: print(adapter.format_log_line(result), flush=True),
            max_ticks=args.ticks,
        )
    except KeyboardInterrupt:
        logger.info(f"Stopped after {driver.ticks} ticks")
        return driver.ticks


def run_curve(args):
    """Print steady-state curves and half-saturating intensities."""
    intensities = log_intensity_grid(args.start, args.stop, args.points_per_decade)
    tables = []
    for constants in (rod_constants(), cone_constants()):
        tables.append(intensity_response_curve(constants, intensities, dt=args.dt))
        half = find_half_saturation(constants, dt=args.dt)
        print(f"{constants.name}: half saturation at {half:.1f} R*/s")
    table = pd.concat(tables, ignore_index=True)
    print(table.to_string(index=False))
    return table


def main(argv=None):
    """Main function to run the program"""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        if args.command == "run":
            run_batch(args)
        elif args.command == "realtime":
            run_realtime(args)
        else:
            run_curve(args)
    except (ValueError, FileNotFoundError) as e:
        logger.error(str(e))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
