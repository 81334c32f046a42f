"""
Retina system module driving rod and cone phototransduction
"""

import logging
import math
from time import perf_counter
from dataclasses import dataclass

import numpy as np
import pandas as pd

from src.configs.constants import (
    DEFAULT_SUBSTEPS,
    DEFAULT_TICK_INTERVAL,
    DEFAULT_TIMESTEP,
    HALF_SATURATION_BOUNDS,
    HALF_SATURATION_ITERATIONS,
    HALF_SATURATION_TOLERANCE,
    STEADY_STATE_DURATION,
    TIMING_TOLERANCE,
)
from src.configs.params import DEFAULT_SETTINGS
from src.environment.adapter import IOAdapter
from src.environment.stimulus import (
    INTENSITY_LABEL,
    TIME_LABEL,
    StimulusInitializer,
    generate_protocol,
)
from src.processes.physiology.photoreceptor import (
    PhotoreceptorState,
    cone_constants,
    rod_constants,
)
from src.processes.physiology.phototransduction import CascadeIntegrator
from src.utils.storage import save_simulation_results

logger = logging.getLogger(__name__)


@dataclass
class TickResult:
    """Outputs of one outer tick; time is the simulated time at the end of the tick."""

    time: float
    intensity: float
    rod_current: float
    cone_current: float
    rod_response: float
    cone_response: float
    combined: float


def sanitize_intensity(intensity) -> float:
    """Replace non-finite or negative intensities with darkness."""
    try:
        value = float(intensity)
    except (TypeError, ValueError):
        logger.warning(f"Non-numeric intensity {intensity!r}, using 0")
        return 0.0
    if not math.isfinite(value):
        logger.warning(f"Non-finite intensity {value}, using 0")
        return 0.0
    return max(0.0, value)


class SimulationDriver:
    """
    Advance one rod and one cone under a shared, sample-and-hold intensity

    Each outer tick holds a single intensity sample across `substeps`
    integrator steps per cell, so `substeps * dt` simulated seconds pass per
    tick. The two cells never share mutable state.
    """

    def __init__(
        self,
        rod=None,
        cone=None,
        dt=DEFAULT_TIMESTEP,
        substeps=DEFAULT_SUBSTEPS,
        tick_interval=DEFAULT_TICK_INTERVAL,
        adapter=None,
    ):
        """
        Initialize the SimulationDriver

        Args:
            rod (PhysiologicalConstants): Rod constants, defaults to rod_constants()
            cone (PhysiologicalConstants): Cone constants, defaults to cone_constants()
            dt (float): Integration step (s)
            substeps (int): Integrator calls per cell per tick
            tick_interval (float): Outer tick (s); must equal substeps * dt
            adapter (IOAdapter): Output mapping, defaults to IOAdapter()

        Raises:
            ValueError: If substeps is not positive or the timing does not add up
        """
        if int(substeps) != substeps or substeps < 1:
            logger.error(f"Invalid substep count: {substeps}")
            raise ValueError(f"substeps must be a positive integer, got {substeps}")
        if abs(substeps * dt - tick_interval) > TIMING_TOLERANCE:
            logger.error(
                f"substeps * dt = {substeps * dt} s does not match tick interval {tick_interval} s"
            )
            raise ValueError(
                "substeps * dt must equal tick_interval for simulated time to track wall-clock time"
            )

        self.dt = dt
        self.substeps = int(substeps)
        self.tick_interval = tick_interval
        self.adapter = adapter or IOAdapter()

        rod = rod or rod_constants()
        cone = cone or cone_constants()
        self.rod_state = PhotoreceptorState.dark_adapted(rod)
        self.cone_state = PhotoreceptorState.dark_adapted(cone)
        self.rod_integrator = CascadeIntegrator(rod, dt)
        self.cone_integrator = CascadeIntegrator(cone, dt)
        self.ticks = 0

    @property
    def simulated_time(self) -> float:
        """Simulated seconds since the last reset."""
        return self.ticks * self.tick_interval

    def reset(self):
        """Return both cells to darkness and restart the clock."""
        self.rod_state.reset()
        self.cone_state.reset()
        self.ticks = 0

    def tick(self, intensity) -> TickResult:
        """
        Advance both cells by one outer tick

        Args:
            intensity (float): Intensity sample (R*/s), held for the whole tick

        Returns:
            TickResult: Currents and display signals at the end of the tick
        """
        intensity = sanitize_intensity(intensity)

        self.rod_integrator.advance(self.rod_state, intensity, self.substeps)
        self.cone_integrator.advance(self.cone_state, intensity, self.substeps)
        self.ticks += 1

        rod_j_dark = self.rod_state.constants.j_dark
        cone_j_dark = self.cone_state.constants.j_dark
        result = TickResult(
            time=self.simulated_time,
            intensity=intensity,
            rod_current=self.rod_state.current,
            cone_current=self.cone_state.current,
            rod_response=self.adapter.normalized_response(self.rod_state.current, rod_j_dark),
            cone_response=self.adapter.normalized_response(self.cone_state.current, cone_j_dark),
            combined=self.adapter.combined_response(
                intensity,
                self.rod_state.current,
                rod_j_dark,
                self.cone_state.current,
                cone_j_dark,
            ),
        )
        logger.debug(f"Tick {self.ticks}: {result}")
        return result

    def _record(self, result, record_state):
        row = {
            TIME_LABEL: result.time,
            INTENSITY_LABEL: result.intensity,
            "Rod J (pA)": result.rod_current,
            "Cone J (pA)": result.cone_current,
            "Rod Response": result.rod_response,
            "Cone Response": result.cone_response,
            "Combined Response": result.combined,
            "Cone Weight": self.adapter.blend_weights(result.intensity)[1],
            "LED Duty": self.adapter.led_duty(result.combined),
        }
        if record_state:
            for cell, state in (("Rod", self.rod_state), ("Cone", self.cone_state)):
                for key, value in state.as_dict().items():
                    if key != "J (pA)":
                        row[f"{cell} {key}"] = value
        return row

    def run(self, intensities, record_state=True):
        """
        Drive a sequence of per-tick intensities

        Args:
            intensities (pandas.Series or iterable): One intensity per tick
            record_state (bool): Whether to include R*, E*, cGMP and Ca columns

        Returns:
            pandas.DataFrame: One row per tick
        """
        values = intensities.to_numpy() if isinstance(intensities, pd.Series) else intensities
        rows = [self._record(self.tick(value), record_state) for value in values]
        logger.info(
            f"Ran {len(rows)} ticks ({len(rows) * self.tick_interval:.3f} s simulated); "
            f"rod J={self.rod_state.current:.3f} pA, cone J={self.cone_state.current:.3f} pA"
        )
        return pd.DataFrame(rows)

    def run_realtime(self, source, sink=None, max_ticks=None, clock=perf_counter):
        """
        Pace ticks against a wall clock

        Busy-waits on `clock` and runs one tick whenever a full tick interval
        has elapsed since the previous one. Runs until the process is stopped
        unless max_ticks is given.

        Args:
            source (callable): Returns the current intensity sample (R*/s)
            sink (callable): Receives each TickResult
            max_ticks (int): Stop after this many ticks
            clock (callable): Monotonic time in seconds

        Returns:
            int: Number of ticks run
        """
        logger.info(
            f"Starting real-time loop: {self.substeps} x {self.dt} s per {self.tick_interval} s tick"
        )
        count = 0
        last_tick = clock()
        while max_ticks is None or count < max_ticks:
            now = clock()
            if now - last_tick < self.tick_interval:
                continue
            last_tick = now
            result = self.tick(source())
            if sink is not None:
                sink(result)
            count += 1
        return count


# --- Steady-state analysis ---
def settle(constants, intensity, duration=STEADY_STATE_DURATION, dt=DEFAULT_TIMESTEP):
    """
    Hold a constant intensity from the dark-adapted state

    Args:
        constants (PhysiologicalConstants): Cell constants
        intensity (float): Constant intensity (R*/s)
        duration (float): Simulated seconds to settle
        dt (float): Integration step (s)

    Returns:
        PhotoreceptorState: State at the end of the interval
    """
    state = PhotoreceptorState.dark_adapted(constants)
    CascadeIntegrator(constants, dt).advance(state, intensity, int(round(duration / dt)))
    return state


def steady_state_current(constants, intensity, duration=STEADY_STATE_DURATION, dt=DEFAULT_TIMESTEP):
    """Current (pA) after holding a constant intensity from darkness."""
    return settle(constants, intensity, duration, dt).current


def intensity_response_curve(constants, intensities, duration=STEADY_STATE_DURATION, dt=DEFAULT_TIMESTEP):
    """
    Steady-state current across a set of intensities

    Returns:
        pandas.DataFrame: Intensity, current and suppression per intensity
    """
    rows = []
    for intensity in intensities:
        state = settle(constants, intensity, duration, dt)
        rows.append(
            {
                "Cell": constants.name,
                INTENSITY_LABEL: float(intensity),
                "J (pA)": state.current,
                "Suppression": state.suppression,
            }
        )
    return pd.DataFrame(rows)


def find_half_saturation(
    constants,
    bounds=HALF_SATURATION_BOUNDS,
    duration=STEADY_STATE_DURATION,
    dt=DEFAULT_TIMESTEP,
    tolerance=HALF_SATURATION_TOLERANCE,
    max_iterations=HALF_SATURATION_ITERATIONS,
):
    """
    Intensity at which the steady-state current is half suppressed

    Bisects on log10 intensity; steady-state suppression rises
    monotonically with intensity.

    Args:
        constants (PhysiologicalConstants): Cell constants
        bounds (tuple): (low, high) intensity bracket (R*/s)
        duration (float): Simulated seconds to settle each intensity
        dt (float): Integration step (s)
        tolerance (float): Bracket width in decades at which to stop
        max_iterations (int): Bisection limit

    Returns:
        float: Half-saturating intensity (R*/s)

    Raises:
        ValueError: If the bracket does not contain half suppression
    """

    def suppression(log_intensity):
        return settle(constants, 10.0**log_intensity, duration, dt).suppression

    low, high = np.log10(bounds[0]), np.log10(bounds[1])
    if suppression(low) >= 0.5 or suppression(high) < 0.5:
        logger.error(f"{constants.name}: half saturation not bracketed by {bounds}")
        raise ValueError(f"Half saturation of {constants.name} is outside {bounds}")

    for _ in range(max_iterations):
        if high - low < tolerance:
            break
        mid = 0.5 * (low + high)
        if suppression(mid) < 0.5:
            low = mid
        else:
            high = mid

    half = float(10.0 ** (0.5 * (low + high)))
    logger.info(f"{constants.name}: half saturation at {half:.1f} R*/s")
    return half


def summarize_cells(trace, driver, half_saturation=None):
    """
    Build the per-cell summary table

    Args:
        trace (pandas.DataFrame): Output of SimulationDriver.run()
        driver (SimulationDriver): Driver that produced the trace
        half_saturation (dict): Optional {cell: intensity}

    Returns:
        pandas.DataFrame: Metric / Rod / Cone table
    """
    columns = {}
    for cell, state in (("Rod", driver.rod_state), ("Cone", driver.cone_state)):
        has_trace = not trace.empty
        columns[cell] = [
            -state.constants.j_dark,
            state.current,
            trace[f"{cell} J (pA)"].max() if has_trace else np.nan,
            trace[f"{cell} Response"].max() if has_trace else np.nan,
            state.cgmp,
            state.calcium,
        ]
        if half_saturation:
            columns[cell].append(half_saturation.get(cell.lower(), np.nan))

    metrics = [
        "Dark Current (pA)",
        "Final Current (pA)",
        "Peak Current (pA)",
        "Peak Response",
        "Final cGMP (uM)",
        "Final Ca (uM)",
    ]
    if half_saturation:
        metrics.append("Half Saturation (R*/s)")
    return pd.DataFrame({"Metric": metrics, **columns})


def simulate_phototransduction(
    stimulus_file=None,
    sheet_name=DEFAULT_SETTINGS["sheet_name"],
    time_column=DEFAULT_SETTINGS["time_column"],
    intensity_column=DEFAULT_SETTINGS["intensity_column"],
    protocol=DEFAULT_SETTINGS["protocol"],
    protocol_options=None,
    duration=DEFAULT_SETTINGS["duration"],
    dt=DEFAULT_SETTINGS["dt"],
    substeps=DEFAULT_SETTINGS["substeps"],
    tick_interval=DEFAULT_SETTINGS["tick_interval"],
    record_state=DEFAULT_SETTINGS["record_state"],
    rod=None,
    cone=None,
    response_curve=False,
    storage_format=DEFAULT_SETTINGS["storage_format"],
    output_dir=None,
    save_trace=DEFAULT_SETTINGS["save_trace"],
    create_summary=DEFAULT_SETTINGS["create_summary"],
    compress=DEFAULT_SETTINGS["compress_output"],
):
    """
    Simulate rod and cone responses to a stimulus

    Args:
        stimulus_file (str): Path to an intensity trace; a generated protocol is used when None
        sheet_name (str): Sheet name in an excel stimulus file
        time_column (str): Stimulus time column
        intensity_column (str): Stimulus intensity column
        protocol (str): Generated protocol name
        protocol_options (dict): Overrides for the protocol defaults
        duration (float): Simulated seconds (generated protocols, or truncation of file stimuli)
        dt (float): Integration step (s)
        substeps (int): Integrator calls per cell per tick
        tick_interval (float): Outer tick (s)
        record_state (bool): Whether to record R*, E*, cGMP and Ca
        rod (PhysiologicalConstants): Rod constants override
        cone (PhysiologicalConstants): Cone constants override
        response_curve (bool): Whether to compute steady-state curves and half saturation
        storage_format (str): 'excel', 'csv' or 'hdf5'
        output_dir (str): Directory to save results; nothing is saved when None
        save_trace (bool): Whether to save the trace
        create_summary (bool): Whether to save summary tables
        compress (bool): Whether to zip output files

    Returns:
        dict: DataFrames 'trace', 'cell_summary' and, if requested, 'response_curve',
              plus 'files' with saved paths when output_dir is given
    """
    driver = SimulationDriver(rod=rod, cone=cone, dt=dt, substeps=substeps, tick_interval=tick_interval)

    if stimulus_file:
        stimulus = StimulusInitializer(
            stimulus_file,
            sheet_name=sheet_name,
            tick_interval=tick_interval,
            time_column=time_column,
            intensity_column=intensity_column,
            duration=duration,
        ).initialize()
    else:
        stimulus = generate_protocol(protocol, duration, tick_interval, **(protocol_options or {}))

    logger.info(
        f"Simulating {len(stimulus)} ticks from "
        f"{stimulus_file or f'{protocol} protocol'} (dt={dt} s, substeps={substeps})"
    )
    trace = driver.run(stimulus, record_state=record_state)

    result = {"trace": trace}
    half_saturation = None
    if response_curve:
        curves = []
        half_saturation = {}
        for constants in (driver.rod_state.constants, driver.cone_state.constants):
            intensities = np.logspace(-1, 7, num=33)
            curves.append(intensity_response_curve(constants, intensities, dt=dt))
            half_saturation[constants.name] = find_half_saturation(constants, dt=dt)
        result["response_curve"] = pd.concat(curves, ignore_index=True)

    result["cell_summary"] = summarize_cells(trace, driver, half_saturation)

    if output_dir:
        result["files"] = save_simulation_results(
            result,
            output_dir=output_dir,
            storage_format=storage_format,
            save_trace=save_trace,
            create_summary=create_summary,
            compress_output=compress,
            simulation_params={
                "stimulus_file": stimulus_file,
                "protocol": None if stimulus_file else protocol,
                "protocol_options": protocol_options or {},
                "duration": duration,
                "dt": dt,
                "substeps": substeps,
                "tick_interval": tick_interval,
                "rod": driver.rod_state.constants.as_dict(),
                "cone": driver.cone_state.constants.as_dict(),
            },
        )

    return result
