"""Tests for the simulation driver and steady-state analysis."""

import math

import pandas as pd
import pytest

from src.environment.stimulus import INTENSITY_LABEL, TIME_LABEL, generate_protocol
from src.processes.physiology.photoreceptor import (
    PhotoreceptorState,
    cone_constants,
    rod_constants,
)
from src.processes.physiology.phototransduction import CascadeIntegrator
from src.system.retina import (
    SimulationDriver,
    TickResult,
    find_half_saturation,
    intensity_response_curve,
    sanitize_intensity,
    settle,
    simulate_phototransduction,
    steady_state_current,
)


class TestDriverTiming:
    def test_defaults_track_wall_clock(self):
        driver = SimulationDriver()
        assert driver.substeps * driver.dt == pytest.approx(driver.tick_interval)

    def test_mismatched_timing_rejected(self):
        with pytest.raises(ValueError, match="tick_interval"):
            SimulationDriver(dt=0.001, substeps=10, tick_interval=0.02)

    @pytest.mark.parametrize("substeps", [0, -1, 2.5])
    def test_invalid_substeps(self, substeps):
        with pytest.raises(ValueError):
            SimulationDriver(substeps=substeps, tick_interval=0.02)

    def test_time_advances_per_tick(self):
        driver = SimulationDriver()
        driver.tick(0.0)
        result = driver.tick(0.0)
        assert driver.ticks == 2
        assert result.time == pytest.approx(0.04)


class TestZeroOrderHold:
    def test_tick_equals_substeps_of_held_intensity(self):
        driver = SimulationDriver()
        driver.tick(750.0)

        for constants, state in ((rod_constants(), driver.rod_state), (cone_constants(), driver.cone_state)):
            reference = PhotoreceptorState.dark_adapted(constants)
            integrator = CascadeIntegrator(constants, driver.dt)
            for _ in range(driver.substeps):
                integrator.step(reference, 750.0)
            assert state.current == reference.current
            assert state.cgmp == reference.cgmp

    def test_cells_are_independent(self):
        shared = SimulationDriver()
        rod_only = PhotoreceptorState.dark_adapted(rod_constants())
        integrator = CascadeIntegrator(rod_constants(), 0.001)
        for intensity in (10.0, 1e4, 0.0, 500.0):
            shared.tick(intensity)
            integrator.advance(rod_only, intensity, 20)
        assert shared.rod_state.current == rod_only.current

    def test_reset(self):
        driver = SimulationDriver()
        driver.tick(1e4)
        driver.reset()
        assert driver.ticks == 0
        assert driver.rod_state.current == -driver.rod_state.constants.j_dark
        assert driver.cone_state.cgmp == driver.cone_state.constants.g_dark

    @pytest.mark.parametrize("bad", [-5.0, math.nan, math.inf, None, "bright"])
    def test_invalid_intensity_is_darkness(self, bad):
        assert sanitize_intensity(bad) == 0.0
        driver = SimulationDriver()
        result = driver.tick(bad)
        assert result.intensity == 0.0
        assert result.rod_current == pytest.approx(-driver.rod_state.constants.j_dark, abs=1e-9)


class TestRun:
    def test_trace_columns_and_length(self):
        stimulus = generate_protocol("step", duration=1.0, intensity=600.0, onset=0.5)
        trace = SimulationDriver().run(stimulus)
        assert len(trace) == len(stimulus) == 50
        for column in (
            TIME_LABEL,
            INTENSITY_LABEL,
            "Rod J (pA)",
            "Cone J (pA)",
            "Combined Response",
            "Rod R*",
            "Cone Ca (uM)",
            "LED Duty",
        ):
            assert column in trace.columns
        assert trace[TIME_LABEL].iloc[-1] == pytest.approx(1.0)

    def test_step_response(self):
        stimulus = generate_protocol("step", duration=2.0, intensity=600.0, onset=0.5)
        trace = SimulationDriver().run(stimulus, record_state=False)
        before = trace[trace[TIME_LABEL] <= 0.5]
        after = trace.iloc[-1]
        assert before["Rod Response"].max() == pytest.approx(0.0, abs=1e-9)
        assert after["Rod Response"] > 0.3
        assert after["Cone Response"] < 0.05
        assert "Rod R*" not in trace.columns

    def test_accepts_plain_list(self):
        trace = SimulationDriver().run([0.0, 100.0, 100.0])
        assert list(trace[INTENSITY_LABEL]) == [0.0, 100.0, 100.0]

    def test_responses_within_unit_interval(self):
        stimulus = generate_protocol("staircase", duration=6.0, start=1.0, factor=10.0, steps=6, step_duration=1.0)
        trace = SimulationDriver().run(stimulus, record_state=False)
        for column in ("Rod Response", "Cone Response", "Combined Response"):
            assert trace[column].between(0.0, 1.0).all()
        assert trace["LED Duty"].between(0, 255).all()


class TestRealtime:
    def test_ticks_only_after_interval(self):
        times = iter([0.0, 0.01, 0.015, 0.03, 0.04, 0.06])
        samples = []
        results = []

        def source():
            samples.append(1)
            return 100.0

        driver = SimulationDriver()
        count = driver.run_realtime(source, sink=results.append, max_ticks=2, clock=lambda: next(times))

        assert count == 2
        assert len(samples) == 2
        assert all(isinstance(r, TickResult) for r in results)
        assert [r.time for r in results] == pytest.approx([0.02, 0.04])

    def test_without_sink(self):
        clock = iter(i * 0.05 for i in range(100))
        driver = SimulationDriver()
        assert driver.run_realtime(lambda: 0.0, max_ticks=3, clock=lambda: next(clock)) == 3
        assert driver.ticks == 3

    def test_default_wall_clock(self):
        results = []
        driver = SimulationDriver()
        assert driver.run_realtime(lambda: 50.0, sink=results.append, max_ticks=1) == 1
        assert results[0].time == pytest.approx(0.02)
        assert driver.simulated_time == pytest.approx(0.02)
        driver.reset()
        assert driver.simulated_time == 0.0


class TestSteadyState:
    def test_dark_current(self):
        rod = rod_constants()
        assert steady_state_current(rod, 0.0, duration=1.0) == pytest.approx(-rod.j_dark, abs=1e-3)

    def test_response_curve_monotonic(self):
        curve = intensity_response_curve(rod_constants(), [1.0, 10.0, 100.0, 1000.0, 1e4], duration=3.0)
        assert list(curve["Cell"].unique()) == ["rod"]
        assert curve["Suppression"].is_monotonic_increasing
        assert curve["Suppression"].iloc[0] < 0.05
        assert curve["Suppression"].iloc[-1] > 0.9

    def test_settle_matches_curve(self):
        constants = cone_constants()
        state = settle(constants, 2e4, duration=1.0)
        row = intensity_response_curve(constants, [2e4], duration=1.0).iloc[0]
        assert row["J (pA)"] == state.current
        assert row["Suppression"] == state.suppression
        assert steady_state_current(constants, 2e4, duration=1.0) == state.current

    def test_half_saturation_ordering(self):
        rod_half = find_half_saturation(rod_constants())
        cone_half = find_half_saturation(cone_constants())
        assert 500.0 <= rod_half <= 1000.0
        assert 50_000.0 <= cone_half <= 100_000.0
        assert 2.0 <= math.log10(cone_half / rod_half) <= 3.0

    def test_half_saturation_not_bracketed(self):
        with pytest.raises(ValueError):
            find_half_saturation(rod_constants(), bounds=(1e4, 1e6))


class TestSimulate:
    def test_generated_protocol(self):
        result = simulate_phototransduction(protocol="flash", duration=1.0)
        assert set(result) == {"trace", "cell_summary"}
        summary = result["cell_summary"].set_index("Metric")
        assert summary.loc["Dark Current (pA)", "Rod"] == -rod_constants().j_dark
        assert summary.loc["Peak Response", "Rod"] > 0.0

    def test_stimulus_file_and_saving(self, tmp_path):
        stimulus = tmp_path / "stimulus.csv"
        pd.DataFrame({"Time": [0.0, 0.2], "Intensity": [0.0, 1000.0]}).to_csv(stimulus, index=False)
        result = simulate_phototransduction(
            stimulus_file=str(stimulus),
            duration=0.5,
            storage_format="csv",
            output_dir=str(tmp_path / "out"),
        )
        assert len(result["trace"]) == 25
        assert result["trace"][INTENSITY_LABEL].iloc[-1] == 1000.0
        assert (tmp_path / "out").is_dir()
        assert "metadata" in result["files"]

    def test_response_curve_option(self):
        result = simulate_phototransduction(protocol="dark", duration=0.1, response_curve=True)
        assert set(result["response_curve"]["Cell"]) == {"rod", "cone"}
        summary = result["cell_summary"].set_index("Metric")
        assert summary.loc["Half Saturation (R*/s)", "Rod"] < summary.loc["Half Saturation (R*/s)", "Cone"]
