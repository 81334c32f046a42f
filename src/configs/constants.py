"""
Numerical constants for the phototransduction model
"""

# State clamps applied after every integration stage
MIN_ACTIVITY = 0.0  # R* and E* floor (activity units)
CGMP_BOUNDS = {
    "min": 0.01,  # μM
    "max": 20.0,  # μM
}
CALCIUM_MAX = 5.0  # μM, upper clamp; the lower clamp is the cell's c0

# Integration step
DEFAULT_TIMESTEP = 0.001  # s, forward Euler step
STABILITY_WARNING_RATIO = 0.2  # dt / fastest time constant above which a warning is logged

# Driver pacing
DEFAULT_TICK_INTERVAL = 0.020  # s, outer (wall-clock) tick
DEFAULT_SUBSTEPS = 20  # integrator calls per cell per tick
TIMING_TOLERANCE = 1e-12  # s, allowed mismatch between substeps * dt and tick interval

# Steady-state search
STEADY_STATE_DURATION = 5.0  # s of simulated time to settle a constant intensity
HALF_SATURATION_BOUNDS = (1e-1, 1e8)  # R*/s, bisection bracket
HALF_SATURATION_ITERATIONS = 40
HALF_SATURATION_TOLERANCE = 1e-3  # relative width of the log-intensity bracket
