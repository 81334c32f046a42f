"""
Phototransduction cascade integration module for rod and cone model
"""

import logging
import math

from src.configs.constants import (
    CALCIUM_MAX,
    CGMP_BOUNDS,
    DEFAULT_TIMESTEP,
    MIN_ACTIVITY,
    STABILITY_WARNING_RATIO,
)

logger = logging.getLogger(__name__)


class CascadeIntegrator:
    """
    Fixed-step forward Euler integrator for the five-stage cascade

    Stages run in a fixed order (R* -> E* -> cGMP -> Ca -> J) and each stage
    reads the values already updated by the stages before it in the same
    step. cGMP synthesis is the exception: it uses the Ca from the start of
    the step, since Ca is only updated afterwards.
    """

    def __init__(self, constants, dt=DEFAULT_TIMESTEP):
        """
        Initialize the CascadeIntegrator

        Args:
            constants (PhysiologicalConstants): Constants of the integrated cell
            dt (float): Integration step (s)

        Raises:
            ValueError: If dt is not a positive finite number
        """
        if not math.isfinite(dt) or dt <= 0:
            logger.error(f"Invalid integration step: {dt}")
            raise ValueError(f"dt must be a positive finite number, got {dt}")

        self.constants = constants
        self.dt = dt

        ratio = self.stability_ratio()
        if ratio > STABILITY_WARNING_RATIO:
            logger.warning(
                f"{constants.name}: dt={dt} s is {ratio:.2f} of the fastest time constant; "
                "forward Euler may be inaccurate or diverge."
            )

    def stability_ratio(self) -> float:
        """Return dt divided by the fastest time constant of the cell."""
        return self.dt / self.constants.fastest_time_constant

    def step(self, state, intensity: float) -> None:
        """
        Advance the state by exactly one dt

        Args:
            state (PhotoreceptorState): State updated in place
            intensity (float): Light intensity (R*/s); the caller guarantees I >= 0
        """
        c = self.constants
        dt = self.dt

        # 1. Pigment activation and decay
        r_star = state.r_star + (intensity - state.r_star / c.tau_r) * dt
        r_star = max(MIN_ACTIVITY, r_star)

        # 2. PDE activation and decay
        e_star = state.e_star + (c.gain * r_star - state.e_star / c.tau_e) * dt
        e_star = max(MIN_ACTIVITY, e_star)

        # 3. cGMP turnover, synthesis inhibited by the previous Ca
        alpha = c.alpha_max / (1.0 + (state.calcium / c.k_c) ** c.m)
        beta = c.beta_dark + c.beta_sub * e_star
        cgmp = state.cgmp + (alpha - beta * state.cgmp) * dt
        cgmp = min(CGMP_BOUNDS["max"], max(CGMP_BOUNDS["min"], cgmp))

        # 4. Ca turnover; open fraction may exceed 1 when cgmp > g_dark
        channel_open = (cgmp / c.g_dark) ** c.n_cg
        influx = c.gamma_ca * (c.c_dark - c.c0) * channel_open
        efflux = c.gamma_ca * (state.calcium - c.c0)
        calcium = state.calcium + (influx - efflux) * dt
        calcium = min(CALCIUM_MAX, max(c.c0, calcium))

        # 5. Current readout
        ca_ratio = (calcium - c.c0) / (c.c_dark - c.c0)
        current = -c.j_dark * (c.w_cng * channel_open + c.w_ex * ca_ratio)

        state.r_star = r_star
        state.e_star = e_star
        state.cgmp = cgmp
        state.calcium = calcium
        state.channel_open = channel_open
        state.current = current

    def advance(self, state, intensity: float, n_steps: int) -> float:
        """
        Apply step() n_steps times with a constant intensity

        Returns:
            float: Current after the last step (pA)
        """
        for _ in range(n_steps):
            self.step(state, intensity)
        return state.current
