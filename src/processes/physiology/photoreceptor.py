"""
Photoreceptor constants and state for the phototransduction model
"""

import logging
import math
import numbers
from dataclasses import dataclass, field, fields

from src.configs.params import CONE_PARAMETERS, ROD_PARAMETERS

logger = logging.getLogger(__name__)

# Constants that must be strictly positive
POSITIVE_CONSTANTS = (
    "tau_r",
    "tau_e",
    "gain",
    "alpha_max",
    "k_c",
    "m",
    "beta_dark",
    "beta_sub",
    "g_dark",
    "n_cg",
    "c_dark",
    "c0",
    "gamma_ca",
    "j_dark",
)


@dataclass(frozen=True)
class PhysiologicalConstants:
    """
    Hand-calibrated constants for one photoreceptor class

    Attributes:
        tau_r (float): Activated pigment lifetime (s)
        tau_e (float): Activated PDE lifetime (s)
        gain (float): Coupling from R* to E*
        alpha_max (float): Maximal cGMP synthesis rate (μM/s)
        k_c (float): Ca concentration of half-maximal cyclase inhibition (μM)
        m (float): Cyclase Ca cooperativity
        beta_dark (float): Dark cGMP hydrolysis rate (1/s)
        beta_sub (float): Hydrolysis increment per unit E* (1/(s * E*))
        g_dark (float): Dark-adapted cGMP (μM)
        n_cg (float): CNG channel cooperativity
        c_dark (float): Dark-adapted Ca (μM)
        c0 (float): Ca extrusion floor (μM)
        gamma_ca (float): Ca turnover rate (1/s)
        j_dark (float): Dark current magnitude (pA)
        f_ca (float): Exchanger share of the dark current, in [0, 1]
        name (str): Cell class label
    """

    tau_r: float
    tau_e: float
    gain: float
    alpha_max: float
    k_c: float
    m: float
    beta_dark: float
    beta_sub: float
    g_dark: float
    n_cg: float
    c_dark: float
    c0: float
    gamma_ca: float
    j_dark: float
    f_ca: float
    name: str = "cell"
    w_cng: float = field(init=False, repr=False)
    w_ex: float = field(init=False, repr=False)

    def __post_init__(self):
        for key in POSITIVE_CONSTANTS + ("f_ca",):
            value = getattr(self, key)
            if not isinstance(value, numbers.Real) or not math.isfinite(value):
                logger.error(f"{self.name}: constant {key} must be a finite number, got {value!r}")
                raise ValueError(f"{key} must be a finite number, got {value!r}")

        for key in POSITIVE_CONSTANTS:
            if getattr(self, key) <= 0:
                logger.error(f"{self.name}: constant {key} must be positive, got {getattr(self, key)}")
                raise ValueError(f"{key} must be positive, got {getattr(self, key)}")

        if not 0.0 <= self.f_ca <= 1.0:
            logger.error(f"{self.name}: f_ca must lie in [0, 1], got {self.f_ca}")
            raise ValueError(f"f_ca must lie in [0, 1], got {self.f_ca}")

        if self.c_dark <= self.c0:
            logger.error(f"{self.name}: c_dark ({self.c_dark}) must exceed c0 ({self.c0})")
            raise ValueError("c_dark must exceed c0")

        # Current weights depend only on f_ca
        object.__setattr__(self, "w_cng", 2.0 / (self.f_ca + 2.0))
        object.__setattr__(self, "w_ex", self.f_ca / (self.f_ca + 2.0))

    @property
    def fastest_time_constant(self) -> float:
        """Shortest of tau_r, tau_e and 1/gamma_ca (s)."""
        return min(self.tau_r, self.tau_e, 1.0 / self.gamma_ca)

    def dark_synthesis_balance(self) -> float:
        """Net cGMP rate at the dark state; zero for a calibrated cell (μM/s)."""
        alpha = self.alpha_max / (1.0 + (self.c_dark / self.k_c) ** self.m)
        return alpha - self.beta_dark * self.g_dark

    def as_dict(self):
        """Return the constructor arguments as a plain dict."""
        return {f.name: getattr(self, f.name) for f in fields(self) if f.init}


def constants_from_params(params, name="cell", **overrides):
    """
    Build PhysiologicalConstants from a parameter dict

    Args:
        params (dict): Parameter dict shaped like ROD_PARAMETERS
        name (str): Cell class label
        **overrides: Individual constants replacing entries of params

    Returns:
        PhysiologicalConstants: Validated constants

    Raises:
        ValueError: If a constant is missing, unknown or invalid
    """
    merged = dict(params)
    merged.update(overrides)

    expected = {f.name for f in fields(PhysiologicalConstants) if f.init} - {"name"}
    missing = expected - set(merged)
    unknown = set(merged) - expected
    if missing:
        logger.error(f"{name}: missing constants {sorted(missing)}")
        raise ValueError(f"Missing constants: {', '.join(sorted(missing))}")
    if unknown:
        logger.error(f"{name}: unknown constants {sorted(unknown)}")
        raise ValueError(f"Unknown constants: {', '.join(sorted(unknown))}")

    return PhysiologicalConstants(name=name, **merged)


def rod_constants(**overrides):
    """Constants for the rod (scotopic) cell."""
    return constants_from_params(ROD_PARAMETERS, name="rod", **overrides)


def cone_constants(**overrides):
    """Constants for the cone (photopic) cell."""
    return constants_from_params(CONE_PARAMETERS, name="cone", **overrides)


@dataclass
class PhotoreceptorState:
    """
    Mutable state of one photoreceptor

    Attributes:
        constants (PhysiologicalConstants): Shared, read-only cell constants
        r_star (float): Activated pigment signal
        e_star (float): Activated PDE signal
        cgmp (float): cGMP concentration (μM)
        calcium (float): Intracellular Ca (μM)
        current (float): Membrane current (pA), derived from cgmp and calcium
        channel_open (float): CNG open fraction from the last update
    """

    constants: PhysiologicalConstants
    r_star: float = 0.0
    e_star: float = 0.0
    cgmp: float = 0.0
    calcium: float = 0.0
    current: float = 0.0
    channel_open: float = 1.0

    @classmethod
    def dark_adapted(cls, constants):
        """Create a state seeded at the dark-adapted steady state."""
        state = cls(constants=constants)
        state.reset()
        return state

    def reset(self):
        """Return to the dark-adapted steady state."""
        self.r_star = 0.0
        self.e_star = 0.0
        self.cgmp = self.constants.g_dark
        self.calcium = self.constants.c_dark
        self.channel_open = 1.0
        self.current = -self.constants.j_dark

    @property
    def suppression(self) -> float:
        """Fraction of the dark current suppressed by light."""
        return 1.0 + self.current / self.constants.j_dark

    def as_dict(self):
        return {
            "R*": self.r_star,
            "E*": self.e_star,
            "cGMP (uM)": self.cgmp,
            "Ca (uM)": self.calcium,
            "J (pA)": self.current,
        }
