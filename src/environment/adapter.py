"""
Input and output mapping between hardware signals and the cascade model
"""

import logging
import math

from src.configs.params import INTENSITY_MAPPING
from src.utils.function import clamp

logger = logging.getLogger(__name__)


class IOAdapter:
    """
    Map raw inputs to light intensity and currents to display signals

    Inputs are a normalized slider position or a potentiometer reading,
    mapped on a log scale to intensity (R*/s). Outputs are normalized
    responses in [0, 1], a rod/cone blend, an LED PWM duty and a serial
    log line.
    """

    def __init__(
        self,
        log_offset=INTENSITY_MAPPING["log_offset"],
        log_span=INTENSITY_MAPPING["log_span"],
        adc_max=INTENSITY_MAPPING["adc_max"],
        pwm_max=INTENSITY_MAPPING["pwm_max"],
        blend_offset=INTENSITY_MAPPING["blend_offset"],
        blend_span=INTENSITY_MAPPING["blend_span"],
    ):
        """
        Initialize the IOAdapter

        Args:
            log_offset (float): log10 intensity at normalized input 0
            log_span (float): Decades covered by the normalized input
            adc_max (int): Full-scale potentiometer reading
            pwm_max (int): Full-scale LED duty
            blend_offset (float): Offset added to log10(I) for the cone weight
            blend_span (float): Decades over which the weight goes from rod to cone

        Raises:
            ValueError: If a scale is not positive
        """
        for label, value in (
            ("log_span", log_span),
            ("adc_max", adc_max),
            ("pwm_max", pwm_max),
            ("blend_span", blend_span),
        ):
            if value <= 0:
                logger.error(f"Invalid adapter setting {label}={value}")
                raise ValueError(f"{label} must be positive, got {value}")

        self.log_offset = log_offset
        self.log_span = log_span
        self.adc_max = adc_max
        self.pwm_max = pwm_max
        self.blend_offset = blend_offset
        self.blend_span = blend_span

    # --- Input side ---
    def intensity_from_normalized(self, value: float) -> float:
        """Map a normalized input in [0, 1] to intensity (R*/s)."""
        if not math.isfinite(value):
            logger.warning(f"Non-finite input {value}, treating as 0")
            value = 0.0
        return 10.0 ** (self.log_offset + self.log_span * clamp(value, 0.0, 1.0))

    def intensity_from_adc(self, raw: float) -> float:
        """Map a potentiometer reading (0 ... adc_max) to intensity (R*/s)."""
        return self.intensity_from_normalized(raw / self.adc_max)

    def normalized_from_intensity(self, intensity: float) -> float:
        """Inverse of intensity_from_normalized, clamped to [0, 1]."""
        if intensity <= 0:
            return 0.0
        return clamp((math.log10(intensity) - self.log_offset) / self.log_span, 0.0, 1.0)

    # --- Output side ---
    @staticmethod
    def normalized_response(current: float, j_dark: float) -> float:
        """
        Normalized light response

        Args:
            current (float): Membrane current (pA), nominally in [-j_dark, 0]
            j_dark (float): Dark current magnitude (pA)

        Returns:
            float: 0 in darkness, 1 at full suppression
        """
        return clamp(1.0 + current / j_dark, 0.0, 1.0)

    def blend_weights(self, intensity: float):
        """
        Scotopic/photopic blend for a given intensity

        Returns:
            tuple: (rod_weight, cone_weight), summing to 1
        """
        if intensity <= 0:
            return 1.0, 0.0
        cone = clamp((math.log10(intensity) + self.blend_offset) / self.blend_span, 0.0, 1.0)
        return 1.0 - cone, cone

    def combined_response(self, intensity, rod_current, rod_j_dark, cone_current, cone_j_dark):
        """Blend the rod and cone normalized responses into a single signal."""
        rod_weight, cone_weight = self.blend_weights(intensity)
        return rod_weight * self.normalized_response(
            rod_current, rod_j_dark
        ) + cone_weight * self.normalized_response(cone_current, cone_j_dark)

    def led_duty(self, signal: float) -> int:
        """Map a [0, 1] signal to an integer PWM duty."""
        return int(round(clamp(signal, 0.0, 1.0) * self.pwm_max))

    @staticmethod
    def format_log_line(result) -> str:
        """
        Render one tick as a serial log line

        Args:
            result (TickResult): Result of SimulationDriver.tick()

        Returns:
            str: "t,I,J_rod,J_cone,combined"
        """
        return (
            f"{result.time:.3f},{result.intensity:.4g},"
            f"{result.rod_current:.4f},{result.cone_current:.4f},{result.combined:.4f}"
        )
