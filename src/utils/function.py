"""
Common utility functions for phototransduction model
"""

import numpy as np


def clamp(value, lower, upper):
    """
    Limit a value to the closed interval [lower, upper]

    Args:
        value (float): Value to limit
        lower (float): Lower bound
        upper (float): Upper bound

    Returns:
        float: Limited value
    """
    return min(upper, max(lower, value))


def log_intensity_grid(start, stop, points_per_decade=4):
    """Logarithmically spaced intensities from start to stop (inclusive)."""
    decades = np.log10(stop) - np.log10(start)
    num = max(2, int(round(decades * points_per_decade)) + 1)
    return np.logspace(np.log10(start), np.log10(stop), num=num)
