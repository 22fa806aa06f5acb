"""
PURPOSE: Mathematical helpers for the prediction and learning components:
clamping, interval statistics and safe division.
"""

from typing import Sequence

import numpy as np


def clamp(value: float, lower: float, upper: float) -> float:
    """
    PURPOSE: Restrict a value to the closed interval [lower, upper].

    Args:
        value: Value to clamp.
        lower: Lower bound.
        upper: Upper bound.

    Returns:
        float: The clamped value.
    """
    return max(lower, min(upper, value))


def safe_div(numerator: float, denominator: float, default: float = 0.0) -> float:
    """Safe division that returns default on zero denominator."""
    if denominator == 0:
        return default
    return numerator / denominator


def mean(values: Sequence[float]) -> float:
    """Arithmetic mean, 0.0 for an empty sequence."""
    if len(values) == 0:
        return 0.0
    return float(np.mean(values))


def population_stdev(values: Sequence[float]) -> float:
    """
    PURPOSE: Population standard deviation (ddof=0) of a sequence.

    Args:
        values: Sample values.

    Returns:
        float: Standard deviation, 0.0 for an empty sequence.
    """
    if len(values) == 0:
        return 0.0
    return float(np.std(values))


def coefficient_of_variation(values: Sequence[float]) -> float | None:
    """
    PURPOSE: Coefficient of variation (stdev / mean) of a sequence.

    Returns:
        float or None: CV, or None when the mean is not positive.
    """
    avg = mean(values)
    if avg <= 0:
        return None
    return population_stdev(values) / avg
