"""Numeric helpers shared by the analytics calculators."""

import math
from typing import Iterable, Optional


def finite(value: Optional[float], default: float = 0.0) -> float:
    """Return value, or default when it is missing, NaN or infinite."""
    if value is None:
        return default
    value = float(value)
    if math.isnan(value) or math.isinf(value):
        return default
    return value


def clamp_percentage(value: Optional[float]) -> float:
    """Clamp a percentage into [0, 100]; NaN and missing values become 0."""
    return min(100.0, max(0.0, finite(value)))


def percentage(part: float, whole: float) -> float:
    """part / whole * 100, clamped; 0 when whole is 0."""
    if not whole:
        return 0.0
    return clamp_percentage(part / whole * 100)


def safe_mean(values: Iterable[float]) -> float:
    """Arithmetic mean of the finite values; 0 for an empty input."""
    items = [float(v) for v in values if v is not None and math.isfinite(v)]
    if not items:
        return 0.0
    return sum(items) / len(items)


def safe_divide(numerator: float, denominator: float) -> float:
    if not denominator:
        return 0.0
    return finite(numerator / denominator)
