"""
Easing helpers.

Used by consumers of the event detector to blend a transform between two
states over a fraction of the refractory period.
"""
import math


def clip(t: float, lo: float = 0.0, hi: float = 1.0) -> float:
    """Clamp `t` into [lo, hi]. NaN maps to `lo`."""
    if math.isnan(t):
        return lo
    return max(lo, min(hi, t))


def ease_in_out(t: float) -> float:
    """Smooth ease-in-out cubic curve.

    Args:
        t: Progress value from 0.0 to 1.0

    Returns:
        Eased value from 0.0 to 1.0
    """
    if t >= 1.0:
        return 1.0
    if t <= 0.0:
        return 0.0
    if t < 0.5:
        return 4.0 * t ** 3
    return 1.0 - (-2.0 * t + 2.0) ** 3 / 2.0
