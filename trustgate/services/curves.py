"""Score curve helpers shared by the credibility engine."""

import math


def diminishing_returns(value: float, threshold: float, log_scale: float) -> float:
    """Linear up to threshold, logarithmic beyond it.

    A non-positive log_scale is a configuration error; it is treated as the
    identity beyond the threshold rather than raising.
    """
    if value <= threshold:
        return value
    if log_scale <= 0:
        return value
    return threshold + math.log(value - threshold + 1) * log_scale


def capped_linear(count: float, per_unit: float, cap: float) -> float:
    """min(count * per_unit, cap). Negative counts contribute nothing."""
    if count <= 0:
        return 0
    return min(count * per_unit, cap)
