"""
Retry delay calculation for failed probes
"""

import random
from typing import Callable


def compute_delay(
    failure_count: int,
    base: int,
    maximum: int,
    multiplier: float = 2,
    jitter_ratio: float = 0.2,
    rng: Callable[[], float] = random.random
) -> int:
    """
    Map a consecutive failure count to a retry delay.

    The delay grows geometrically from ``base`` and is capped at ``maximum``,
    then perturbed by up to +/- ``jitter_ratio`` of the capped value. The
    result is rounded to whole milliseconds and never negative.
    """
    if base <= 0 or maximum <= 0:
        raise ValueError("base and maximum must be positive")

    if failure_count <= 0:
        return 0

    try:
        raw = base * multiplier ** (failure_count - 1)
    except OverflowError:
        raw = maximum
    capped = min(raw, maximum)
    jitter = capped * jitter_ratio * (rng() - 0.5) * 2
    return max(0, round(capped + jitter))
