from __future__ import annotations

from typing import Optional

from volume_expander.models.resources import AutoscalePolicy, MetricsSample


def plan_capacity(
    sample: MetricsSample,
    policy: AutoscalePolicy,
    current_requested: int,
) -> Optional[int]:
    """Return the new requested size in bytes, or None when no growth is due.

    Growth triggers only when usage is strictly above the threshold, grows the
    observed capacity by ``growth_percent`` and never exceeds the ceiling.
    A candidate that is not larger than the current request is dropped.
    """
    if not sample.available:
        return None
    capacity = sample.capacity_bytes
    if capacity <= 0:
        # nothing to compute a ratio against yet
        return None

    # used / capacity * 100 > threshold, kept in integers so ties are exact
    if sample.used_bytes * 100 <= policy.threshold_percent * capacity:
        return None

    grown = capacity * (100 + policy.growth_percent) // 100
    candidate = grown if policy.ceiling_bytes > grown else policy.ceiling_bytes

    if candidate <= current_requested:
        return None
    return candidate
