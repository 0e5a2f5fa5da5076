from __future__ import annotations

from datetime import timedelta
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from volume_expander.models.resources import AutoscalePolicy, MetricsSample


class ReconcileState(str, Enum):
    FETCH = "Fetch"
    RESOLVE_POLICY = "ResolvePolicy"
    POLL_METRICS = "PollMetrics"
    PLAN_CAPACITY = "PlanCapacity"
    APPLY_UPDATE = "ApplyUpdate"
    CHECK_DRIFT = "CheckDrift"
    SELECT_AND_EVICT = "SelectAndEvict"
    SCHEDULE_RETRY = "ScheduleRetry"
    FAILED = "Failed"
    DONE = "Done"


class Outcome(str, Enum):
    NOT_FOUND = "NotFound"
    METRICS_UNAVAILABLE = "MetricsUnavailable"
    EXPANDED = "Expanded"
    EVICTED = "Evicted"
    IDLE = "Idle"
    ERROR = "Error"


class EvictionFailure(BaseModel):
    pod: str
    error: str


class ReconcileResult(BaseModel):
    namespace: str
    name: str
    outcome: Outcome
    states: List[ReconcileState] = Field(default_factory=list)
    policy: Optional[AutoscalePolicy] = None
    sample: Optional[MetricsSample] = None
    new_requested_bytes: Optional[int] = None
    evicted: List[str] = Field(default_factory=list)
    eviction_failures: List[EvictionFailure] = Field(default_factory=list)
    requeue_after: Optional[timedelta] = None  # None leaves retry to the scheduler
    error: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)


class PlanReport(BaseModel):
    """Offline decision for one claim, computed from manifests and given usage."""

    namespace: str
    name: str
    managed: bool
    policy: AutoscalePolicy
    sample: MetricsSample
    current_requested_bytes: int
    provisioned_bytes: Optional[int] = None
    new_requested_bytes: Optional[int] = None
    disrupt: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
