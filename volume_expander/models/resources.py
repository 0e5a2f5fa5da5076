from __future__ import annotations

from datetime import timedelta
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from volume_expander.utils.units import MAX_QUANTITY


class StorageClaim(BaseModel):
    namespace: str
    name: str
    annotations: Dict[str, str] = Field(default_factory=dict)
    requested_bytes: int = Field(ge=0)
    provisioned_bytes: Optional[int] = None  # None while the claim is unbound
    resource_version: Optional[str] = None

    @property
    def has_drift(self) -> bool:
        """A resize was requested but the backend has not provisioned it yet."""
        if self.provisioned_bytes is None:
            return False
        return self.requested_bytes != self.provisioned_bytes


class AutoscalePolicy(BaseModel):
    model_config = ConfigDict(frozen=True)

    polling_interval: timedelta
    growth_percent: int = Field(ge=1)
    threshold_percent: int = Field(ge=1, le=99)
    ceiling_bytes: int = Field(default=MAX_QUANTITY, ge=0)


class MetricsSample(BaseModel):
    available: bool
    used_bytes: int = 0
    capacity_bytes: int = 0

    @classmethod
    def unavailable(cls) -> "MetricsSample":
        return cls(available=False)


class WorkloadRef(BaseModel):
    namespace: str
    name: str
    phase: Optional[str] = None  # Running | Pending | Succeeded | Failed | Unknown
    claim_names: List[str] = Field(default_factory=list)
