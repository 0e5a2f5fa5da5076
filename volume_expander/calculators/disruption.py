from __future__ import annotations

from typing import Iterable, List

from volume_expander.models.resources import StorageClaim, WorkloadRef


DISRUPTABLE_PHASES = {"Running", "Pending"}


def select_disruptions(claim: StorageClaim, workloads: Iterable[WorkloadRef]) -> List[WorkloadRef]:
    if not claim.has_drift:
        return []
    selected: List[WorkloadRef] = []
    seen: set[str] = set()
    for w in workloads:
        if w.namespace != claim.namespace or w.name in seen:
            continue
        if claim.name in w.claim_names and w.phase in DISRUPTABLE_PHASES:
            selected.append(w)
            seen.add(w.name)
    return selected
