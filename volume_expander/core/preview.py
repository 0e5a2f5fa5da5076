from __future__ import annotations

from typing import List, Optional

from volume_expander.calculators.capacity import plan_capacity
from volume_expander.calculators.disruption import select_disruptions
from volume_expander.models.resources import MetricsSample
from volume_expander.models.results import PlanReport
from volume_expander.parsers.annotations import DEFAULTS, PolicyDefaults, is_opted_in, resolve_policy
from volume_expander.parsers.manifest import ParseOutput, parse_files


def preview(
    paths: List[str],
    *,
    used_bytes: int,
    capacity_bytes: Optional[int] = None,
    name: Optional[str] = None,
    defaults: PolicyDefaults = DEFAULTS,
) -> List[PlanReport]:
    """Decide what a pass would do for each claim found in the manifest files.

    Uses the given usage instead of Prometheus and the pods found in the same
    files instead of the cluster. Nothing is written anywhere. Without an
    explicit capacity, each claim's provisioned (else requested) size is used.
    """
    parsed: ParseOutput = parse_files(paths)
    reports: List[PlanReport] = []

    for claim in parsed.claims:
        if name is not None and claim.name != name:
            continue
        warnings: List[str] = list(parsed.warnings)
        policy = resolve_policy(claim.annotations, defaults, warnings)
        capacity = capacity_bytes
        if capacity is None:
            capacity = claim.provisioned_bytes if claim.provisioned_bytes is not None else claim.requested_bytes
        sample = MetricsSample(available=True, used_bytes=used_bytes, capacity_bytes=capacity)

        target = plan_capacity(sample, policy, claim.requested_bytes)
        disrupt: List[str] = []
        # the loop only looks at drift when it does not grow the claim
        if target is None:
            disrupt = [w.name for w in select_disruptions(claim, parsed.workloads)]

        managed = is_opted_in(claim.annotations)
        if not managed:
            warnings.append("claim is not opted in; the operator ignores it")

        reports.append(
            PlanReport(
                namespace=claim.namespace,
                name=claim.name,
                managed=managed,
                policy=policy,
                sample=sample,
                current_requested_bytes=claim.requested_bytes,
                provisioned_bytes=claim.provisioned_bytes,
                new_requested_bytes=target,
                disrupt=disrupt,
                warnings=warnings,
            )
        )
    return reports
