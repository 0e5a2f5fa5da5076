from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from volume_expander.calculators.capacity import plan_capacity
from volume_expander.calculators.disruption import select_disruptions
from volume_expander.core.exceptions import (
    ClaimNotFoundError,
    DeleteError,
    FetchError,
    ListError,
    MetricsShapeError,
    MetricsUnavailableError,
    UpdateError,
)
from volume_expander.core.settings import ControllerSettings
from volume_expander.kube.store import KubeClaimStore, load_cluster_config
from volume_expander.metrics.prometheus import MetricsPoller, PrometheusClient
from volume_expander.models.resources import AutoscalePolicy, MetricsSample, StorageClaim
from volume_expander.models.results import (
    EvictionFailure,
    Outcome,
    ReconcileResult,
    ReconcileState,
)
from volume_expander.parsers.annotations import DEFAULTS, PolicyDefaults, resolve_policy


logger = logging.getLogger(__name__)

# recorder(claim, reason, message) posts a warning event for the claim
EventRecorder = Callable[[StorageClaim, str, str], None]

EXTEND_FAILED_REASON = "UnableToExtend"
EVICT_FAILED_REASON = "UnableToEvict"

_TERMINAL = {ReconcileState.DONE, ReconcileState.FAILED}


@dataclass(slots=True)
class _Pass:
    namespace: str
    name: str
    states: List[ReconcileState] = field(default_factory=list)
    claim: Optional[StorageClaim] = None
    policy: Optional[AutoscalePolicy] = None
    sample: Optional[MetricsSample] = None
    target: Optional[int] = None
    outcome: Optional[Outcome] = None
    evicted: List[str] = field(default_factory=list)
    failures: List[EvictionFailure] = field(default_factory=list)
    error: Optional[str] = None
    warnings: List[str] = field(default_factory=list)


class Reconciler:
    """Drives one claim through a single reconciliation pass.

    ``store`` is the control-plane collaborator and must provide
    ``get(namespace, name)``, ``update_requested(claim, new_bytes)``,
    ``list_workloads(namespace)`` and ``delete_workload(ref)``.
    ``poller`` provides ``poll(namespace, name) -> MetricsSample``.

    No state is kept between passes, so one instance can serve every claim.
    """

    def __init__(
        self,
        store,
        poller,
        *,
        defaults: PolicyDefaults = DEFAULTS,
        recorder: Optional[EventRecorder] = None,
    ) -> None:
        self.store = store
        self.poller = poller
        self.defaults = defaults
        self.recorder = recorder
        self._steps: Dict[ReconcileState, Callable[[_Pass], ReconcileState]] = {
            ReconcileState.FETCH: self._fetch,
            ReconcileState.RESOLVE_POLICY: self._resolve_policy,
            ReconcileState.POLL_METRICS: self._poll_metrics,
            ReconcileState.PLAN_CAPACITY: self._plan_capacity,
            ReconcileState.APPLY_UPDATE: self._apply_update,
            ReconcileState.CHECK_DRIFT: self._check_drift,
            ReconcileState.SELECT_AND_EVICT: self._select_and_evict,
            ReconcileState.SCHEDULE_RETRY: self._schedule_retry,
        }

    def reconcile(self, namespace: str, name: str) -> ReconcileResult:
        ctx = _Pass(namespace=namespace, name=name)
        state = ReconcileState.FETCH
        while True:
            ctx.states.append(state)
            if state in _TERMINAL:
                break
            state = self._steps[state](ctx)

        requeue_after = None
        if ctx.outcome not in (Outcome.ERROR, Outcome.NOT_FOUND) and ctx.policy is not None:
            requeue_after = ctx.policy.polling_interval

        return ReconcileResult(
            namespace=namespace,
            name=name,
            outcome=ctx.outcome or Outcome.IDLE,
            states=ctx.states,
            policy=ctx.policy,
            sample=ctx.sample,
            new_requested_bytes=ctx.target if ctx.outcome is Outcome.EXPANDED else None,
            evicted=ctx.evicted,
            eviction_failures=ctx.failures,
            requeue_after=requeue_after,
            error=ctx.error,
            warnings=ctx.warnings,
        )

    def _fail(self, ctx: _Pass, message: str, *, reason: str = EXTEND_FAILED_REASON) -> ReconcileState:
        logger.error("%s/%s: %s", ctx.namespace, ctx.name, message)
        ctx.outcome = Outcome.ERROR
        ctx.error = message
        if ctx.claim is not None:
            self._record(ctx.claim, reason, message)
        return ReconcileState.FAILED

    def _record(self, claim: StorageClaim, reason: str, message: str) -> None:
        if self.recorder is None:
            return
        try:
            self.recorder(claim, reason, message)
        except Exception:  # noqa: BLE001
            logger.exception("unable to record %s event for %s/%s", reason, claim.namespace, claim.name)

    def _fetch(self, ctx: _Pass) -> ReconcileState:
        try:
            ctx.claim = self.store.get(ctx.namespace, ctx.name)
        except ClaimNotFoundError:
            logger.info("%s/%s: claim not found, nothing to do", ctx.namespace, ctx.name)
            ctx.outcome = Outcome.NOT_FOUND
            return ReconcileState.DONE
        except FetchError as e:
            return self._fail(ctx, str(e))
        return ReconcileState.RESOLVE_POLICY

    def _resolve_policy(self, ctx: _Pass) -> ReconcileState:
        ctx.policy = resolve_policy(ctx.claim.annotations, self.defaults, ctx.warnings)
        logger.debug("%s/%s: policy %s", ctx.namespace, ctx.name, ctx.policy)
        return ReconcileState.POLL_METRICS

    def _poll_metrics(self, ctx: _Pass) -> ReconcileState:
        try:
            ctx.sample = self.poller.poll(ctx.namespace, ctx.name)
        except MetricsUnavailableError as e:
            logger.warning("%s/%s: metrics unavailable: %s", ctx.namespace, ctx.name, e)
            ctx.warnings.append(f"metrics unavailable: {e}")
            ctx.sample = MetricsSample.unavailable()
        except MetricsShapeError as e:
            return self._fail(ctx, f"unable to poll metrics: {e}")

        if not ctx.sample.available:
            ctx.outcome = Outcome.METRICS_UNAVAILABLE
            return ReconcileState.SCHEDULE_RETRY
        logger.info(
            "%s/%s: used=%d capacity=%d",
            ctx.namespace,
            ctx.name,
            ctx.sample.used_bytes,
            ctx.sample.capacity_bytes,
        )
        return ReconcileState.PLAN_CAPACITY

    def _plan_capacity(self, ctx: _Pass) -> ReconcileState:
        ctx.target = plan_capacity(ctx.sample, ctx.policy, ctx.claim.requested_bytes)
        if ctx.target is None:
            return ReconcileState.CHECK_DRIFT
        logger.info(
            "%s/%s: expanding request from %d to %d bytes",
            ctx.namespace,
            ctx.name,
            ctx.claim.requested_bytes,
            ctx.target,
        )
        return ReconcileState.APPLY_UPDATE

    def _apply_update(self, ctx: _Pass) -> ReconcileState:
        try:
            self.store.update_requested(ctx.claim, ctx.target)
        except UpdateError as e:
            return self._fail(ctx, str(e))
        ctx.outcome = Outcome.EXPANDED
        return ReconcileState.SCHEDULE_RETRY

    def _check_drift(self, ctx: _Pass) -> ReconcileState:
        if ctx.claim.has_drift:
            logger.info(
                "%s/%s: requested %d bytes but %s provisioned, disrupting attached pods",
                ctx.namespace,
                ctx.name,
                ctx.claim.requested_bytes,
                ctx.claim.provisioned_bytes,
            )
            return ReconcileState.SELECT_AND_EVICT
        ctx.outcome = Outcome.IDLE
        return ReconcileState.SCHEDULE_RETRY

    def _select_and_evict(self, ctx: _Pass) -> ReconcileState:
        try:
            workloads = self.store.list_workloads(ctx.namespace)
        except ListError as e:
            logger.error("%s/%s: %s", ctx.namespace, ctx.name, e)
            ctx.warnings.append(str(e))
            self._record(ctx.claim, EXTEND_FAILED_REASON, str(e))
            ctx.outcome = Outcome.IDLE
            return ReconcileState.SCHEDULE_RETRY

        candidates = select_disruptions(ctx.claim, workloads)
        logger.debug("%s/%s: %d pods to disrupt", ctx.namespace, ctx.name, len(candidates))
        for ref in candidates:
            try:
                self.store.delete_workload(ref)
            except DeleteError as e:
                logger.error("%s/%s: %s", ctx.namespace, ctx.name, e)
                ctx.failures.append(EvictionFailure(pod=ref.name, error=str(e)))
                self._record(ctx.claim, EVICT_FAILED_REASON, str(e))
                continue
            ctx.evicted.append(ref.name)
        ctx.outcome = Outcome.EVICTED if candidates else Outcome.IDLE
        return ReconcileState.SCHEDULE_RETRY

    def _schedule_retry(self, ctx: _Pass) -> ReconcileState:
        logger.debug(
            "%s/%s: %s, next pass in %s",
            ctx.namespace,
            ctx.name,
            ctx.outcome.value if ctx.outcome else "done",
            ctx.policy.polling_interval,
        )
        return ReconcileState.DONE


def build_reconciler(
    settings: ControllerSettings,
    *,
    recorder: Optional[EventRecorder] = None,
) -> Reconciler:
    """Wire the Kubernetes and Prometheus collaborators from process settings."""
    load_cluster_config()
    client = PrometheusClient(
        settings.prometheus_url,
        token=settings.token,
        verify=settings.verify_tls,
        timeout=settings.timeout,
    )
    return Reconciler(KubeClaimStore(), MetricsPoller(client), recorder=recorder)
