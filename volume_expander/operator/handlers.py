"""kopf handlers: one daemon per opted-in PersistentVolumeClaim.

Each daemon runs reconciliation passes for its claim, sleeping for the
claim's polling interval in between. kopf keeps at most one daemon per
object and stops it when the claim is deleted or loses the opt-in
annotation.
"""

from __future__ import annotations

import logging
from typing import Any

import kopf

from volume_expander.core.reconciler import EventRecorder, Reconciler, build_reconciler
from volume_expander.core.settings import ControllerSettings
from volume_expander.models.results import Outcome
from volume_expander.parsers.annotations import AUTOEXPAND_ANNOTATION


logger = logging.getLogger(__name__)


@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, memo: kopf.Memo, **_: Any) -> None:
    # `volume-expander run` passes the settings it already read
    controller_settings = memo.get("settings") or ControllerSettings.from_env()
    settings.posting.level = logging.WARNING
    memo.settings = controller_settings
    memo.reconciler = build_reconciler(controller_settings)
    logger.info("volume expander started, Prometheus at %s", controller_settings.prometheus_url)


def _event_recorder(body: kopf.Body) -> EventRecorder:
    def record(claim, reason: str, message: str) -> None:
        kopf.warn(body, reason=reason, message=message)

    return record


@kopf.daemon(
    "v1",
    "persistentvolumeclaims",
    annotations={AUTOEXPAND_ANNOTATION: "true"},
    cancellation_timeout=10.0,
)
def expand_volume(
    namespace: str,
    name: str,
    body: kopf.Body,
    stopped: kopf.DaemonStopped,
    memo: kopf.Memo,
    **_: Any,
) -> None:
    base: Reconciler = memo.reconciler
    reconciler = Reconciler(
        base.store,
        base.poller,
        defaults=base.defaults,
        recorder=_event_recorder(body),
    )
    while not stopped:
        result = reconciler.reconcile(namespace, name)
        if result.outcome is Outcome.NOT_FOUND:
            return
        if result.requeue_after is None:
            # kopf restarts the daemon after the delay
            raise kopf.TemporaryError(
                result.error or "reconciliation failed",
                delay=memo.settings.error_backoff,
            )
        stopped.wait(result.requeue_after.total_seconds())
