from __future__ import annotations

from datetime import timedelta

import kopf
import pytest

from volume_expander.core.reconciler import Reconciler
from volume_expander.core.settings import ControllerSettings
from volume_expander.models.results import Outcome, ReconcileResult
from volume_expander.operator import handlers


class FakeStopped:
    """Stands in for kopf's DaemonStopped; stops after a number of waits."""

    def __init__(self, waits_before_stop=1):
        self.remaining = waits_before_stop
        self.waited = []

    def __bool__(self):
        return self.remaining <= 0

    def wait(self, timeout=None):
        self.waited.append(timeout)
        self.remaining -= 1


class ScriptedReconciler(Reconciler):
    def __init__(self, results):
        super().__init__(store=None, poller=None)
        self.results = list(results)

    def reconcile(self, namespace, name):
        return self.results.pop(0)


def _result(outcome, requeue_after=None, error=None):
    return ReconcileResult(
        namespace="shop", name="data", outcome=outcome, requeue_after=requeue_after, error=error
    )


def _memo(results):
    return kopf.Memo(reconciler=ScriptedReconciler(results), settings=ControllerSettings(error_backoff=12.0))


def test_daemon_sleeps_for_the_requeue_delay(monkeypatch):
    results = [
        _result(Outcome.IDLE, timedelta(seconds=30)),
        _result(Outcome.EXPANDED, timedelta(minutes=2)),
    ]
    base = ScriptedReconciler(results)
    # the daemon builds its own reconciler around the shared collaborators
    monkeypatch.setattr(handlers, "Reconciler", lambda *a, **kw: base)
    stopped = FakeStopped(waits_before_stop=2)
    handlers.expand_volume(
        namespace="shop", name="data", body={}, stopped=stopped, memo=kopf.Memo(reconciler=base)
    )
    assert stopped.waited == [30.0, 120.0]


def test_daemon_exits_when_claim_is_gone(monkeypatch):
    base = ScriptedReconciler([_result(Outcome.NOT_FOUND)])
    monkeypatch.setattr(handlers, "Reconciler", lambda *a, **kw: base)
    stopped = FakeStopped(waits_before_stop=5)
    handlers.expand_volume(
        namespace="shop", name="data", body={}, stopped=stopped, memo=kopf.Memo(reconciler=base)
    )
    assert stopped.waited == []


def test_daemon_hands_errors_back_to_kopf(monkeypatch):
    memo = _memo([_result(Outcome.ERROR, error="unable to update PVC shop/data: Conflict")])
    monkeypatch.setattr(handlers, "Reconciler", lambda *a, **kw: memo.reconciler)
    with pytest.raises(kopf.TemporaryError) as exc_info:
        handlers.expand_volume(
            namespace="shop", name="data", body={}, stopped=FakeStopped(), memo=memo
        )
    assert exc_info.value.delay == 12.0
    assert "Conflict" in str(exc_info.value)


def test_event_recorder_posts_kopf_warnings(monkeypatch):
    posted = []
    monkeypatch.setattr(
        handlers.kopf, "warn", lambda body, reason, message: posted.append((body, reason, message))
    )
    body = {"metadata": {"name": "data", "namespace": "shop"}}
    record = handlers._event_recorder(body)
    record(None, "UnableToExtend", "boom")
    assert posted == [(body, "UnableToExtend", "boom")]
