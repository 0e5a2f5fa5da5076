from __future__ import annotations

import json

import pytest
from typer.testing import CliRunner

from volume_expander.cli import main as cli
from volume_expander.core.exceptions import ClaimNotFoundError
from volume_expander.core.reconciler import Reconciler
from volume_expander.models.resources import MetricsSample, StorageClaim
from volume_expander.parsers.annotations import AUTOEXPAND_ANNOTATION


runner = CliRunner()


class DummyStore:
    def __init__(self, claim=None):
        self.claim = claim
        self.updates = []

    def get(self, namespace, name):
        if self.claim is None:
            raise ClaimNotFoundError(f"PVC {namespace}/{name} not found")
        return self.claim

    def update_requested(self, claim, new_bytes):
        self.updates.append(new_bytes)

    def list_workloads(self, namespace):
        return []

    def delete_workload(self, ref):
        pass


class DummyPoller:
    def poll(self, namespace, name):
        return MetricsSample(available=True, used_bytes=900, capacity_bytes=1000)


@pytest.fixture
def use_store(monkeypatch):
    def install(store):
        # keep log records out of the captured output
        monkeypatch.setattr(cli, "configure_logging", lambda level: None)
        monkeypatch.setattr(cli, "build_reconciler", lambda settings: Reconciler(store, DummyPoller()))
        return store

    return install


def _claim(annotations):
    return StorageClaim(namespace="shop", name="data", annotations=annotations, requested_bytes=1000)


def test_reconcile_refuses_claim_without_opt_in(use_store):
    store = use_store(DummyStore(_claim({})))
    result = runner.invoke(cli.app, ["reconcile", "shop", "data"])
    assert result.exit_code == 3
    assert store.updates == []


def test_reconcile_force_skips_the_opt_in_check(use_store):
    store = use_store(DummyStore(_claim({})))
    result = runner.invoke(cli.app, ["reconcile", "shop", "data", "--force", "--output", "json"])
    assert result.exit_code == 0
    assert store.updates == [1250]
    assert json.loads(result.stdout)["outcome"] == "Expanded"


def test_reconcile_opted_in_claim(use_store):
    store = use_store(DummyStore(_claim({AUTOEXPAND_ANNOTATION: "true"})))
    result = runner.invoke(cli.app, ["reconcile", "shop", "data", "--output", "json"])
    assert result.exit_code == 0
    assert store.updates == [1250]


def test_reconcile_missing_claim_reports_not_found(use_store):
    use_store(DummyStore())
    result = runner.invoke(cli.app, ["reconcile", "shop", "data", "--output", "json"])
    assert result.exit_code == 0
    assert json.loads(result.stdout)["outcome"] == "NotFound"
