from __future__ import annotations

import json
from typing import List, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from volume_expander.models.resources import AutoscalePolicy
from volume_expander.models.results import PlanReport, ReconcileResult
from volume_expander.utils.units import MAX_QUANTITY, format_quantity


def _qty(num_bytes: Optional[int]) -> str:
    if num_bytes is None:
        return "-"
    if num_bytes >= MAX_QUANTITY:
        return "unbounded"
    return format_quantity(num_bytes)


def _policy_rows(table: Table, policy: Optional[AutoscalePolicy]) -> None:
    if policy is None:
        return
    table.add_row("Polling interval", f"{policy.polling_interval.total_seconds():g}s")
    table.add_row("Threshold", f"{policy.threshold_percent}%")
    table.add_row("Expand by", f"{policy.growth_percent}%")
    table.add_row("Expand up to", _qty(policy.ceiling_bytes))


def render_result_table(result: ReconcileResult, console: Optional[Console] = None) -> None:
    console = console or Console()

    table = Table(title=f"Reconcile {result.namespace}/{result.name}")
    table.add_column("Field")
    table.add_column("Value")
    table.add_row("Outcome", result.outcome.value)
    table.add_row("States", " -> ".join(s.value for s in result.states))
    _policy_rows(table, result.policy)
    if result.sample is not None and result.sample.available:
        table.add_row("Used", _qty(result.sample.used_bytes))
        table.add_row("Capacity", _qty(result.sample.capacity_bytes))
    elif result.sample is not None:
        table.add_row("Metrics", "not available")
    table.add_row("New request", _qty(result.new_requested_bytes))
    if result.evicted:
        table.add_row("Evicted pods", ", ".join(result.evicted))
    for f in result.eviction_failures:
        table.add_row("Eviction failed", escape(f"{f.pod}: {f.error}"))
    if result.requeue_after is not None:
        table.add_row("Next pass in", f"{result.requeue_after.total_seconds():g}s")
    if result.error:
        table.add_row("Error", escape(result.error))
    console.print(table)

    for w in result.warnings:
        console.print(f"[yellow]warning:[/yellow] {escape(w)}")


def render_plan_table(reports: List[PlanReport], console: Optional[Console] = None) -> None:
    console = console or Console()

    table = Table(title="Expansion Preview")
    table.add_column("Claim")
    table.add_column("Namespace")
    table.add_column("Managed")
    table.add_column("Used / Capacity", justify="right")
    table.add_column("Usage", justify="right")
    table.add_column("Threshold", justify="right")
    table.add_column("Requested", justify="right")
    table.add_column("New request", justify="right")
    table.add_column("Disrupt")

    for r in reports:
        cap = r.sample.capacity_bytes
        usage = f"{r.sample.used_bytes / cap * 100:.1f}%" if cap > 0 else "-"
        table.add_row(
            r.name,
            r.namespace,
            "yes" if r.managed else "no",
            f"{_qty(r.sample.used_bytes)} / {_qty(cap)}",
            usage,
            f"{r.policy.threshold_percent}%",
            _qty(r.current_requested_bytes),
            _qty(r.new_requested_bytes),
            ", ".join(r.disrupt),
        )
    console.print(table)

    for r in reports:
        for w in r.warnings:
            console.print(f"[yellow]warning:[/yellow] {r.namespace}/{r.name}: {escape(w)}")


def render_json(result: ReconcileResult) -> str:
    data = result.model_dump(mode="json")
    return json.dumps(data, indent=2, sort_keys=True)


def render_plan_json(reports: List[PlanReport]) -> str:
    data = [r.model_dump(mode="json") for r in reports]
    return json.dumps(data, indent=2, sort_keys=True)
