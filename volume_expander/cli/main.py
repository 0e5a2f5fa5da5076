from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import kopf
import typer

from volume_expander.core.exceptions import ClaimNotFoundError
from volume_expander.core.preview import preview
from volume_expander.core.reconciler import build_reconciler
from volume_expander.core.settings import ControllerSettings
from volume_expander.models.results import Outcome
from volume_expander.operator import handlers  # noqa: F401  registers the kopf handlers
from volume_expander.output.render import (
    render_json,
    render_plan_json,
    render_plan_table,
    render_result_table,
)
from volume_expander.parsers.annotations import AUTOEXPAND_ANNOTATION, is_opted_in
from volume_expander.utils.logging import configure_logging, quiet_client_logging
from volume_expander.utils.units import parse_quantity


app = typer.Typer(add_completion=False, help="Grow PersistentVolumeClaims before they fill up")


@app.command("run")
def run(
    namespaces: List[str] = typer.Option(
        [], "--namespace", "-n", help="Namespace to watch (repeatable); all namespaces if omitted"
    ),
    liveness: Optional[str] = typer.Option(
        None, "--liveness", help="Liveness endpoint, e.g. http://0.0.0.0:8080/healthz"
    ),
):
    """Start the operator and keep opted-in claims ahead of their usage."""
    settings = ControllerSettings.from_env()
    configure_logging(settings.log_level)
    quiet_client_logging()
    kopf.run(
        standalone=True,
        clusterwide=not namespaces,
        namespaces=namespaces,
        liveness_endpoint=liveness,
        memo=kopf.Memo(settings=settings),
    )


@app.command("reconcile")
def reconcile(
    namespace: str = typer.Argument(..., help="Namespace of the PersistentVolumeClaim"),
    name: str = typer.Argument(..., help="Name of the PersistentVolumeClaim"),
    output: str = typer.Option(
        "table",
        "--output",
        case_sensitive=False,
        help="Output format: table|json",
    ),
    force: bool = typer.Option(
        False, "--force/--no-force", help="Reconcile even without the opt-in annotation"
    ),
):
    """Run a single reconciliation pass for one claim against the cluster."""
    fmt = output.lower()
    if fmt not in ("table", "json"):
        typer.echo("Unknown output format. Use table|json.", err=True)
        raise typer.Exit(code=2)

    opted_in = True
    result = None
    try:
        settings = ControllerSettings.from_env()
        configure_logging(settings.log_level)
        quiet_client_logging()
        reconciler = build_reconciler(settings)
        if not force:
            try:
                claim = reconciler.store.get(namespace, name)
                opted_in = is_opted_in(claim.annotations)
            except ClaimNotFoundError:
                pass
        if opted_in:
            result = reconciler.reconcile(namespace, name)
    except Exception as exc:  # noqa: BLE001
        typer.echo(f"Fatal error: {exc}", err=True)
        raise typer.Exit(code=1)

    if result is None:
        typer.echo(
            f"{namespace}/{name} is not annotated with {AUTOEXPAND_ANNOTATION}=\"true\"; "
            "use --force to reconcile it anyway.",
            err=True,
        )
        raise typer.Exit(code=3)

    if fmt == "json":
        typer.echo(render_json(result))
    else:
        render_result_table(result)

    raise typer.Exit(code=1 if result.outcome is Outcome.ERROR else 0)


@app.command("plan")
def plan(
    files: List[Path] = typer.Argument(..., help="YAML files with PersistentVolumeClaims and Pods"),
    used: str = typer.Option(..., "--used", help="Used bytes as a quantity, e.g. 9Gi"),
    capacity: Optional[str] = typer.Option(
        None,
        "--capacity",
        help="Volume capacity as a quantity; defaults to each claim's provisioned size",
    ),
    name: Optional[str] = typer.Option(None, "--name", help="Only preview the claim with this name"),
    output: str = typer.Option(
        "table",
        "--output",
        case_sensitive=False,
        help="Output format: table|json",
    ),
):
    """Preview the expansion decision for claims in manifest files, offline."""
    try:
        reports = preview(
            [str(p) for p in files],
            used_bytes=parse_quantity(used),
            capacity_bytes=parse_quantity(capacity) if capacity is not None else None,
            name=name,
        )
    except Exception as exc:  # noqa: BLE001
        typer.echo(f"Fatal error: {exc}", err=True)
        raise typer.Exit(code=1)

    if not reports:
        typer.echo("No PersistentVolumeClaims found.", err=True)
        raise typer.Exit(code=1)

    fmt = output.lower()
    if fmt == "table":
        render_plan_table(reports)
    elif fmt == "json":
        typer.echo(render_plan_json(reports))
    else:
        typer.echo("Unknown output format. Use table|json.", err=True)
        raise typer.Exit(code=2)

    raise typer.Exit(code=0)


if __name__ == "__main__":  # pragma: no cover
    app()
