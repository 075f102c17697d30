"""CLI interface for the opportunity planner."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, List

import typer

from core.planning.payload import generate_payload
from core.planning.reconcile import reconcile
from core.planning.recovery import RecoveryFailure, recover
from shared.schemas.opportunities import FinancialMode, ServiceOpportunity, UserPreferences

app = typer.Typer(help="Opportunity Planner - payloads, plan recovery and reconciliation")

logger = logging.getLogger(__name__)


def _read_json(path: Path) -> Any:
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def _load_records(path: Path) -> List[ServiceOpportunity]:
    data = _read_json(path)
    if isinstance(data, dict):
        data = data.get("records", [])
    return [ServiceOpportunity.model_validate(row) for row in data]


def _echo_json(data: Any) -> None:
    typer.echo(json.dumps(data, indent=2, ensure_ascii=False))


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging")):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@app.command()
def payload(
    records: Path = typer.Argument(..., help="JSON list of service records"),
    investment: float = typer.Option(0.0, "--investment", "-i", help="Total investment"),
    mode: FinancialMode = typer.Option(FinancialMode.REVENUE_ONLY, "--mode"),
):
    """Build the opportunity payload from calculator rows."""
    result = generate_payload(
        _load_records(records),
        UserPreferences(max_investment=investment),
        financial_mode=mode,
    )
    if result is None:
        typer.echo("No service records found", err=True)
        raise typer.Exit(code=1)
    _echo_json(result.to_wire())


@app.command(name="recover")
def recover_cmd(response: Path = typer.Argument(..., help="Raw upstream response text")):
    """Recover a plan from a raw upstream response."""
    result = recover(response.read_text(encoding="utf-8"))
    if isinstance(result, RecoveryFailure):
        typer.echo(f"[{result.kind.value}] {result.message}", err=True)
        raise typer.Exit(code=2)
    for repair in result.repairs:
        typer.echo(f"repair: {repair}", err=True)
    _echo_json(result.plan)


@app.command(name="reconcile")
def reconcile_cmd(
    plan: Path = typer.Argument(..., help="Plan JSON"),
    payload_file: Path = typer.Argument(..., help="Payload JSON"),
):
    """List reconciliation findings for a plan against its payload."""
    findings = reconcile(_read_json(plan), _read_json(payload_file))
    if not findings:
        typer.echo("No validation issues found")
        return
    for finding in findings:
        typer.echo(f"- {finding}")


@app.command()
def generate(
    records: Path = typer.Argument(..., help="JSON list of service records"),
    investment: float = typer.Option(0.0, "--investment", "-i"),
    mode: FinancialMode = typer.Option(FinancialMode.REVENUE_ONLY, "--mode"),
):
    """Run the full pipeline synchronously against the configured upstream."""
    from core.planning.orchestrator import PlanOrchestrator

    result = generate_payload(
        _load_records(records),
        UserPreferences(max_investment=investment),
        financial_mode=mode,
    )
    if result is None:
        typer.echo("No service records found", err=True)
        raise typer.Exit(code=1)
    record = PlanOrchestrator.from_settings().generate_now(result)
    _echo_json({k: v for k, v in record.items() if k != "payload"})
    if record["status"] != "complete":
        raise typer.Exit(code=2)


if __name__ == "__main__":
    app()
