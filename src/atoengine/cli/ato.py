"""ato - ATO compliance assessment CLI."""

from __future__ import annotations

import asyncio
import datetime as dt
import json
import sys
from pathlib import Path
from typing import Any, Coroutine, Optional

import click
import httpx
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .. import __version__
from ..core.catalog import ALL_FAMILIES
from ..core.certificate import verify_certificate
from ..core.config import CONFIG_DIR, get_effective_config, initialize_project
from ..core.engine import ComplianceEngine
from ..core.errors import ComplianceEngineError
from ..core.logging_config import setup_logging
from ..formatters.junit import export_junit_results
from ..formatters.report import generate_assessment_report
from ..models.assessment import AssessmentProgress
from ..models.evidence import EvidenceCollectionProgress
from ..providers.http import get_control_catalog, get_inventory_service
from ..providers.mock import build_mock_collaborators
from ..storage.json_store import JsonAssessmentStore
from ..utils.sanitize import sanitize_error

console = Console()

DATE_FORMATS = ["%Y-%m-%d"]


def build_engine(config: dict, dry_run: bool = False) -> ComplianceEngine:
    """Wire the engine from effective config (mock collaborators when dry_run)."""
    store = JsonAssessmentStore(Path(config["storage"]["path"]))
    if dry_run:
        return ComplianceEngine(store=store, **build_mock_collaborators())
    return ComplianceEngine(
        inventory=get_inventory_service(config),
        catalog=get_control_catalog(config),
        store=store,
    )


def _run(coro: Coroutine[Any, Any, Any]) -> Any:
    try:
        return asyncio.run(coro)
    except ComplianceEngineError as e:
        console.print(f"  [red]ERROR[/red] {escape(str(e))}")
        sys.exit(1)
    except httpx.HTTPError as e:
        message = sanitize_error(str(e)) or type(e).__name__
        console.print(f"  [red]ERROR[/red] {escape(message)}")
        sys.exit(1)


def _tenant(ctx: click.Context, tenant: Optional[str]) -> str:
    return tenant or ctx.obj["config"]["tenant"].get("id") or ""


def _reports_dir(ctx: click.Context) -> Path:
    return ctx.obj["project"] / CONFIG_DIR / "reports"


def _print_progress(event: Any) -> None:
    if isinstance(event, AssessmentProgress):
        console.print(
            f"  [dim]{event.completed_families}/{event.total_families}[/dim] {event.message}"
        )
    elif isinstance(event, EvidenceCollectionProgress):
        console.print(
            f"  [dim]{event.collected_items}/{event.total_items}[/dim] {event.message}"
        )


@click.group()
@click.version_option(__version__, prog_name="ato")
@click.option("--project", "-p", type=click.Path(exists=True, file_okay=False), default=".", help="Project path")
@click.option("--dry-run", is_flag=True, help="Use mock collaborators (no network calls)")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Override the configured log level",
)
@click.pass_context
def ato_cli(ctx: click.Context, project: str, dry_run: bool, log_level: Optional[str]) -> None:
    """ATO compliance assessment engine."""
    project_path = Path(project).resolve()

    cli_overrides: dict = {}
    if log_level:
        cli_overrides["logging"] = {"level": log_level.upper()}
    config = get_effective_config(project_path, cli_overrides=cli_overrides or None)

    log_file = config["logging"].get("file")
    if log_file and not Path(log_file).is_absolute():
        log_file = str(project_path / log_file)
    setup_logging(config["logging"].get("level", "INFO"), log_file)

    ctx.ensure_object(dict)
    ctx.obj.update(project=project_path, config=config, dry_run=dry_run)


@ato_cli.command()
@click.option("--tenant", "-t", default="", help="Tenant id to record in config.yaml")
@click.pass_context
def init(ctx: click.Context, tenant: str) -> None:
    """Initialize .ato-engine/ in a project."""
    project_path: Path = ctx.obj["project"]
    config_path = initialize_project(project_path, tenant_id=tenant)
    console.print(f"  [green]Initialized[/green] {CONFIG_DIR}/ in {project_path.name}")
    console.print(f"  Config: {config_path}")


@ato_cli.command()
@click.option("--tenant", "-t", help="Tenant id (defaults to tenant.id in config)")
@click.option("--resource-group", "-g", help="Scope the scan to one resource group")
@click.option("--output-format", "-f", type=click.Choice(["markdown", "json", "junit"]), default="markdown")
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Report path")
@click.pass_context
def assess(
    ctx: click.Context,
    tenant: Optional[str],
    resource_group: Optional[str],
    output_format: str,
    output: Optional[str],
) -> None:
    """Run a comprehensive assessment across all control families."""
    config = ctx.obj["config"]
    engine = build_engine(config, ctx.obj["dry_run"])
    tenant_id = _tenant(ctx, tenant)
    resource_group = resource_group or config["tenant"].get("resource_group")

    console.print()
    console.print("  [bold cyan]ATO COMPLIANCE ASSESSMENT[/bold cyan]")
    console.print(f"  Tenant:  [white]{tenant_id or '?'}[/white]")
    if resource_group:
        console.print(f"  Scope:   [white]{resource_group}[/white]")
    if ctx.obj["dry_run"]:
        console.print("  Mode:    [yellow]DRY RUN[/yellow]")
    console.print()

    assessment = _run(engine.run_comprehensive_assessment(
        tenant_id, resource_group, progress=_print_progress
    ))

    reports_dir = _reports_dir(ctx)
    if output_format == "junit":
        path = Path(output) if output else reports_dir / f"{assessment.assessment_id}.xml"
        result = export_junit_results(assessment, path)
        console.print(
            f"  JUnit: {result['total_tests']} tests, {result['failures']} failures -> {result['path']}"
        )
    else:
        if output_format == "json":
            content = assessment.model_dump_json(indent=2)
            path = Path(output) if output else reports_dir / f"{assessment.assessment_id}.json"
        else:
            content = generate_assessment_report(assessment, dry_run=ctx.obj["dry_run"])
            path = Path(output) if output else reports_dir / f"{assessment.assessment_id}.md"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        console.print(f"  Report: {path}")

    console.print()
    console.print(f"  Overall score: [bold]{assessment.overall_score:.1f}%[/bold]")
    if assessment.risk_profile:
        console.print(f"  Risk level:    [bold]{assessment.risk_profile.risk_level}[/bold]")
    console.print(f"  Findings:      {assessment.total_findings}")
    console.print(f"  {assessment.executive_summary}")


@ato_cli.command()
@click.option("--tenant", "-t", help="Tenant id (defaults to tenant.id in config)")
@click.option("--family", "-c", default=ALL_FAMILIES, show_default=True, help="Control family code or All")
@click.option("--collected-by", help="Collector attribution for the audit trail")
@click.pass_context
def evidence(ctx: click.Context, tenant: Optional[str], family: str, collected_by: Optional[str]) -> None:
    """Collect an evidence package for one or all control families."""
    config = ctx.obj["config"]
    engine = build_engine(config, ctx.obj["dry_run"])
    collected_by = collected_by or config["evidence"].get("collected_by", "")

    package = _run(engine.collect_compliance_evidence(
        _tenant(ctx, tenant), family, collected_by, progress=_print_progress
    ))

    console.print()
    console.print(f"  Package:      {package.package_id}")
    console.print(f"  Completeness: [bold]{package.completeness_score:.2f}%[/bold]")
    console.print(f"  {package.summary}")


@ato_cli.command()
@click.option("--tenant", "-t", help="Tenant id (defaults to tenant.id in config)")
@click.pass_context
def status(ctx: click.Context, tenant: Optional[str]) -> None:
    """Show continuous monitoring status."""
    engine = build_engine(ctx.obj["config"], ctx.obj["dry_run"])
    result = _run(engine.get_continuous_compliance_status(_tenant(ctx, tenant)))

    table = Table(title=f"Monitored controls ({result.tenant_id})")
    table.add_column("Control")
    table.add_column("Status")
    table.add_column("Drift")
    table.add_column("Alerts", justify="right")
    for control in result.control_statuses.values():
        table.add_row(
            control.control_id,
            control.status,
            "yes" if control.drift_detected else "",
            str(len(control.alerts)),
        )
    console.print(table)
    console.print(f"  Drift:             {result.compliance_drift_percentage:.1f}%")
    console.print(f"  Alerts:            {result.alert_count}")
    console.print(f"  Auto-remediated:   {result.auto_remediation_count}")


@ato_cli.command()
@click.option("--tenant", "-t", help="Tenant id (defaults to tenant.id in config)")
@click.option("--start", type=click.DateTime(formats=DATE_FORMATS), help="First day (YYYY-MM-DD)")
@click.option("--end", type=click.DateTime(formats=DATE_FORMATS), help="Last day (YYYY-MM-DD)")
@click.option("--days", type=int, default=30, show_default=True, help="Window when --start is omitted")
@click.pass_context
def timeline(
    ctx: click.Context,
    tenant: Optional[str],
    start: Optional[dt.datetime],
    end: Optional[dt.datetime],
    days: int,
) -> None:
    """Show the compliance timeline, events and insights."""
    engine = build_engine(ctx.obj["config"], ctx.obj["dry_run"])
    end_date = end.date() if end else dt.date.today()
    start_date = start.date() if start else end_date - dt.timedelta(days=max(days, 1) - 1)

    result = _run(engine.get_compliance_timeline(_tenant(ctx, tenant), start_date, end_date))

    console.print(f"  [bold]Timeline[/bold] {result.start_date} .. {result.end_date}")
    if result.trends:
        console.print(
            f"  Score trend: {result.trends.compliance_score_trend}, "
            f"findings: {result.trends.findings_trend}, "
            f"remediation: {result.trends.remediation_rate}"
        )
    if result.significant_events:
        console.print()
        console.print("  [bold]Significant events[/bold]")
        for event in result.significant_events:
            console.print(f"  - {event}")
    console.print()
    console.print("  [bold]Insights[/bold]")
    for insight in result.insights:
        console.print(f"  - {insight}")


@ato_cli.command()
@click.option("--tenant", "-t", help="Tenant id (defaults to tenant.id in config)")
@click.pass_context
def risk(ctx: click.Context, tenant: Optional[str]) -> None:
    """Run the standalone category risk assessment."""
    engine = build_engine(ctx.obj["config"], ctx.obj["dry_run"])
    result = _run(engine.perform_risk_assessment(_tenant(ctx, tenant)))

    table = Table(title="Risk categories")
    table.add_column("Category")
    table.add_column("Score", justify="right")
    table.add_column("Level")
    for name, category in result.risk_categories.items():
        table.add_row(name, f"{category.risk_score:.1f}", category.risk_level)
    console.print(table)
    console.print(f"  Trend: {result.risk_trend}")
    console.print(f"  {result.executive_summary}")


@ato_cli.command()
@click.option("--tenant", "-t", help="Tenant id (defaults to tenant.id in config)")
@click.pass_context
def certify(ctx: click.Context, tenant: Optional[str]) -> None:
    """Issue a compliance certificate from the latest assessment."""
    engine = build_engine(ctx.obj["config"], ctx.obj["dry_run"])
    certificate = _run(engine.generate_compliance_certificate(_tenant(ctx, tenant)))

    console.print(f"  [green]Issued[/green] certificate {certificate.certificate_id}")
    console.print(f"  Score:       {certificate.compliance_score:.1f}%")
    console.print(f"  Valid until: {certificate.valid_until:%Y-%m-%d}")
    console.print(f"  Hash:        {certificate.verification_hash}")


@ato_cli.command()
@click.argument("certificate_id")
@click.pass_context
def verify(ctx: click.Context, certificate_id: str) -> None:
    """Recompute and check a stored certificate's verification hash."""
    store = JsonAssessmentStore(Path(ctx.obj["config"]["storage"]["path"]))
    certificate = store.load_certificate(certificate_id)
    if certificate is None:
        console.print(f"  [red]ERROR[/red] Certificate not found: {certificate_id}")
        sys.exit(1)

    if verify_certificate(certificate):
        console.print(f"  [green]VALID[/green] {certificate_id}")
    else:
        console.print(f"  [red]TAMPERED[/red] {certificate_id}")
        sys.exit(2)


@ato_cli.command()
@click.option("--tenant", "-t", help="Tenant id (defaults to tenant.id in config)")
@click.option("--days", type=int, default=30, show_default=True)
@click.option("--audit", is_flag=True, help="Show the audit log instead of scores")
@click.option("--json", "as_json", is_flag=True, help="Emit JSON")
@click.pass_context
def history(ctx: click.Context, tenant: Optional[str], days: int, audit: bool, as_json: bool) -> None:
    """Show assessment history or the audit log."""
    engine = build_engine(ctx.obj["config"], ctx.obj["dry_run"])
    tenant_id = _tenant(ctx, tenant)
    end = dt.datetime.now(dt.timezone.utc)
    start = end - dt.timedelta(days=days)

    if audit:
        rows = _run(engine.get_assessment_audit_log(tenant_id, start, end))
    else:
        rows = _run(engine.get_compliance_history(tenant_id, start, end))

    if as_json:
        click.echo(json.dumps([r.model_dump(mode="json") for r in rows], indent=2))
        return

    if audit:
        table = Table(title=f"Audit log ({tenant_id})")
        table.add_column("Time")
        table.add_column("Action")
        table.add_column("Details")
        for entry in rows:
            table.add_row(f"{entry.timestamp:%Y-%m-%d %H:%M}", entry.action, entry.details)
    else:
        table = Table(title=f"Compliance history ({tenant_id})")
        table.add_column("Completed")
        table.add_column("Score", justify="right")
        table.add_column("Findings", justify="right")
        table.add_column("Critical", justify="right")
        for row in rows:
            table.add_row(
                f"{row.completed_at:%Y-%m-%d %H:%M}",
                f"{row.overall_score:.1f}%",
                str(row.summary.total),
                str(row.summary.critical),
            )
    console.print(table)


@ato_cli.command()
@click.option("--tenant", "-t", help="Tenant id (defaults to tenant.id in config)")
@click.argument("finding_id")
@click.pass_context
def resolve(ctx: click.Context, tenant: Optional[str], finding_id: str) -> None:
    """Mark a finding as remediated."""
    engine = build_engine(ctx.obj["config"], ctx.obj["dry_run"])
    if _run(engine.update_finding_status(_tenant(ctx, tenant), finding_id)):
        console.print(f"  [green]Resolved[/green] {finding_id}")
    else:
        console.print(f"  [yellow]WARN[/yellow] Finding not found: {finding_id}")
        sys.exit(1)


def main() -> None:
    ato_cli()


if __name__ == "__main__":
    main()
