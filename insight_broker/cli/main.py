"""
CLI interface for Insight Broker.

Provides command-line access to quotas, activity and the three generation
features.
"""

import json
import logging
import sqlite3
import sys
from typing import Optional

import typer
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.markdown import Markdown
from rich.table import Table

from insight_broker.config.loader import BrokerConfig, default_config, load_broker_config
from insight_broker.core.entitlements import resolve_entitlement
from insight_broker.core.errors import BrokerError
from insight_broker.core.pipeline import GenerationPipeline, GenerationResult
from insight_broker.core.requests import (
    ContentRefinementRequest,
    GenerationRequest,
    MarketAnalysisRequest,
    StrategicBriefRequest,
)
from insight_broker.gateway import build_gateway
from insight_broker.storage.models import PlanTier
from insight_broker.storage.repository import get_repository, initialize_schema

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1

SETUP_ERRORS = (OSError, ValueError, yaml.YAMLError, sqlite3.Error)

ConfigOption = typer.Option(None, "--config", "-c", help="Path to YAML configuration file")
DbOption = typer.Option(None, "--db", help="Override the SQLite database path")
VerboseOption = typer.Option(False, "--verbose", "-v", help="Log pipeline steps")
ModelOption = typer.Option(None, "--model", "-m", help="Style/model key")


def _configure_logging(verbose: bool) -> None:
    if verbose:
        logging.basicConfig(
            level=logging.INFO,
            format="%(message)s",
            handlers=[RichHandler(console=console, show_path=False)]
        )


def _load_config(config_path: Optional[str]) -> BrokerConfig:
    if config_path is None:
        return default_config()
    return load_broker_config(config_path)


def _db_path(config: BrokerConfig, db: Optional[str]) -> str:
    return db or config.storage.db_path


def _fail(message: str) -> None:
    console.print(f"[red]Error:[/] {message}")
    sys.exit(EXIT_CODE_FAIL)


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context):
    """Insight Broker CLI."""
    if ctx.invoked_subcommand is None:
        console.print("Insight Broker - Use --help to see available commands")


@app.command()
def status():
    """Check that the CLI is installed."""
    console.print("[green]✓[/] Insight Broker is ready")


@app.command()
def init(
    config_path: Optional[str] = ConfigOption,
    db: Optional[str] = DbOption
):
    """Initialize the Insight Broker database."""
    try:
        config = _load_config(config_path)
        initialize_schema(_db_path(config, db))
        console.print("[green]✓[/] Database initialized successfully")
        sys.exit(EXIT_CODE_PASS)
    except SETUP_ERRORS as e:
        console.print(f"[red]Error initializing database:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command("set-quota")
def set_quota(
    account: str = typer.Argument(..., help="Account identifier"),
    plan: str = typer.Option("trial", "--plan", "-p", help="trial, standard or pro"),
    limit: Optional[int] = typer.Option(None, "--limit", "-l", help="Token ceiling"),
    used: int = typer.Option(0, "--used", "-u", help="Tokens already used"),
    config_path: Optional[str] = ConfigOption,
    db: Optional[str] = DbOption
):
    """Create a new subscription row for an account."""
    try:
        tier = PlanTier(plan.lower())
    except ValueError:
        _fail(f"plan must be one of: {[tier.value for tier in PlanTier]}")

    try:
        config = _load_config(config_path)
        repository = get_repository(_db_path(config, db))
        quota = repository.create_quota(account, tier, tokens_limit=limit, tokens_used=used)
    except SETUP_ERRORS as e:
        _fail(str(e))

    console.print(
        f"[green]✓[/] {quota.account_id}: {quota.plan.value} plan, "
        f"{quota.tokens_used}/{quota.tokens_limit if quota.tokens_limit else 'default'} tokens"
    )


@app.command()
def quota(
    account: str = typer.Argument(..., help="Account identifier"),
    config_path: Optional[str] = ConfigOption,
    db: Optional[str] = DbOption
):
    """Show an account's effective token quota."""
    try:
        config = _load_config(config_path)
        repository = get_repository(_db_path(config, db))
        entitlement = resolve_entitlement(
            repository.get_quota(account),
            config.quota.default_tokens_limit
        )
    except SETUP_ERRORS as e:
        _fail(str(e))

    table = Table(title=f"Quota for {account}")
    table.add_column("Plan")
    table.add_column("Tokens used", justify="right")
    table.add_column("Tokens limit", justify="right")
    table.add_column("Status")
    if entitlement.unlimited:
        state = "[green]unlimited[/]"
    elif entitlement.exhausted:
        state = "[red]exhausted[/]"
    else:
        state = f"{entitlement.tokens_limit - entitlement.tokens_used:,} left"
    table.add_row(
        entitlement.plan.value,
        f"{entitlement.tokens_used:,}",
        f"{entitlement.tokens_limit:,}",
        state
    )
    console.print(table)
    if entitlement.quota is None:
        console.print("[dim]No subscription row; usage is not charged.[/]")


@app.command()
def activity(
    account: str = typer.Argument(..., help="Account identifier"),
    limit: int = typer.Option(10, "--limit", "-n", help="Number of entries"),
    config_path: Optional[str] = ConfigOption,
    db: Optional[str] = DbOption
):
    """List an account's most recent activity."""
    try:
        config = _load_config(config_path)
        repository = get_repository(_db_path(config, db))
        records = repository.fetch_recent_activities(account, limit=limit)
    except SETUP_ERRORS as e:
        _fail(str(e))

    if not records:
        console.print(f"\n[bold yellow]No activity recorded for {account}[/]\n")
        return

    table = Table(title=f"Activity for {account}")
    table.add_column("When")
    table.add_column("Type")
    table.add_column("Title")
    table.add_column("Description")
    table.add_column("Tokens", justify="right")
    for record in records:
        table.add_row(
            record.created_at.strftime("%Y-%m-%d %H:%M"),
            record.kind,
            record.title,
            record.description,
            f"{record.tokens_used:,}"
        )
    console.print(table)


def _run_generation(
    account: str,
    request: GenerationRequest,
    config_path: Optional[str],
    db: Optional[str],
    verbose: bool,
    as_json: bool
) -> None:
    _configure_logging(verbose)
    try:
        config = _load_config(config_path)
        repository = get_repository(_db_path(config, db))
        gateway = build_gateway(config.gateway)
    except SETUP_ERRORS as e:
        _fail(str(e))

    try:
        result = GenerationPipeline(gateway, repository, config).run(account, request)
    except (BrokerError,) + SETUP_ERRORS as e:
        _fail(str(e))
    finally:
        gateway.close()

    if as_json:
        console.print_json(json.dumps(result.to_response()))
    else:
        _display_result(result)
    sys.exit(EXIT_CODE_PASS)


def _display_result(result: GenerationResult) -> None:
    """Display a generation result for a human reader."""
    console.print(f"\n[bold]{result.kind.value}[/bold] ({result.model})")
    console.print("-" * 40)
    if isinstance(result.output, dict):
        if result.degraded:
            console.print("[yellow]No structured analysis could be extracted.[/]")
        console.print_json(json.dumps(result.output))
    else:
        console.print(Markdown(result.output))
    console.print(f"\nTokens used: {result.tokens_used:,}")


@app.command()
def intel(
    account: str = typer.Argument(..., help="Account identifier"),
    market: str = typer.Argument(..., help="Market to analyze"),
    model: Optional[str] = ModelOption,
    region: Optional[str] = typer.Option(None, "--region", help="global, philippines or custom"),
    custom_region: Optional[str] = typer.Option(None, "--custom-region"),
    industry: Optional[str] = typer.Option(None, "--industry"),
    depth: Optional[str] = typer.Option(None, "--depth", help="brief or detailed"),
    time_focus: Optional[str] = typer.Option(None, "--time-focus", help="current, 6months or 12months"),
    as_json: bool = typer.Option(False, "--json", help="Print the API payload"),
    config_path: Optional[str] = ConfigOption,
    db: Optional[str] = DbOption,
    verbose: bool = VerboseOption
):
    """Generate a structured market analysis."""
    try:
        request = MarketAnalysisRequest(
            market=market,
            model=model,
            region=region,
            custom_region=custom_region,
            industry=industry,
            depth=depth,
            time_focus=time_focus
        )
    except ValueError as e:
        _fail(str(e))
    _run_generation(account, request, config_path, db, verbose, as_json)


@app.command()
def refine(
    account: str = typer.Argument(..., help="Account identifier"),
    content: str = typer.Argument(..., help="Content to refine"),
    model: Optional[str] = ModelOption,
    tone: Optional[str] = typer.Option(None, "--tone", "-t"),
    custom_tone: Optional[str] = typer.Option(None, "--custom-tone"),
    length: Optional[str] = typer.Option(None, "--length", help="short, medium or long"),
    as_json: bool = typer.Option(False, "--json", help="Print the API payload"),
    config_path: Optional[str] = ConfigOption,
    db: Optional[str] = DbOption,
    verbose: bool = VerboseOption
):
    """Refine a piece of content."""
    try:
        request = ContentRefinementRequest(
            content=content,
            model=model,
            tone=tone,
            custom_tone=custom_tone,
            length=length
        )
    except ValueError as e:
        _fail(str(e))
    _run_generation(account, request, config_path, db, verbose, as_json)


@app.command()
def brief(
    account: str = typer.Argument(..., help="Account identifier"),
    objective: str = typer.Argument(..., help="Business objective"),
    model: Optional[str] = ModelOption,
    tone: Optional[str] = typer.Option(None, "--tone", "-t"),
    image_url: Optional[str] = typer.Option(None, "--image-url", help="Attached reference"),
    as_json: bool = typer.Option(False, "--json", help="Print the API payload"),
    config_path: Optional[str] = ConfigOption,
    db: Optional[str] = DbOption,
    verbose: bool = VerboseOption
):
    """Generate a strategic brief."""
    try:
        request = StrategicBriefRequest(
            objective=objective,
            model=model,
            tone=tone,
            image_url=image_url
        )
    except ValueError as e:
        _fail(str(e))
    _run_generation(account, request, config_path, db, verbose, as_json)


if __name__ == "__main__":
    app()
