"""CLI entry point for the mgrant continuous-flow runner."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from mgrant_flow.auth.auth_manager import AuthManager
from mgrant_flow.errors import AuthError, ConfigError
from mgrant_flow.models.auth_state import validate
from mgrant_flow.models.config import AppConfig, ModuleDescriptor, default_manifest
from mgrant_flow.models.test_result import RunResult, TestStatus
from mgrant_flow.orchestrator import Orchestrator

console = Console()


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def _load_config(config: str) -> AppConfig:
    try:
        return AppConfig.load(config)
    except ConfigError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        console.print("Run 'mgrant-flow init' to create default config files.")
        sys.exit(1)


def _plan_table(descriptors: list[ModuleDescriptor], profile: str) -> Table:
    table = Table(title=f"Execution plan: {profile}")
    table.add_column("#", justify="right")
    table.add_column("Module", style="bold", no_wrap=True)
    table.add_column("Priority")
    table.add_column("Req")
    table.add_column("Timeout")
    table.add_column("Depends on")
    table.add_column("Est.", justify="right")
    for i, d in enumerate(descriptors, 1):
        table.add_row(
            str(i),
            d.name,
            d.priority,
            "yes" if d.required else "",
            f"{d.timeout_ms // 1000}s",
            ", ".join(sorted(d.dependencies)) or "-",
            f"{d.estimated_duration_seconds}s",
        )
    return table


def _print_summary(result: RunResult, reports: dict[str, str]) -> None:
    stats = result.stats
    colour = "green" if result.exit_code == 0 else "red"
    console.print(f"\n[bold {colour}]Run Complete[/bold {colour}]")

    table = Table(title="Results Summary")
    table.add_column("Metric", style="bold")
    table.add_column("Value")
    table.add_row("Run ID", result.run_id)
    table.add_row("Profile", result.profile)
    table.add_row("Duration", f"{result.duration_seconds}s")
    table.add_row("Steps", str(stats.total_steps))
    table.add_row("Total Tests", str(stats.total_tests))
    table.add_row("Passed", f"[green]{stats.passed_tests}[/green]")
    table.add_row("Failed", f"[red]{stats.failed_tests}[/red]")
    table.add_row("Success Rate", f"{stats.success_rate}%")
    table.add_row("Authenticated", "yes" if stats.is_authenticated else "no")
    console.print(table)

    modules = Table(title="Modules")
    modules.add_column("Module", style="bold")
    modules.add_column("Status")
    modules.add_column("Tests", justify="right")
    modules.add_column("Passed", justify="right")
    modules.add_column("Failed", justify="right")
    modules.add_column("Duration", justify="right")
    for outcome in result.modules:
        counts = stats.module_results.get(outcome.name)
        status = ("[green]PASSED[/green]" if outcome.status == TestStatus.PASSED
                  else "[red]FAILED[/red]")
        modules.add_row(
            outcome.name,
            status,
            str(counts.total if counts else 0),
            str(counts.passed if counts else 0),
            str(counts.failed if counts else 0),
            f"{outcome.duration_seconds}s",
        )
    console.print(modules)

    if result.error:
        console.print(f"[red]Run halted ({result.error_type}): {escape(result.error)}[/red]")
    for fmt, path in reports.items():
        console.print(f"  {fmt.upper()} report: [blue]{path}[/blue]")


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """Continuous-flow end-to-end runner for the mGrant web app"""
    setup_logging(verbose)


@cli.command()
@click.option("--profile", "-p", default="full", help="Execution profile from the manifest")
@click.option("--headed", is_flag=True, help="Show the browser window")
@click.option("--dry-run", "--preview", "dry_run", is_flag=True,
              help="Print the planned module order without executing")
@click.option("--workers", "-w", default=1, type=int, help="Worker count (always 1)")
@click.option("--config", "-c", default="mgrant-config.json", help="Config file path")
@click.option("--manifest", "-m", default="test-config.json", help="Module manifest path")
def run(profile: str, headed: bool, dry_run: bool, workers: int, config: str, manifest: str) -> None:
    """Run every module of a profile in one browser session."""
    if workers != 1:
        console.print(f"[yellow]--workers {workers} ignored: the continuous flow "
                      "shares one page, running with 1 worker[/yellow]")

    cfg = _load_config(config)
    orchestrator = Orchestrator(cfg, manifest, profile, headless=False if headed else None)

    try:
        if dry_run:
            descriptors = orchestrator.plan()
            console.print(_plan_table(descriptors, profile))
            total = sum(d.estimated_duration_seconds for d in descriptors)
            console.print(f"Estimated duration: [bold]{total}s[/bold] for {len(descriptors)} modules")
            return
        result = orchestrator.run()
    except ConfigError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        sys.exit(1)

    _print_summary(result, orchestrator.reports)
    sys.exit(result.exit_code)


@cli.command()
@click.option("--profile", "-p", default="full", help="Execution profile from the manifest")
@click.option("--config", "-c", default="mgrant-config.json", help="Config file path")
@click.option("--manifest", "-m", default="test-config.json", help="Module manifest path")
@click.pass_context
def plan(ctx: click.Context, profile: str, config: str, manifest: str) -> None:
    """Show the planned module order and estimated duration."""
    ctx.invoke(run, profile=profile, headed=False, dry_run=True, workers=1,
               config=config, manifest=manifest)


@cli.group()
def auth() -> None:
    """Inspect or clear the saved session snapshot."""
    pass


@auth.command("status")
@click.option("--config", "-c", default="mgrant-config.json", help="Config file path")
def auth_status(config: str) -> None:
    """Show what the saved session snapshot contains."""
    cfg = _load_config(config)
    manager = AuthManager(cfg)
    try:
        state = manager.read_snapshot()
    except AuthError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        sys.exit(1)
    if state is None:
        console.print(f"[yellow]No saved session at {manager.auth_file}[/yellow]")
        return

    table = Table(title="Saved Session")
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("File", str(manager.auth_file))
    table.add_row("Saved at", state.timestamp.isoformat())
    table.add_row("URL", state.url or "-")
    table.add_row("Token", "present" if state.token(cfg.token_key) else "[red]missing[/red]")
    table.add_row("Cookies", str(len(state.cookies)))
    table.add_row("Usable", "yes" if validate(state, cfg.token_key, cfg.user_key) else "[red]no[/red]")
    console.print(table)


@auth.command("clear")
@click.option("--config", "-c", default="mgrant-config.json", help="Config file path")
def auth_clear(config: str) -> None:
    """Delete the saved session snapshot."""
    cfg = _load_config(config)
    manager = AuthManager(cfg)
    if manager.clear_snapshot():
        console.print(f"[green]Removed {manager.auth_file}[/green]")
    else:
        console.print("[yellow]No saved session to remove[/yellow]")


@cli.command()
@click.option("--target", "-t", prompt="Target URL", default="https://qa.mgrant.in",
              help="Base URL of the app under test")
def init(target: str) -> None:
    """Create default config and manifest files."""
    config_path = Path("mgrant-config.json")
    manifest_path = Path("test-config.json")
    if config_path.exists() or manifest_path.exists():
        if not click.confirm("Config files already exist. Overwrite?"):
            return

    # resolved from the environment when the config is loaded
    AppConfig(base_url=target).save(
        config_path,
        credentials={"email": "env:MGRANT_EMAIL", "password": "env:MGRANT_PASSWORD"},
    )
    default_manifest().save(manifest_path)
    console.print(f"[green]Created {config_path} and {manifest_path}[/green]")
    console.print("\nSet MGRANT_EMAIL and MGRANT_PASSWORD, or edit the credentials, then run:")
    console.print("  [blue]mgrant-flow run --profile smoke[/blue]")


if __name__ == "__main__":
    cli()
