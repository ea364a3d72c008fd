"""
Output formatting utilities for the CLI.

Provides consistent output formatting across all CLI commands.
"""

import logging

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from skillforge.errors import SkillforgeError
from skillforge.skills.models import BuildReport, DeployStatus, StageStatus

# Global console instances
console = Console()
err_console = Console(stderr=True)

LOG_FORMAT = "%(message)s"

STAGE_STYLES = {
    StageStatus.OK: "green",
    StageStatus.SKIPPED: "dim",
    StageStatus.FAILED: "red",
    StageStatus.NOT_RUN: "dim",
}

DEPLOY_STYLES = {
    DeployStatus.DEPLOYED: "green",
    DeployStatus.CURRENT: "green",
    DeployStatus.FAILED: "red",
    DeployStatus.STALE: "yellow",
    DeployStatus.MISSING: "dim",
}


def configure_logging(verbose: bool = False) -> None:
    """Route library logging through Rich on stderr."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=LOG_FORMAT,
        datefmt="%H:%M:%S",
        handlers=[RichHandler(console=err_console, rich_tracebacks=True, show_path=verbose)],
        force=True,
    )


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]✓[/green] {message}")


def print_error(message: str) -> None:
    """Print an error message."""
    err_console.print(f"[red]✗[/red] {message}")


def print_warning(message: str) -> None:
    """Print a warning message."""
    err_console.print(f"[yellow]![/yellow] {message}")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[blue]i[/blue] {message}")


def print_failure(error: SkillforgeError | str) -> None:
    """Print a rendered pipeline error verbatim, without Rich markup."""
    err_console.print(str(error), markup=False, highlight=False, soft_wrap=True)


def styled(value: str, style: str) -> str:
    return f"[{style}]{value}[/{style}]"


def print_build_report(report: BuildReport) -> None:
    """Print the per-stage and per-target summary of a build."""
    if report.build_failed:
        print_failure(report.error or "build failed")
        return

    compile_style = STAGE_STYLES[report.compile_status]
    index_style = STAGE_STYLES[report.index_status]
    scope = report.scope.value if report.scope else "?"
    console.print(
        f"[bold]{report.skill}[/bold] ({scope}): "
        f"compile {styled(report.compile_status.value, compile_style)}, "
        f"index {styled(report.index_status.value, index_style)}"
    )
    if report.truncated:
        print_warning("stub exceeded the line limit and was truncated")

    if not report.deploy_results:
        return

    table = Table(title="Deploy Targets")
    table.add_column("Target", style="cyan")
    table.add_column("Status")
    table.add_column("Strategy", style="dim")
    table.add_column("Destination / Error", overflow="fold")

    for result in report.deploy_results:
        status = result.status
        detail = str(result.destination) if result.success else (result.error or "")
        table.add_row(
            result.agent,
            styled(status.value, DEPLOY_STYLES[status]),
            result.strategy.value if result.strategy else "-",
            detail,
        )

    console.print(table)
