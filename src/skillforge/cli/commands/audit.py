"""
skillforge audit - Access log commands.

Usage:
    skillforge audit sync
    skillforge audit sync --skill my-skill --dry-run
    skillforge audit stats my-skill --query sections --since 7d
    skillforge audit tail my-skill -n 50
"""

from typing import Annotated

import typer
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from skillforge.audit.stats import StatsQuery, StatsSummary, parse_time
from skillforge.cli.output import console, print_failure, print_info, print_success
from skillforge.errors import SkillforgeError
from skillforge.skills import get_skill_manager

app = typer.Typer(
    name="audit",
    help="Access log sync and statistics.",
)

COLUMN_TITLES = {
    StatsQuery.SECTIONS: ("Section", "File"),
    StatsQuery.FILES: ("File", None),
    StatsQuery.COMMANDS: ("Command", None),
    StatsQuery.PROJECTS: ("Project", None),
    StatsQuery.ERRORS: ("Target", "Error"),
}


@app.command()
def sync(
    skill: Annotated[
        str | None,
        typer.Option(
            "--skill",
            help="Only sync this skill's fallback log.",
        ),
    ] = None,
    dry_run: Annotated[
        bool,
        typer.Option(
            "--dry-run",
            help="Show what would be merged without writing.",
        ),
    ] = False,
) -> None:
    """Merge fallback access logs into the primary logs."""
    try:
        results = get_skill_manager().sync(skill, dry_run)
    except SkillforgeError as e:
        print_failure(e)
        raise typer.Exit(1)

    if not results:
        print_info("No local logs to sync")
        return

    table = Table(title="Sync (dry run)" if dry_run else "Sync")
    table.add_column("Skill", style="cyan")
    table.add_column("Migrated", justify="right")
    table.add_column("Skipped", justify="right")
    table.add_column("Remaining", justify="right")
    table.add_column("Error", style="red", overflow="fold")

    failed = 0
    for outcome in results:
        if not outcome.success:
            failed += 1
        table.add_row(
            outcome.skill,
            str(outcome.result.migrated),
            str(outcome.result.skipped),
            str(outcome.result.remaining),
            escape(outcome.error or ""),
        )
    console.print(table)

    if failed:
        print_failure(f"error: {failed} of {len(results)} log(s) failed to sync")
        raise typer.Exit(1)
    if not dry_run:
        print_success(f"Synced {len(results)} log(s)")


@app.command()
def stats(
    name: Annotated[
        str,
        typer.Argument(
            help="Skill name.",
        ),
    ],
    query: Annotated[
        StatsQuery,
        typer.Option(
            "--query",
            "-q",
            help="View to show.",
            case_sensitive=False,
        ),
    ] = StatsQuery.SUMMARY,
    since: Annotated[
        str | None,
        typer.Option(
            "--since",
            help="Start time (e.g., '24h', '7d', '2026-02-01').",
        ),
    ] = None,
    until: Annotated[
        str | None,
        typer.Option(
            "--until",
            help="End time.",
        ),
    ] = None,
    project: Annotated[
        list[str] | None,
        typer.Option(
            "--project",
            help="Only count events from under this directory (repeatable).",
        ),
    ] = None,
) -> None:
    """Show access statistics for a skill."""
    try:
        result = get_skill_manager().stats(
            name,
            query,
            since=parse_time(since) if since else None,
            until=parse_time(until) if until else None,
            projects=project or None,
        )
    except SkillforgeError as e:
        print_failure(e)
        raise typer.Exit(1)

    if isinstance(result, StatsSummary):
        if result.total_accesses == 0:
            print_info(f"No access events for '{name}'")
            return
        lines = [
            f"[bold]Total accesses:[/bold] {result.total_accesses}",
            f"[bold]Unique sections:[/bold] {result.unique_sections}",
            f"[bold]Unique files:[/bold] {result.unique_files}",
            f"[bold]Errors:[/bold] {result.error_count}",
            f"[bold]First access:[/bold] {result.first_access.isoformat()}",
            f"[bold]Last access:[/bold] {result.last_access.isoformat()}",
        ]
        console.print(Panel("\n".join(lines), title=f"Access Summary: {name}"))
        return

    if not result:
        print_info(f"No {query.value} recorded for '{name}'")
        return

    table = Table(title=f"{query.value.title()}: {name}")
    key_title, detail_title = COLUMN_TITLES[query]
    table.add_column(key_title, style="cyan", overflow="fold")
    if detail_title:
        table.add_column(detail_title, overflow="fold")
    table.add_column("Count", justify="right")

    for row in result:
        cells = [escape(row.key)]
        if detail_title:
            cells.append(escape(row.detail or "-"))
        cells.append(str(row.count))
        table.add_row(*cells)
    console.print(table)


@app.command()
def tail(
    name: Annotated[
        str,
        typer.Argument(
            help="Skill name.",
        ),
    ],
    lines: Annotated[
        int,
        typer.Option(
            "--lines",
            "-n",
            min=1,
            help="Number of events to show.",
        ),
    ] = 20,
) -> None:
    """View recent access events of a skill."""
    try:
        events = get_skill_manager().recent_events(name, lines)
    except SkillforgeError as e:
        print_failure(e)
        raise typer.Exit(1)

    if not events:
        print_info(f"No access events for '{name}'")
        return

    table = Table(title=f"Recent Access: {name}")
    table.add_column("Time", style="dim")
    table.add_column("Command", style="cyan")
    table.add_column("Target", overflow="fold")
    table.add_column("Error", style="red", overflow="fold")

    for event in events:
        target = event.section or event.args.get("path") or event.args.get("query") or ""
        table.add_row(
            event.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            event.command,
            escape(str(target)),
            escape(event.error or ""),
        )
    console.print(table)
