"""
Skill build and management commands.

Usage:
    skillforge build my-skill
    skillforge build ./path/to/skill --target claude --target cursor
    skillforge list --scope project
    skillforge status my-skill
    skillforge lint my-skill
    skillforge init my-skill --description "What it does"
"""

from pathlib import Path
from typing import Annotated

import typer
from rich.panel import Panel
from rich.table import Table

from skillforge.cli.output import (
    DEPLOY_STYLES,
    console,
    print_build_report,
    print_failure,
    print_success,
    styled,
)
from skillforge.errors import SkillforgeError
from skillforge.skills import BuildOptions, BuildState, Severity, SkillScope, get_skill_manager

STATE_STYLES = {
    BuildState.NORMAL: "green",
    BuildState.NOT_BUILT: "yellow",
    BuildState.OBSOLETE: "red",
}


def _scope(global_scope: bool) -> SkillScope | None:
    return SkillScope.GLOBAL if global_scope else None


def build(
    name_or_path: Annotated[
        str,
        typer.Argument(
            help="Skill name, or a path to a skill directory to import and build.",
        ),
    ],
    target: Annotated[
        list[str] | None,
        typer.Option(
            "--target",
            "-t",
            help="Agent id or skills directory (repeatable; default from config).",
        ),
    ] = None,
    global_scope: Annotated[
        bool,
        typer.Option(
            "--global",
            "-g",
            help="Use the global store.",
        ),
    ] = False,
    copy: Annotated[
        bool,
        typer.Option(
            "--copy",
            help="Copy into targets instead of linking.",
        ),
    ] = False,
    force: Annotated[
        bool,
        typer.Option(
            "--force",
            "-f",
            help="Rebuild even when the source is unchanged.",
        ),
    ] = False,
    lint: Annotated[
        bool,
        typer.Option(
            "--lint",
            help="Fail the build when the linter reports errors.",
        ),
    ] = False,
) -> None:
    """Compile, index, and deploy a skill."""
    manager = get_skill_manager()
    options = BuildOptions(
        force=force,
        force_copy=copy,
        scope=_scope(global_scope),
        lint_gate=lint,
    )

    try:
        report = manager.build(name_or_path, target or None, options)
    except SkillforgeError as e:
        print_failure(e)
        raise typer.Exit(1)

    print_build_report(report)
    if report.exit_code:
        raise typer.Exit(report.exit_code)


def list_skills(
    scope: Annotated[
        str,
        typer.Option(
            "--scope",
            "-s",
            help="Which store to list: project, global, or all.",
        ),
    ] = "all",
) -> None:
    """List source skills and their build state."""
    if scope not in ("project", "global", "all"):
        print_failure(f"invalid scope '{scope}' (use project, global, or all)")
        raise typer.Exit(1)

    manager = get_skill_manager()
    try:
        statuses = manager.list_skills(None if scope == "all" else SkillScope(scope))
    except SkillforgeError as e:
        print_failure(e)
        raise typer.Exit(1)

    if not statuses:
        console.print("[yellow]No skills found.[/yellow]")
        console.print("[dim]Create a skill: skillforge init my-skill[/dim]")
        return

    table = Table(title="Skills")
    table.add_column("Name", style="cyan")
    table.add_column("Scope", style="dim")
    table.add_column("State")
    table.add_column("Built", style="dim")

    for status in statuses:
        built = status.manifest.built_at.strftime("%Y-%m-%d %H:%M") if status.manifest else "-"
        table.add_row(
            status.skill,
            status.scope.value,
            styled(status.state.value, STATE_STYLES[status.state]),
            built,
        )

    console.print(table)
    console.print(f"\n[dim]Total: {len(statuses)} skill(s)[/dim]")


def status(
    name: Annotated[
        str,
        typer.Argument(
            help="Skill name.",
        ),
    ],
    global_scope: Annotated[
        bool,
        typer.Option(
            "--global",
            "-g",
            help="Use the global store.",
        ),
    ] = False,
) -> None:
    """Show a skill's build state and deploy targets."""
    manager = get_skill_manager()
    try:
        info = manager.status(name, _scope(global_scope))
    except SkillforgeError as e:
        print_failure(e)
        raise typer.Exit(1)

    lines = [
        f"[bold]Scope:[/bold] {info.scope.value}",
        f"[bold]State:[/bold] {styled(info.state.value, STATE_STYLES[info.state])}",
        f"[bold]Source:[/bold] {info.source_path}",
        f"[bold]Runtime:[/bold] {info.runtime_path}",
    ]
    if info.manifest:
        lines.append(f"[bold]Fingerprint:[/bold] {info.manifest.source_hash[:16]}")
        lines.append(f"[bold]Built:[/bold] {info.manifest.built_at.isoformat()}")
        lines.append(
            f"[bold]Stub:[/bold] {info.manifest.stub_lines} lines"
            + (" (truncated)" if info.manifest.truncated else "")
        )
    console.print(Panel("\n".join(lines), title=f"Skill: {info.skill}"))

    if info.targets:
        table = Table(title="Deploy Targets")
        table.add_column("Target", style="cyan")
        table.add_column("Status")
        table.add_column("Strategy", style="dim")
        table.add_column("Destination", overflow="fold")
        for target in info.targets:
            table.add_row(
                target.agent,
                styled(target.status.value, DEPLOY_STYLES[target.status]),
                target.strategy.value if target.strategy else "-",
                str(target.destination),
            )
        console.print(table)


def lint(
    name: Annotated[
        str,
        typer.Argument(
            help="Skill name.",
        ),
    ],
) -> None:
    """Check a skill source for common problems."""
    manager = get_skill_manager()
    try:
        diagnostics = manager.lint(name)
    except SkillforgeError as e:
        print_failure(e)
        raise typer.Exit(1)

    if not diagnostics:
        print_success(f"No problems found in '{name}'")
        return

    errors = 0
    for diagnostic in diagnostics:
        if diagnostic.severity == Severity.ERROR:
            errors += 1
            label = "[red]error[/red]"
        else:
            label = "[yellow]warning[/yellow]"
        location = diagnostic.file + (f":{diagnostic.line}" if diagnostic.line else "")
        console.print(f"{label}[{diagnostic.rule_id}] {location}: {diagnostic.message}")

    console.print(f"\n[dim]{errors} error(s), {len(diagnostics) - errors} warning(s)[/dim]")
    if errors:
        raise typer.Exit(1)


def init(
    name: Annotated[
        str,
        typer.Argument(
            help="Name for the new skill.",
        ),
    ],
    description: Annotated[
        str,
        typer.Option(
            "--description",
            "-d",
            help="Short description.",
        ),
    ] = "A new skill",
    global_scope: Annotated[
        bool,
        typer.Option(
            "--global",
            "-g",
            help="Create the skill in the global store.",
        ),
    ] = False,
) -> None:
    """Create a new skill from template."""
    manager = get_skill_manager()
    scope = SkillScope.GLOBAL if global_scope else SkillScope.PROJECT

    try:
        skill_path = manager.create_skill(name, description=description, scope=scope)
    except SkillforgeError as e:
        print_failure(e)
        raise typer.Exit(1)

    print_success("Skill created successfully!")
    console.print(f"[dim]Location: {skill_path}[/dim]")
    console.print("\nNext steps:")
    console.print(f"  1. Edit [cyan]{Path(skill_path) / 'SKILL.md'}[/cyan] to add instructions")
    console.print(f"  2. Build: [cyan]skillforge build {name}[/cyan]")
