"""
Read-access commands.

These are the commands compiled stubs point agents at. Document content is
written to stdout as plain text so agents can consume it unchanged.

Usage:
    skillforge outline my-skill
    skillforge show my-skill --section "Getting Started"
    skillforge open my-skill docs/advanced.md
    skillforge sources my-skill --depth 2
    skillforge search "release checklist" --skill my-skill
"""

from typing import Annotated

import typer
from rich.markup import escape
from rich.table import Table

from skillforge.cli.output import console, print_failure
from skillforge.errors import SkillforgeError
from skillforge.skills import get_skill_manager


def outline(
    name: Annotated[
        str,
        typer.Argument(
            help="Skill name.",
        ),
    ],
    level: Annotated[
        int | None,
        typer.Option(
            "--level",
            "-l",
            min=1,
            max=6,
            help="Deepest heading level to list.",
        ),
    ] = None,
) -> None:
    """List a skill's headings."""
    try:
        headings = get_skill_manager().outline(name, level)
    except SkillforgeError as e:
        print_failure(e)
        raise typer.Exit(1)

    current_file = None
    for heading in headings:
        if heading.file != current_file:
            if current_file is not None:
                typer.echo("")
            typer.echo(f"{heading.file}:")
            current_file = heading.file
        indent = "  " * heading.level
        typer.echo(f"{indent}{'#' * heading.level} {heading.text} (line {heading.line})")


def show(
    name: Annotated[
        str,
        typer.Argument(
            help="Skill name.",
        ),
    ],
    section: Annotated[
        str,
        typer.Option(
            "--section",
            "-s",
            help="Heading text of the section to print.",
        ),
    ],
    file: Annotated[
        str | None,
        typer.Option(
            "--file",
            help="Only match headings in this file.",
        ),
    ] = None,
    max_lines: Annotated[
        int | None,
        typer.Option(
            "--max-lines",
            "-n",
            min=1,
            help="Print at most this many lines.",
        ),
    ] = None,
) -> None:
    """Print one section of a skill, with its subsections."""
    try:
        content = get_skill_manager().show(name, section, file, max_lines)
    except SkillforgeError as e:
        print_failure(e)
        raise typer.Exit(1)
    typer.echo(content)


def open_file(
    name: Annotated[
        str,
        typer.Argument(
            help="Skill name.",
        ),
    ],
    path: Annotated[
        str,
        typer.Argument(
            help="File path relative to the skill root.",
        ),
    ],
    max_lines: Annotated[
        int | None,
        typer.Option(
            "--max-lines",
            "-n",
            min=1,
            help="Print at most this many lines.",
        ),
    ] = None,
) -> None:
    """Print a file of a skill source."""
    try:
        content = get_skill_manager().open_file(name, path, max_lines)
    except SkillforgeError as e:
        print_failure(e)
        raise typer.Exit(1)
    typer.echo(content)


def sources(
    name: Annotated[
        str,
        typer.Argument(
            help="Skill name.",
        ),
    ],
    depth: Annotated[
        int | None,
        typer.Option(
            "--depth",
            min=1,
            help="Maximum directory depth.",
        ),
    ] = None,
    directory: Annotated[
        str | None,
        typer.Option(
            "--dir",
            help="Only list this subdirectory.",
        ),
    ] = None,
    limit: Annotated[
        int,
        typer.Option(
            "--limit",
            min=1,
            help="Maximum number of files.",
        ),
    ] = 100,
    pattern: Annotated[
        str | None,
        typer.Option(
            "--pattern",
            "-p",
            help="Glob matched against file names (e.g. '*.md').",
        ),
    ] = None,
) -> None:
    """List the files of a skill source."""
    try:
        paths, total = get_skill_manager().sources(name, depth, directory, limit, pattern)
    except SkillforgeError as e:
        print_failure(e)
        raise typer.Exit(1)

    for path in paths:
        typer.echo(path)
    if total > len(paths):
        typer.echo(f"... ({total - len(paths)} more)")


def search(
    query: Annotated[
        str,
        typer.Argument(
            help="Search query.",
        ),
    ],
    skill: Annotated[
        str | None,
        typer.Option(
            "--skill",
            help="Only search this skill.",
        ),
    ] = None,
    limit: Annotated[
        int,
        typer.Option(
            "--limit",
            "-n",
            min=1,
            help="Maximum number of results.",
        ),
    ] = 10,
) -> None:
    """Full-text search over built skills."""
    try:
        hits = get_skill_manager().search(query, skill, limit)
    except SkillforgeError as e:
        print_failure(e)
        raise typer.Exit(1)

    if not hits:
        console.print(f"[yellow]No results for '{escape(query)}'[/yellow]")
        return

    table = Table(title=f"Search Results for '{escape(query)}'")
    table.add_column("Skill", style="cyan")
    table.add_column("Location", style="dim")
    table.add_column("Section")
    table.add_column("Excerpt", overflow="fold")

    for hit in hits:
        table.add_row(
            hit.skill,
            f"{hit.file}:{hit.line}",
            hit.section or "-",
            escape(hit.excerpt),
        )

    console.print(table)
