"""
Main Typer application for skillforge CLI.

This module defines the root CLI application and registers all commands.
"""

from typing import Annotated

import typer

from skillforge import __version__
from skillforge.cli.commands import audit, read, skill
from skillforge.cli.output import configure_logging, print_info

# Create the main Typer app
app = typer.Typer(
    name="skillforge",
    help="Compile, index, and deploy agent skills.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        print_info(f"skillforge version [green]{__version__}[/green]")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Show debug logging on stderr.",
        ),
    ] = False,
) -> None:
    """
    [bold blue]skillforge[/bold blue] - skill compiler for coding agents

    Builds a skill directory into a short stub plus a search index, and
    deploys it to each agent's skills directory. Agents read the full
    content back through [bold]outline[/bold], [bold]show[/bold], [bold]open[/bold],
    [bold]sources[/bold], and [bold]search[/bold].
    """
    configure_logging(verbose)


# Build and management
app.command("build")(skill.build)
app.command("list")(skill.list_skills)
app.command("status")(skill.status)
app.command("lint")(skill.lint)
app.command("init")(skill.init)

# Read access
app.command("outline")(read.outline)
app.command("show")(read.show)
app.command("open")(read.open_file)
app.command("sources")(read.sources)
app.command("search")(read.search)

# Access logs
app.add_typer(audit.app, name="audit")
app.command("sync")(audit.sync)


if __name__ == "__main__":
    app()
