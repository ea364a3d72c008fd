"""CLI command modules."""

from skillforge.cli.commands import audit, read, skill

__all__ = ["audit", "read", "skill"]
