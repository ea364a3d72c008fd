"""
Access statistics for Skillforge.

Aggregates the events of a skill's primary access log into the views the
`audit stats` command prints.
"""

import re
from collections import Counter
from datetime import datetime, timedelta, timezone
from enum import Enum

from pydantic import BaseModel, Field

from skillforge.audit.logger import AccessEvent
from skillforge.errors import ConfigurationError

DURATION_RE = re.compile(r"^(\d+)([mhdw])$")
DURATION_UNITS = {"m": "minutes", "h": "hours", "d": "days", "w": "weeks"}


class StatsQuery(str, Enum):
    """Views over a skill's access log."""

    SUMMARY = "summary"
    SECTIONS = "sections"
    FILES = "files"
    COMMANDS = "commands"
    PROJECTS = "projects"
    ERRORS = "errors"


class StatsSummary(BaseModel):
    """Totals for a set of events."""

    total_accesses: int = 0
    unique_sections: int = 0
    unique_files: int = 0
    error_count: int = 0
    first_access: datetime | None = None
    last_access: datetime | None = None


class StatsRow(BaseModel):
    """One counted key of a grouped view."""

    key: str
    detail: str | None = None
    count: int = Field(..., ge=0)


def parse_time(value: str, now: datetime | None = None) -> datetime:
    """
    Parse a --since/--until value.

    Accepts a relative duration ("30m", "24h", "7d", "2w") or an ISO-8601
    date or datetime. Naive values are taken as UTC.

    Raises:
        ConfigurationError: If the value cannot be parsed.
    """
    now = now or datetime.now(timezone.utc)
    match = DURATION_RE.match(value.strip())
    if match:
        amount, unit = match.groups()
        return now - timedelta(**{DURATION_UNITS[unit]: int(amount)})
    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError as e:
        raise ConfigurationError(f"invalid time filter '{value}'") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def filter_events(
    events: list[AccessEvent],
    since: datetime | None = None,
    until: datetime | None = None,
    projects: list[str] | None = None,
) -> list[AccessEvent]:
    """Keep events inside [since, until] whose cwd is under one of projects."""
    result = []
    for event in events:
        if since and event.timestamp < since:
            continue
        if until and event.timestamp > until:
            continue
        if projects and not any((event.cwd or "").startswith(p) for p in projects):
            continue
        result.append(event)
    return result


def _file_of(event: AccessEvent) -> str | None:
    target = event.args.get("file") or event.args.get("path")
    return str(target) if target else None


def summarize(events: list[AccessEvent]) -> StatsSummary:
    """Totals over events."""
    if not events:
        return StatsSummary()
    timestamps = [event.timestamp for event in events]
    return StatsSummary(
        total_accesses=len(events),
        unique_sections=len({e.section for e in events if e.section}),
        unique_files=len({f for f in map(_file_of, events) if f}),
        error_count=sum(1 for e in events if e.error),
        first_access=min(timestamps),
        last_access=max(timestamps),
    )


def group_events(events: list[AccessEvent], query: StatsQuery) -> list[StatsRow]:
    """
    Count events per key of a grouped view.

    Rows are ordered by count, most frequent first, then by key.

    Raises:
        ValueError: If query is SUMMARY, which is not a grouped view.
    """
    counter: Counter[tuple[str, str | None]] = Counter()

    for event in events:
        if query == StatsQuery.SECTIONS:
            if event.section and not event.error:
                counter[(event.section, _file_of(event))] += 1
        elif query == StatsQuery.FILES:
            target = _file_of(event)
            if target and not event.error:
                counter[(target, None)] += 1
        elif query == StatsQuery.COMMANDS:
            counter[(event.command, None)] += 1
        elif query == StatsQuery.PROJECTS:
            counter[(event.cwd or "<unknown>", None)] += 1
        elif query == StatsQuery.ERRORS:
            if event.error:
                counter[(event.section or _file_of(event) or "", event.error)] += 1
        else:
            raise ValueError(f"{query.value} is not a grouped view")

    rows = [
        StatsRow(key=key, detail=detail, count=count)
        for (key, detail), count in counter.items()
    ]
    rows.sort(key=lambda row: (-row.count, row.key, row.detail or ""))
    return rows
