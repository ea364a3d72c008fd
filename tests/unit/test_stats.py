"""
Unit tests for access statistics.
"""

from datetime import datetime, timedelta, timezone

import pytest

from skillforge.audit.logger import AccessEvent
from skillforge.audit.stats import (
    StatsQuery,
    filter_events,
    group_events,
    parse_time,
    summarize,
)
from skillforge.errors import ConfigurationError

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _event(command="show", section=None, hours_ago=0, cwd="/work/app", error=None, **args):
    return AccessEvent(
        id=f"{command}-{section}-{hours_ago}-{error}",
        run_id="run",
        command=command,
        skill="test-skill",
        section=section,
        timestamp=NOW - timedelta(hours=hours_ago),
        cwd=cwd,
        args=args,
        error=error,
    )


@pytest.fixture
def events():
    return [
        _event("show", "Instructions", 1, file="SKILL.md"),
        _event("show", "Instructions", 2, file="SKILL.md"),
        _event("show", "Versioning", 30, file="docs/release.md"),
        _event("open", None, 3, path="docs/release.md"),
        _event("search", None, 4, cwd="/work/other", query="tag"),
        _event("show", "Nope", 5, error="error[E005]: section 'Nope' not found"),
    ]


class TestParseTime:
    """Tests for parse_time()."""

    @pytest.mark.parametrize(
        "value,delta",
        [("30m", timedelta(minutes=30)), ("24h", timedelta(hours=24)), ("7d", timedelta(days=7)), ("2w", timedelta(weeks=2))],
    )
    def test_relative(self, value, delta):
        assert parse_time(value, now=NOW) == NOW - delta

    def test_iso_date_is_utc(self):
        assert parse_time("2026-02-01") == datetime(2026, 2, 1, tzinfo=timezone.utc)

    def test_iso_with_offset(self):
        parsed = parse_time("2026-02-01T10:00:00+02:00")
        assert parsed == datetime(2026, 2, 1, 8, 0, tzinfo=timezone.utc)

    def test_invalid(self):
        with pytest.raises(ConfigurationError, match="invalid time filter"):
            parse_time("yesterday")


class TestFilterEvents:
    """Tests for filter_events()."""

    def test_since(self, events):
        assert len(filter_events(events, since=NOW - timedelta(hours=3))) == 3

    def test_until(self, events):
        assert [e.section for e in filter_events(events, until=NOW - timedelta(hours=24))] == ["Versioning"]

    def test_projects(self, events):
        kept = filter_events(events, projects=["/work/other"])
        assert [e.command for e in kept] == ["search"]

    def test_no_filters(self, events):
        assert filter_events(events) == events


class TestSummarize:
    """Tests for summarize()."""

    def test_totals(self, events):
        summary = summarize(events)
        assert summary.total_accesses == 6
        assert summary.unique_sections == 3
        assert summary.unique_files == 2
        assert summary.error_count == 1
        assert summary.first_access == NOW - timedelta(hours=30)
        assert summary.last_access == NOW - timedelta(hours=1)

    def test_empty(self):
        summary = summarize([])
        assert summary.total_accesses == 0
        assert summary.first_access is None


class TestGroupEvents:
    """Tests for group_events()."""

    def test_sections(self, events):
        rows = group_events(events, StatsQuery.SECTIONS)
        assert [(r.key, r.detail, r.count) for r in rows] == [
            ("Instructions", "SKILL.md", 2),
            ("Versioning", "docs/release.md", 1),
        ]

    def test_files(self, events):
        rows = group_events(events, StatsQuery.FILES)
        assert [(r.key, r.count) for r in rows] == [("SKILL.md", 2), ("docs/release.md", 2)]

    def test_commands_ordered_by_count_then_key(self, events):
        rows = group_events(events, StatsQuery.COMMANDS)
        assert [(r.key, r.count) for r in rows] == [("show", 4), ("open", 1), ("search", 1)]

    def test_projects(self, events):
        rows = group_events(events, StatsQuery.PROJECTS)
        assert [(r.key, r.count) for r in rows] == [("/work/app", 5), ("/work/other", 1)]

    def test_errors(self, events):
        [row] = group_events(events, StatsQuery.ERRORS)
        assert row.key == "Nope"
        assert "E005" in row.detail

    def test_summary_is_not_grouped(self, events):
        with pytest.raises(ValueError):
            group_events(events, StatsQuery.SUMMARY)
