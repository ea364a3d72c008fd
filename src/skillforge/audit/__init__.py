"""
Access logging for Skillforge.

This package records read-access events per skill, keeps a fallback log
when the runtime store is not writable, merges fallback logs back, and
aggregates access statistics.
"""

from skillforge.audit.logger import (
    AccessEvent,
    AccessLogger,
    append_event,
    create_event,
    fallback_log_path,
    get_run_id,
    read_events,
)
from skillforge.audit.stats import StatsQuery, StatsRow, StatsSummary, group_events, summarize
from skillforge.audit.sync import MergeResult, SkillSyncResult, merge_fallback, sync_all

__all__ = [
    "AccessEvent",
    "AccessLogger",
    "MergeResult",
    "SkillSyncResult",
    "StatsQuery",
    "StatsRow",
    "StatsSummary",
    "append_event",
    "create_event",
    "fallback_log_path",
    "get_run_id",
    "group_events",
    "merge_fallback",
    "read_events",
    "summarize",
    "sync_all",
]
