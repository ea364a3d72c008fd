"""
Access logging for Skillforge.

Read-access commands (outline, show, open, sources, search) record one
JSON line per invocation in the primary log of the skill's runtime entry.
When the runtime store is not writable (a sandboxed agent, a read-only
home) the event goes to a fallback log under the working directory
instead, and `skillforge sync` merges it back later. Logging never fails
the command that triggered it.
"""

import json
import logging
import os
import secrets
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from skillforge.config.schema import AnalyticsConfig
from skillforge.storage.paths import get_fallback_logs_dir

logger = logging.getLogger(__name__)

RUN_ID_ENV = "SKILLFORGE_RUN_ID"

_run_id: str | None = None


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AccessEvent(BaseModel):
    """A single read-access event."""

    model_config = ConfigDict(extra="allow")

    id: str
    timestamp: datetime = Field(default_factory=_utc_now)
    run_id: str
    command: str
    skill: str
    section: str | None = None
    cwd: str | None = None
    args: dict[str, Any] = Field(default_factory=dict)
    error: str | None = None


def get_run_id() -> str:
    """
    Get the run id shared by every event of this process.

    Agents can set SKILLFORGE_RUN_ID to group the events of a whole
    session; otherwise a timestamp plus a short random suffix is used.
    """
    global _run_id

    run_id = os.environ.get(RUN_ID_ENV)
    if run_id:
        return run_id
    if _run_id is None:
        _run_id = f"{_utc_now():%Y%m%dT%H%M%S}Z-{secrets.token_hex(2)}"
    return _run_id


def create_event(
    command: str,
    skill: str,
    section: str | None = None,
    args: dict[str, Any] | None = None,
    error: str | None = None,
    cwd: Path | None = None,
) -> AccessEvent:
    """
    Create an access event with a fresh id.

    Args:
        command: Read-access command name.
        skill: Skill name.
        section: Section or file the command targeted, if any.
        args: Command arguments worth keeping.
        error: Rendered error, when the command failed.
        cwd: Working directory. Defaults to the current one.

    Returns:
        The event.
    """
    return AccessEvent(
        id=uuid4().hex,
        run_id=get_run_id(),
        command=command,
        skill=skill,
        section=section,
        cwd=str(cwd or Path.cwd()),
        args={key: value for key, value in (args or {}).items() if value is not None},
        error=error,
    )


def fallback_log_path(skill: str, cwd: Path | None = None) -> Path:
    """Fallback log of a skill under the working directory."""
    return get_fallback_logs_dir(cwd) / f"{skill}.jsonl"


def append_event(path: Path, event: AccessEvent, create_parents: bool = True) -> None:
    """
    Append one event as a JSON line.

    Raises:
        OSError: If the file cannot be written.
    """
    if create_parents:
        path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as f:
        f.write(event.model_dump_json() + "\n")
        f.flush()
        os.fsync(f.fileno())


def read_events(path: Path) -> list[AccessEvent]:
    """
    Read every well-formed event of a log file.

    Malformed lines are skipped with a warning.

    Returns:
        Events in file order; empty if the file does not exist.
    """
    if not path.exists():
        return []

    events: list[AccessEvent] = []
    with path.open(encoding="utf-8") as f:
        for number, line in enumerate(f, start=1):
            if not line.strip():
                continue
            try:
                events.append(AccessEvent.model_validate(json.loads(line)))
            except (json.JSONDecodeError, ValidationError) as e:
                logger.warning(f"Skipping malformed access log line {path}:{number}: {e}")
    return events


class AccessLogger:
    """
    Appends access events to a primary log with a fallback.

    The primary log lives inside a built runtime entry and is never created
    on demand: an unbuilt or read-only entry sends events to the fallback.
    """

    def __init__(
        self,
        primary_path: Path,
        fallback_path: Path | None = None,
        enable: bool = True,
        stale_hours: int = 1,
    ) -> None:
        """
        Initialize the access logger.

        Args:
            primary_path: Log inside the runtime entry.
            fallback_path: Log used when the primary cannot be written.
            enable: Whether logging is enabled.
            stale_hours: Age after which a leftover fallback log is reported.
        """
        self.primary_path = primary_path
        self.fallback_path = fallback_path
        self.enable = enable
        self.stale_hours = stale_hours

    @classmethod
    def for_skill(
        cls,
        skill: str,
        primary_path: Path,
        config: AnalyticsConfig | None = None,
        cwd: Path | None = None,
    ) -> "AccessLogger":
        """
        Create an access logger for one skill.

        Args:
            skill: Skill name.
            primary_path: Access log inside the skill's runtime entry.
            config: Analytics configuration.
            cwd: Working directory holding the fallback logs.

        Returns:
            Configured AccessLogger
        """
        config = config or AnalyticsConfig()
        return cls(
            primary_path=primary_path,
            fallback_path=fallback_log_path(skill, cwd),
            enable=config.enable,
            stale_hours=config.fallback_stale_hours,
        )

    def fallback_is_stale(self, max_age_hours: int | None = None) -> bool:
        """Whether a fallback log exists and has not been synced for a while."""
        if self.fallback_path is None or not self.fallback_path.exists():
            return False
        hours = self.stale_hours if max_age_hours is None else max_age_hours
        modified = datetime.fromtimestamp(self.fallback_path.stat().st_mtime)
        return datetime.now() - modified > timedelta(hours=hours)

    def log(self, event: AccessEvent) -> bool:
        """
        Record an event. Never raises.

        Returns:
            True if the event was written to either log.
        """
        if not self.enable:
            return False

        try:
            if self.fallback_is_stale():
                logger.warning(
                    f"Unsynced access logs in {self.fallback_path} are older than "
                    f"{self.stale_hours}h; run 'skillforge sync'"
                )
        except OSError as e:
            logger.debug(f"Could not check fallback log age: {e}")

        try:
            append_event(self.primary_path, event, create_parents=False)
            return True
        except OSError as e:
            logger.debug(f"Primary access log unavailable ({e}), using fallback")

        if self.fallback_path is None:
            logger.warning(f"Access logging disabled: cannot write {self.primary_path}")
            return False

        try:
            append_event(self.fallback_path, event)
            return True
        except OSError as e:
            logger.warning(f"Access logging disabled: {e}")
            return False
