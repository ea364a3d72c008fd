"""
Fallback log synchronization for Skillforge.

Merges events recorded in fallback logs back into the primary log of the
matching runtime entry. Only events confirmed written to the primary (or
already present there) are removed from the fallback, and event ids make
every merge safe to retry.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from skillforge.audit.logger import AccessEvent, append_event, read_events
from skillforge.errors import SkillforgeError, SyncError
from skillforge.storage.atomic import atomic_write_text
from skillforge.storage.paths import get_fallback_logs_dir

logger = logging.getLogger(__name__)


@dataclass
class MergeResult:
    """Counts from merging one fallback log."""

    migrated: int = 0
    skipped: int = 0
    remaining: int = 0


@dataclass
class SkillSyncResult:
    """Outcome of syncing one skill's fallback log."""

    skill: str
    fallback_path: Path
    primary_path: Path | None = None
    result: MergeResult = field(default_factory=MergeResult)
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.error is None


def _rewrite_remaining(fallback_path: Path, remaining: list[AccessEvent]) -> None:
    if not remaining:
        fallback_path.unlink(missing_ok=True)
        return
    atomic_write_text(fallback_path, "".join(e.model_dump_json() + "\n" for e in remaining))


def merge_fallback(fallback_path: Path, primary_path: Path) -> MergeResult:
    """
    Move the events of a fallback log into a primary log.

    Events whose id is already in the primary are counted as skipped and
    dropped from the fallback. If appending fails after K events, exactly
    those K leave the fallback and the rest stay for a later retry.

    Args:
        fallback_path: Fallback log to drain.
        primary_path: Primary log inside a built runtime entry.

    Returns:
        Migrated, skipped, and remaining counts.

    Raises:
        SyncError: If the primary log cannot be written.
    """
    events = read_events(fallback_path)
    if not events:
        fallback_path.unlink(missing_ok=True)
        return MergeResult()

    existing = {event.id for event in read_events(primary_path)}
    result = MergeResult()
    done = 0
    failure: OSError | None = None

    for event in events:
        if event.id in existing:
            result.skipped += 1
        else:
            try:
                append_event(primary_path, event, create_parents=False)
            except OSError as e:
                failure = e
                break
            existing.add(event.id)
            result.migrated += 1
        done += 1

    remaining = events[done:]
    try:
        _rewrite_remaining(fallback_path, remaining)
    except OSError as e:
        raise SyncError(f"failed to update fallback log: {e.strerror or e}", fallback_path) from e
    result.remaining = len(remaining)

    if failure is not None:
        raise SyncError(
            f"cannot write primary log after {done} of {len(events)} entries: "
            f"{failure.strerror or failure}",
            primary_path,
        ) from failure

    logger.debug(
        f"Merged {fallback_path} into {primary_path}: "
        f"{result.migrated} migrated, {result.skipped} skipped"
    )
    return result


def count_pending(fallback_path: Path, primary_path: Path) -> MergeResult:
    """What merge_fallback would do, without writing anything."""
    existing = {event.id for event in read_events(primary_path)}
    result = MergeResult()
    for event in read_events(fallback_path):
        if event.id in existing:
            result.skipped += 1
        else:
            result.migrated += 1
    return result


def list_fallback_logs(cwd: Path | None = None) -> list[Path]:
    """Fallback logs under the working directory, sorted by skill name."""
    logs_dir = get_fallback_logs_dir(cwd)
    if not logs_dir.is_dir():
        return []
    return sorted(path for path in logs_dir.glob("*.jsonl") if path.is_file())


def sync_all(
    locate_primary: Callable[[str], Path],
    cwd: Path | None = None,
    skill: str | None = None,
    dry_run: bool = False,
) -> list[SkillSyncResult]:
    """
    Merge every fallback log under the working directory.

    Each fallback log is merged into the primary log locate_primary
    returns for its skill name. A failure for one skill is
    recorded in its result and does not stop the others.

    Args:
        locate_primary: Maps a skill name to its primary log; raises
            SkillforgeError when the skill has no built runtime entry.
        cwd: Working directory holding the fallback logs.
        skill: Only sync this skill.
        dry_run: Report counts without writing.

    Returns:
        One result per fallback log.

    Raises:
        SyncError: If skill is given and has no fallback log.
    """
    logs = list_fallback_logs(cwd)
    if skill is not None:
        logs = [path for path in logs if path.stem == skill]
        if not logs:
            raise SyncError(
                f"no local logs for skill '{skill}'", get_fallback_logs_dir(cwd)
            )

    results: list[SkillSyncResult] = []
    for fallback_path in logs:
        outcome = SkillSyncResult(skill=fallback_path.stem, fallback_path=fallback_path)
        try:
            outcome.primary_path = locate_primary(outcome.skill)
            if dry_run:
                outcome.result = count_pending(fallback_path, outcome.primary_path)
            else:
                outcome.result = merge_fallback(fallback_path, outcome.primary_path)
        except (SkillforgeError, OSError) as e:
            logger.info(f"Failed to sync '{outcome.skill}': {e}")
            outcome.error = str(e)
        results.append(outcome)

    return results
