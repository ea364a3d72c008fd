"""
Atomic file and directory publication for Skillforge.

Runtime store entries are replaced whole: a new entry is written into a
staging directory next to the live one and swapped in by rename, so readers
see either the previous complete entry or the new complete entry.
"""

import logging
import os
import shutil
import sys
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

if sys.platform == "win32":
    import msvcrt
else:
    import fcntl

logger = logging.getLogger(__name__)

BACKUP_SUFFIX = ".previous"
STAGING_INFIX = ".staging-"


def atomic_write_text(path: Path, text: str) -> None:
    """
    Write a text file atomically using a temporary file and os.replace.

    Args:
        path: Destination file.
        text: Content to write.

    Raises:
        OSError: If the file cannot be written. The destination is untouched.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


def make_staging_dir(dest: Path) -> Path:
    """
    Create an empty staging directory beside a runtime entry.

    Args:
        dest: The entry the staging directory will replace.

    Returns:
        Path to the new staging directory.
    """
    dest.parent.mkdir(parents=True, exist_ok=True)
    return Path(tempfile.mkdtemp(prefix=f".{dest.name}{STAGING_INFIX}", dir=dest.parent))


def _backup_path(dest: Path) -> Path:
    return dest.with_name(f".{dest.name}{BACKUP_SUFFIX}")


def publish_directory(staging: Path, dest: Path) -> None:
    """
    Replace the directory at dest with staging.

    The live entry is moved aside to a backup name, the staging directory is
    renamed into place, and the backup is removed. If the second rename
    fails, the backup is moved back so the previous entry stays intact.

    Args:
        staging: Fully written directory.
        dest: Live entry to replace.

    Raises:
        OSError: If the swap fails. dest holds the previous entry (or
            nothing on first publish) when this is raised.
    """
    backup = _backup_path(dest)
    if backup.exists():
        shutil.rmtree(backup)

    had_previous = dest.exists()
    if had_previous:
        os.rename(dest, backup)

    try:
        os.rename(staging, dest)
    except OSError:
        if had_previous:
            os.rename(backup, dest)
        raise

    if had_previous:
        shutil.rmtree(backup, ignore_errors=True)
    logger.debug(f"Published {dest}")


def recover_directory(dest: Path) -> bool:
    """
    Restore a runtime entry left half-swapped by an interrupted publish.

    Leftover staging directories are removed. If the live entry is missing
    but a backup exists, the backup is moved back into place.

    Args:
        dest: Live entry path.

    Returns:
        True if a backup was restored.
    """
    if dest.parent.exists():
        for leftover in dest.parent.glob(f".{dest.name}{STAGING_INFIX}*"):
            logger.debug(f"Removing leftover staging directory {leftover}")
            shutil.rmtree(leftover, ignore_errors=True)

    backup = _backup_path(dest)
    if not backup.exists():
        return False

    if dest.exists():
        shutil.rmtree(backup, ignore_errors=True)
        return False

    logger.warning(f"Restoring {dest} from interrupted publish")
    os.rename(backup, dest)
    return True


def _lock_file(handle) -> None:
    if sys.platform == "win32":
        handle.seek(0)
        msvcrt.locking(handle.fileno(), msvcrt.LK_LOCK, 1)
    else:
        fcntl.flock(handle.fileno(), fcntl.LOCK_EX)


def _unlock_file(handle) -> None:
    if sys.platform == "win32":
        handle.seek(0)
        msvcrt.locking(handle.fileno(), msvcrt.LK_UNLCK, 1)
    else:
        fcntl.flock(handle.fileno(), fcntl.LOCK_UN)


@contextmanager
def skill_lock(entry: Path) -> Iterator[Path]:
    """
    Hold an exclusive advisory lock for one runtime entry.

    The lock file sits beside the entry, so builds of different skills never
    contend and the lock survives the entry being swapped out.

    Args:
        entry: Runtime entry path (<runtime>/<name>).

    Yields:
        Path to the lock file.
    """
    lock_path = entry.with_name(f".{entry.name}.lock")
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    with open(lock_path, "a+", encoding="utf-8") as handle:
        _lock_file(handle)
        try:
            yield lock_path
        finally:
            _unlock_file(handle)
