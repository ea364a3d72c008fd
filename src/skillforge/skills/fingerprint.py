"""
Content fingerprinting for skill sources.

A fingerprint is a SHA-256 digest over every tracked file's relative path
and content, taken in sorted path order so the result does not depend on
filesystem enumeration order. Hidden directories (.git, .hg, .svn, editor
caches) are not tracked.
"""

import hashlib
import logging
import os
from pathlib import Path

from skillforge.errors import SkillIOError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


def is_excluded_dir(name: str) -> bool:
    """Whether a directory name is excluded from tracking."""
    return name.startswith(".")


def iter_tracked_files(root: Path) -> list[tuple[str, Path]]:
    """List tracked entries under a skill root.

    Symlinks are listed but never followed, so a link to a directory does
    not pull the directory's contents into the walk.

    Args:
        root: Skill root directory.

    Returns:
        Sorted list of (relative posix path, absolute path).

    Raises:
        SkillIOError: If a directory cannot be listed.
    """

    def _on_error(error: OSError) -> None:
        raise SkillIOError("failed to scan directory", Path(error.filename or root), error)

    entries: list[tuple[str, Path]] = []
    for dirpath, dirnames, filenames in os.walk(root, onerror=_on_error, followlinks=False):
        current = Path(dirpath)
        kept_dirs = []
        for name in dirnames:
            if is_excluded_dir(name):
                continue
            if (current / name).is_symlink():
                filenames.append(name)
            else:
                kept_dirs.append(name)
        dirnames[:] = kept_dirs

        for name in filenames:
            path = current / name
            entries.append((path.relative_to(root).as_posix(), path))

    entries.sort(key=lambda entry: entry[0])
    return entries


def hash_file(path: Path) -> str:
    """SHA-256 hex digest of one file; symlinks hash their link text.

    Raises:
        SkillIOError: If the file vanished or cannot be read.
    """
    digest = hashlib.sha256()
    try:
        if path.is_symlink():
            digest.update(b"symlink:")
            digest.update(os.readlink(path).encode("utf-8"))
        else:
            with open(path, "rb") as f:
                for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
                    digest.update(chunk)
    except OSError as e:
        raise SkillIOError("failed to read file while fingerprinting", path, e) from e
    return digest.hexdigest()


def fingerprint(source_root: Path) -> str:
    """Compute the fingerprint of a skill source tree.

    Args:
        source_root: Readable skill directory.

    Returns:
        64-character lowercase hex digest.

    Raises:
        SkillIOError: If any tracked file disappears or is unreadable
            during the scan.
    """
    root = Path(source_root)
    if not root.is_dir():
        raise SkillIOError("skill source is not a directory", root)

    digest = hashlib.sha256()
    files = iter_tracked_files(root)
    for relpath, path in files:
        digest.update(relpath.encode("utf-8"))
        digest.update(b"\0")
        digest.update(hash_file(path).encode("ascii"))
        digest.update(b"\n")

    result = digest.hexdigest()
    logger.debug(f"Fingerprinted {len(files)} file(s) under {root}: {result[:12]}")
    return result
