"""
Runtime store entries.

A runtime entry holds the compiled stub at its root and everything else
under .skillforge-meta/: the manifest, the search index, and the primary
access log.
"""

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from skillforge.skills.models import META_DIR, PRIMARY_DOCUMENT, CompiledArtifact, Manifest

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "manifest.json"
ACCESS_LOG_FILENAME = "access.jsonl"


def meta_dir(entry: Path) -> Path:
    """Metadata directory of a runtime entry."""
    return entry / META_DIR


def manifest_path(entry: Path) -> Path:
    """Manifest file of a runtime entry."""
    return meta_dir(entry) / MANIFEST_FILENAME


def stub_path(entry: Path) -> Path:
    """Compiled stub of a runtime entry."""
    return entry / PRIMARY_DOCUMENT


def access_log_path(entry: Path) -> Path:
    """Primary access log of a runtime entry."""
    return meta_dir(entry) / ACCESS_LOG_FILENAME


def read_manifest(entry: Path) -> Manifest | None:
    """Read the manifest of a runtime entry.

    Returns:
        The manifest, or None if it is missing or unreadable.
    """
    path = manifest_path(entry)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return Manifest.model_validate(data)
    except FileNotFoundError:
        return None
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        logger.warning(f"Ignoring unreadable manifest {path}: {e}")
        return None


def write_artifact(entry: Path, artifact: CompiledArtifact) -> None:
    """Write a stub and manifest into a (staging) runtime entry."""
    meta_dir(entry).mkdir(parents=True, exist_ok=True)
    stub_path(entry).write_text(artifact.stub, encoding="utf-8")
    manifest_path(entry).write_text(
        artifact.manifest.model_dump_json(indent=2) + "\n", encoding="utf-8"
    )
