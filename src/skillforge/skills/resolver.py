"""
Skill resolver for Skillforge.

Locates a named skill's source directory in the project-local and global
source stores, and maps a source to its runtime store entry.

Precedence: the project store always wins over the global store when both
hold the name, whatever the state of their builds. Runtime stores are only
consulted, for read-only callers, when no source exists in either scope.
"""

import logging
from pathlib import Path

from skillforge.errors import MissingPrimaryDocumentError, SkillNotFoundError
from skillforge.skills.models import PRIMARY_DOCUMENT, SkillScope, SkillSource
from skillforge.storage.paths import (
    find_project_root,
    get_global_runtime_store,
    get_global_source_store,
    get_project_runtime_store,
    get_project_source_store,
)

logger = logging.getLogger(__name__)


def validate_skill_name(name: str) -> None:
    """Reject names that could address a path instead of a store entry.

    Raises:
        SkillNotFoundError: If the name is empty, contains a path separator,
            or is a relative path component.
    """
    if not name or "/" in name or "\\" in name or name in (".", ".."):
        raise SkillNotFoundError(name)


def get_source_store(scope: SkillScope, project_root: Path | None) -> Path | None:
    """Get the source store for a scope, or None if the scope has no store."""
    if scope == SkillScope.PROJECT:
        return get_project_source_store(project_root) if project_root else None
    return get_global_source_store()


def get_runtime_store(scope: SkillScope, project_root: Path | None) -> Path | None:
    """Get the runtime store for a scope, or None if the scope has no store."""
    if scope == SkillScope.PROJECT:
        return get_project_runtime_store(project_root) if project_root else None
    return get_global_runtime_store()


def _scopes(scope: SkillScope | None) -> list[SkillScope]:
    if scope is None:
        return [SkillScope.PROJECT, SkillScope.GLOBAL]
    return [scope]


def candidate_paths(
    name: str,
    scope: SkillScope | None = None,
    project_root: Path | None = None,
    include_runtime: bool = False,
) -> list[tuple[Path, SkillScope, bool]]:
    """List every location a skill name may resolve to, in precedence order.

    Returns:
        List of (path, scope, is_runtime) tuples.
    """
    candidates: list[tuple[Path, SkillScope, bool]] = []
    for current in _scopes(scope):
        store = get_source_store(current, project_root)
        if store is not None:
            candidates.append((store / name, current, False))
    if include_runtime:
        for current in _scopes(scope):
            store = get_runtime_store(current, project_root)
            if store is not None:
                candidates.append((store / name, current, True))
    return candidates


def resolve(
    name: str,
    scope: SkillScope | None = None,
    start_path: Path | None = None,
    allow_runtime: bool = False,
) -> SkillSource | None:
    """Resolve a skill name to its source directory.

    Resolution order:
    1. Project source store (.skillforge/skills/ under the project root)
    2. Global source store (~/.skillforge/skills/)
    3. With allow_runtime, project then global runtime store (read-only)

    Args:
        name: Skill name.
        scope: Restrict the search to one scope.
        start_path: Directory to start the project search from (default: cwd).
        allow_runtime: Fall back to compiled runtime entries. Only read-only
            operations may set this; builds never do.

    Returns:
        The resolved source, or None when no candidate exists.

    Raises:
        SkillNotFoundError: If the name is not a valid skill name.
        MissingPrimaryDocumentError: If a source directory exists but has
            no SKILL.md.
    """
    validate_skill_name(name)
    project_root = find_project_root(start_path)

    for path, current, is_runtime in candidate_paths(name, scope, project_root, allow_runtime):
        if not path.is_dir():
            continue
        if not is_runtime and not (path / PRIMARY_DOCUMENT).is_file():
            raise MissingPrimaryDocumentError(path)
        logger.debug(f"Resolved skill '{name}' to {path} ({current.value}, runtime={is_runtime})")
        return SkillSource(
            name=name,
            path=path.resolve(),
            scope=current,
            read_only=is_runtime,
            project_root=project_root,
        )

    return None


def resolve_or_raise(
    name: str,
    scope: SkillScope | None = None,
    start_path: Path | None = None,
    allow_runtime: bool = False,
) -> SkillSource:
    """Resolve a skill name, raising when it is not found.

    Raises:
        SkillNotFoundError: If no candidate exists, listing searched paths.
        MissingPrimaryDocumentError: If a source directory has no SKILL.md.
    """
    source = resolve(name, scope, start_path, allow_runtime)
    if source is None:
        project_root = find_project_root(start_path)
        searched = [
            path for path, _, _ in candidate_paths(name, scope, project_root, allow_runtime)
        ]
        raise SkillNotFoundError(name, searched)
    return source


def runtime_dir_for(source: SkillSource) -> Path:
    """Runtime store entry matching a source's scope."""
    if source.read_only:
        return source.path
    store = get_runtime_store(source.scope, source.project_root)
    assert store is not None
    return store / source.name


def discover_skills(
    scope: SkillScope | None = None, start_path: Path | None = None
) -> list[tuple[Path, SkillScope]]:
    """Discover all source skills, project store first.

    A directory counts as a skill when it contains SKILL.md.

    Returns:
        List of (skill_path, scope) sorted by name within each scope.
    """
    project_root = find_project_root(start_path)
    skills: list[tuple[Path, SkillScope]] = []

    for current in _scopes(scope):
        store = get_source_store(current, project_root)
        if store is None or not store.is_dir():
            continue
        for item in sorted(store.iterdir()):
            if item.is_dir() and (item / PRIMARY_DOCUMENT).is_file():
                skills.append((item, current))

    return skills
