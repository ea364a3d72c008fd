"""
Read-access operations for Skillforge.

These are the commands a compiled stub points agents at: outline, show,
open, sources, and search. Each invocation is recorded through the access
logger, successful or not.

Outline and show read from the skill's search index when it matches the
current source, and parse the source directly otherwise. When no source
exists in either scope they fall back to the runtime store, where the
index is the only copy of the content.
"""

import fnmatch
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

from skillforge.audit.logger import AccessLogger, create_event
from skillforge.config.schema import Config
from skillforge.errors import (
    IndexUnusableError,
    PathEscapeError,
    SectionNotFoundError,
    SkillFileNotFoundError,
    SkillforgeError,
)
from skillforge.skills.fingerprint import fingerprint, iter_tracked_files
from skillforge.skills.index import (
    IndexState,
    TextUnit,
    check_index_state,
    collect_units,
    index_path,
    read_sections,
    search,
    search_many,
)
from skillforge.skills.models import Heading, SearchHit, SkillSource
from skillforge.skills.parser import read_text
from skillforge.skills.resolver import discover_skills, resolve_or_raise, runtime_dir_for
from skillforge.skills.runtime import access_log_path

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_SUGGESTIONS = 5


def limit_lines(content: str, max_lines: int | None) -> str:
    """Cut content to max_lines, noting how many lines were left out."""
    if max_lines is None:
        return content
    lines = content.split("\n")
    if len(lines) <= max_lines:
        return content
    return "\n".join(lines[:max_lines]) + f"\n... ({len(lines) - max_lines} more lines)"


def _inside(root: Path, relpath: str) -> Path:
    """Resolve relpath under root, rejecting anything that escapes it."""
    canonical_root = root.resolve()
    resolved = (canonical_root / relpath).resolve()
    if not resolved.is_relative_to(canonical_root):
        raise PathEscapeError(Path(relpath), resolved)
    return resolved


class SkillReader:
    """Read-only access to built and unbuilt skills."""

    def __init__(
        self,
        config: Config | None = None,
        start_path: Path | None = None,
        cwd: Path | None = None,
    ):
        """Initialize the reader.

        Args:
            config: Resolved configuration.
            start_path: Directory to start the project search from.
            cwd: Working directory recorded in events and holding fallback logs.
        """
        self.config = config or Config()
        self.start_path = start_path
        self.cwd = cwd

    # -------------------------------------------------------------------------
    # Plumbing
    # -------------------------------------------------------------------------

    def _resolve(self, name: str, allow_runtime: bool = True) -> SkillSource:
        return resolve_or_raise(name, start_path=self.start_path, allow_runtime=allow_runtime)

    def _record(
        self,
        command: str,
        source: SkillSource,
        section: str | None,
        args: dict[str, Any],
        error: str | None,
    ) -> None:
        access_logger = AccessLogger.for_skill(
            source.name,
            access_log_path(runtime_dir_for(source)),
            self.config.analytics,
            self.cwd,
        )
        access_logger.log(
            create_event(command, source.name, section, args, error, self.cwd)
        )

    def _logged(
        self,
        command: str,
        source: SkillSource,
        section: str | None,
        args: dict[str, Any],
        func: Callable[[], T],
    ) -> T:
        error: str | None = None
        try:
            return func()
        except SkillforgeError as e:
            error = str(e)
            raise
        finally:
            self._record(command, source, section, args, error)

    def _units(self, source: SkillSource) -> list[TextUnit]:
        """Text units of a skill, from the index when it is current."""
        runtime_dir = runtime_dir_for(source)
        if source.read_only:
            return read_sections(runtime_dir)

        state = check_index_state(
            index_path(runtime_dir),
            source,
            fingerprint(source.path),
            self.config.search.tokenizer,
        )
        if state == IndexState.UP_TO_DATE:
            try:
                return read_sections(runtime_dir)
            except IndexUnusableError as e:
                logger.debug(f"Index unreadable, parsing source instead: {e}")
        else:
            logger.debug(f"Index {state.value} for '{source.name}', parsing source")
        return collect_units(source, self.config.search)

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    def outline(self, name: str, max_level: int | None = None) -> list[Heading]:
        """List a skill's headings in file and line order.

        Args:
            name: Skill name.
            max_level: Deepest heading level to include.

        Returns:
            Headings across every Markdown file of the skill.
        """
        source = self._resolve(name)

        def _outline() -> list[Heading]:
            headings = [
                Heading(level=unit.level, text=unit.section, file=unit.file, line=unit.line)
                for unit in self._units(source)
                if unit.level > 0 and (max_level is None or unit.level <= max_level)
            ]
            headings.sort(key=lambda h: (h.file, h.line))
            return headings

        return self._logged("outline", source, None, {"level": max_level}, _outline)

    def show(
        self,
        name: str,
        section: str,
        file: str | None = None,
        max_lines: int | None = None,
    ) -> str:
        """Print one section, including its subsections.

        Headings match case-insensitively. A query copied from a stub
        reference line ("Title - description") matches on its title.

        Args:
            name: Skill name.
            section: Heading text.
            file: Restrict the match to one file.
            max_lines: Cut the output after this many lines.

        Raises:
            SectionNotFoundError: If no heading matches; carries suggestions.
        """
        source = self._resolve(name)

        def _show() -> str:
            units = self._units(source)
            position = self._find_section(units, section, file)
            matched = units[position]

            parts = [matched.content]
            for unit in units[position + 1 :]:
                if unit.file != matched.file or unit.level <= matched.level:
                    break
                parts.append(unit.content)
            return limit_lines("\n\n".join(parts), max_lines)

        args = {"file": file, "max_lines": max_lines}
        return self._logged("show", source, section, args, _show)

    def _find_section(self, units: list[TextUnit], section: str, file: str | None) -> int:
        candidates = [
            (position, unit)
            for position, unit in enumerate(units)
            if unit.level > 0 and (file is None or unit.file == file)
        ]

        queries = [section.strip().lower()]
        if " - " in section:
            queries.append(section.split(" - ", 1)[0].strip().lower())

        for query in queries:
            matches = [(p, u) for p, u in candidates if u.section.strip().lower() == query]
            if matches:
                if len(matches) > 1:
                    first = matches[0][1]
                    logger.warning(
                        f"'{section}' matches {len(matches)} sections; "
                        f"showing {first.file}:{first.line}"
                    )
                return matches[0][0]

        query = queries[-1]
        words = set(query.split())
        suggestions = [
            f"{unit.section} ({unit.file})"
            for _, unit in candidates
            if query in unit.section.lower() or words & set(unit.section.lower().split())
        ]
        raise SectionNotFoundError(section, suggestions[:MAX_SUGGESTIONS])

    def open_file(self, name: str, path: str, max_lines: int | None = None) -> str:
        """Print a file of the skill source.

        Raises:
            PathEscapeError: If path resolves outside the skill.
            SkillFileNotFoundError: If path is missing or is a directory.
        """
        source = self._resolve(name, allow_runtime=False)

        def _open() -> str:
            target = _inside(source.path, path)
            if not target.exists():
                raise SkillFileNotFoundError(f"file '{path}' not found", source.path)
            if target.is_dir():
                raise SkillFileNotFoundError(f"'{path}' is a directory, not a file", source.path)
            return limit_lines(read_text(target), max_lines)

        return self._logged("open", source, None, {"path": path, "max_lines": max_lines}, _open)

    def sources(
        self,
        name: str,
        depth: int | None = None,
        directory: str | None = None,
        limit: int = 100,
        pattern: str | None = None,
    ) -> tuple[list[str], int]:
        """List the files of a skill source.

        Args:
            name: Skill name.
            depth: Maximum directory depth below the listed root (1 = top level).
            directory: List only this subdirectory.
            limit: Maximum number of paths returned.
            pattern: Glob matched against file names.

        Returns:
            Tuple of (paths relative to the skill root, total match count).
        """
        source = self._resolve(name, allow_runtime=False)

        def _sources() -> tuple[list[str], int]:
            root = source.path
            if directory:
                root = _inside(source.path, directory)
                if not root.is_dir():
                    raise SkillFileNotFoundError(
                        f"directory '{directory}' not found", source.path
                    )

            canonical = source.path.resolve()
            matched: list[str] = []
            for relpath, file_path in iter_tracked_files(root):
                parts = relpath.split("/")
                if parts[-1].startswith("."):
                    continue
                if depth is not None and len(parts) > depth:
                    continue
                if pattern and not fnmatch.fnmatch(parts[-1], pattern):
                    continue
                matched.append(file_path.relative_to(canonical).as_posix())
            return matched[: max(limit, 0)], len(matched)

        args = {"depth": depth, "dir": directory, "limit": limit, "pattern": pattern}
        return self._logged("sources", source, None, args, _sources)

    def search(self, query: str, skill: str | None = None, limit: int = 10) -> list[SearchHit]:
        """Full-text search over one skill or every source skill.

        Skills that were never built are skipped when searching everything.

        Raises:
            EmptyQueryError: If the query has no terms.
            IndexUnusableError: If the requested skill's index is unusable.
        """
        if skill is not None:
            source = self._resolve(skill)
            return self._logged(
                "search",
                source,
                None,
                {"query": query, "limit": limit},
                lambda: search(runtime_dir_for(source), query, limit),
            )

        runtime_dirs = []
        seen: set[str] = set()
        for path, scope in discover_skills(start_path=self.start_path):
            if path.name in seen:
                continue
            seen.add(path.name)
            source = resolve_or_raise(path.name, scope, self.start_path)
            runtime_dir = runtime_dir_for(source)
            if index_path(runtime_dir).exists():
                runtime_dirs.append(runtime_dir)
        return search_many(runtime_dirs, query, limit)
