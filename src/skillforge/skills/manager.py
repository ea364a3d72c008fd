"""
Skill manager for Skillforge.

Provides the main interface for working with skills.
"""

import logging
import shutil
from dataclasses import replace
from datetime import datetime
from pathlib import Path

from skillforge.audit.logger import AccessEvent, read_events
from skillforge.audit.stats import (
    StatsQuery,
    StatsRow,
    StatsSummary,
    filter_events,
    group_events,
    summarize,
)
from skillforge.audit.sync import SkillSyncResult, sync_all
from skillforge.config.loader import load_config
from skillforge.config.schema import Config
from skillforge.errors import (
    MissingPrimaryDocumentError,
    SkillExistsError,
    SkillforgeError,
    SkillNotFoundError,
    SyncError,
)
from skillforge.skills.builder import BuildOptions, SkillBuilder
from skillforge.skills.deploy import target_status
from skillforge.skills.fingerprint import fingerprint
from skillforge.skills.lint import Diagnostic, RuleLinter
from skillforge.skills.models import (
    PRIMARY_DOCUMENT,
    BuildReport,
    BuildState,
    Heading,
    SearchHit,
    SkillScope,
    SkillSource,
    SkillStatus,
    StageStatus,
)
from skillforge.skills.parser import parse_frontmatter, read_text
from skillforge.skills.reader import SkillReader
from skillforge.skills.resolver import (
    discover_skills,
    get_source_store,
    resolve_or_raise,
    runtime_dir_for,
    validate_skill_name,
)
from skillforge.skills.runtime import access_log_path, read_manifest
from skillforge.storage.paths import PROJECT_DIR_NAME, find_project_root

logger = logging.getLogger(__name__)


# Default skill template
SKILL_MD_TEMPLATE = """---
name: {name}
description: {description}
---

# {title}

{description}

## When to Use

- Use case 1
- Use case 2

## Instructions

1. First, analyze the input
2. Then, apply the skill
3. Finally, deliver results
"""


def is_path_like(value: str) -> bool:
    """Whether a build argument names a directory rather than a skill."""
    return "/" in value or "\\" in value or value.startswith((".", "~"))


class SkillManager:
    """Main interface for working with skills.

    Provides methods to:
    - Build and deploy skills, importing them from a path first if needed
    - Create new skills from a template
    - List skills and report their build and deploy status
    - Read built skills (outline, show, open, sources, search)
    - Lint skills and report access statistics
    """

    def __init__(self, project_path: Path | None = None, config: Config | None = None):
        """Initialize the skill manager.

        Args:
            project_path: Directory to start the project search from.
            config: Resolved configuration (loaded lazily when omitted).
        """
        self.project_path = project_path
        self._config = config

    @property
    def config(self) -> Config:
        """Get the resolved configuration (lazy loaded)."""
        if self._config is None:
            self._config = load_config(start_path=self.project_path)
        return self._config

    @property
    def reader(self) -> SkillReader:
        return SkillReader(self.config, start_path=self.project_path, cwd=self.project_path)

    @property
    def project_root(self) -> Path | None:
        return find_project_root(self.project_path)

    # -------------------------------------------------------------------------
    # Build
    # -------------------------------------------------------------------------

    def build(
        self,
        name_or_path: str,
        targets: list[str] | None = None,
        options: BuildOptions | None = None,
    ) -> BuildReport:
        """Build a skill by name, or import a skill directory and build it.

        Args:
            name_or_path: Skill name, or a path to a skill directory.
            targets: Deploy targets (default: configured targets).
            options: Build options.

        Returns:
            The build report.
        """
        options = options or BuildOptions()
        name = name_or_path

        if is_path_like(name_or_path):
            try:
                source = self.import_skill(
                    Path(name_or_path).expanduser(), options.scope, force=options.force
                )
            except SkillforgeError as e:
                report = BuildReport(skill=Path(name_or_path).name)
                report.compile_status = StageStatus.FAILED
                report.error = str(e)
                report.error_code = e.code
                return report
            name = source.name
            options = replace(options, scope=source.scope)

        builder = SkillBuilder(self.config, start_path=self.project_path)
        return builder.build(name, targets, options)

    def import_skill(
        self,
        path: Path,
        scope: SkillScope | None = None,
        force: bool = False,
    ) -> SkillSource:
        """Copy a skill directory into a source store.

        The skill goes to the project store when a project is found and
        scope is not global, otherwise to the global store. Its name comes
        from the SKILL.md frontmatter.

        Args:
            path: Directory holding SKILL.md.
            scope: Store to import into.
            force: Replace an existing source with the same name.

        Returns:
            The imported source.

        Raises:
            SkillNotFoundError: If path is not a directory.
            MissingPrimaryDocumentError: If path has no SKILL.md.
            InvalidFrontmatterError: If SKILL.md frontmatter is invalid.
            SkillExistsError: If the store already holds the name and force is off.
        """
        path = path.resolve()
        if not path.is_dir():
            raise SkillNotFoundError(str(path))
        primary = path / PRIMARY_DOCUMENT
        if not primary.is_file():
            raise MissingPrimaryDocumentError(path)

        name = parse_frontmatter(read_text(primary), primary).name
        validate_skill_name(name)

        project_root = self.project_root
        if scope is None:
            scope = SkillScope.PROJECT if project_root else SkillScope.GLOBAL
        store = get_source_store(scope, project_root)
        if store is None:
            raise SkillNotFoundError(name, [path])

        dest = store / name
        if dest.resolve() != path:
            if dest.exists():
                if not force:
                    raise SkillExistsError(
                        f"skill '{name}' already exists; use --force to replace it", dest
                    )
                shutil.rmtree(dest)
            store.mkdir(parents=True, exist_ok=True)
            shutil.copytree(path, dest, symlinks=True)
            logger.info(f"Imported '{name}' from {path} to {dest}")

        return SkillSource(
            name=name,
            path=dest.resolve(),
            scope=scope,
            project_root=project_root,
        )

    def create_skill(
        self,
        name: str,
        description: str = "A new skill",
        scope: SkillScope = SkillScope.PROJECT,
    ) -> Path:
        """Create a new skill from template.

        A project skill outside any project creates the project in the
        current directory.

        Args:
            name: Skill name (used as directory name).
            description: Short description.
            scope: Store to create the skill in.

        Returns:
            Path to the created skill directory.

        Raises:
            SkillExistsError: If the directory already has a SKILL.md.
        """
        validate_skill_name(name)

        if scope == SkillScope.PROJECT:
            project_root = self.project_root or (self.project_path or Path.cwd())
            (project_root / PROJECT_DIR_NAME).mkdir(parents=True, exist_ok=True)
        else:
            project_root = None

        store = get_source_store(scope, project_root)
        assert store is not None
        skill_path = store / name
        if (skill_path / PRIMARY_DOCUMENT).exists():
            raise SkillExistsError(f"skill '{name}' already exists", skill_path)

        skill_path.mkdir(parents=True, exist_ok=True)
        title = name.replace("-", " ").replace("_", " ").title()
        (skill_path / PRIMARY_DOCUMENT).write_text(
            SKILL_MD_TEMPLATE.format(name=name, description=description, title=title),
            encoding="utf-8",
        )
        logger.info(f"Created skill '{name}' at {skill_path}")
        return skill_path

    # -------------------------------------------------------------------------
    # Listing and status
    # -------------------------------------------------------------------------

    def _status_of(self, source: SkillSource, with_targets: bool) -> SkillStatus:
        runtime_dir = runtime_dir_for(source)
        manifest = read_manifest(runtime_dir)

        if manifest is None:
            state = BuildState.NOT_BUILT
        elif manifest.source_hash != fingerprint(source.path):
            state = BuildState.OBSOLETE
        else:
            state = BuildState.NORMAL

        status = SkillStatus(
            skill=source.name,
            scope=source.scope,
            source_path=source.path,
            runtime_path=runtime_dir,
            state=state,
            manifest=manifest,
        )
        if with_targets:
            status.targets = [
                target_status(
                    source.name,
                    runtime_dir,
                    target,
                    source.scope,
                    source.project_root,
                    self.config.deploy,
                )
                for target in self.config.deploy.default_targets
            ]
        return status

    def list_skills(self, scope: SkillScope | None = None) -> list[SkillStatus]:
        """List source skills with their build state, project store first.

        Args:
            scope: Only list one store.

        Returns:
            One status per source skill (without deploy targets).
        """
        project_root = self.project_root
        statuses = []
        for path, current in discover_skills(scope, self.project_path):
            source = SkillSource(
                name=path.name, path=path.resolve(), scope=current, project_root=project_root
            )
            statuses.append(self._status_of(source, with_targets=False))
        return statuses

    def status(self, name: str, scope: SkillScope | None = None) -> SkillStatus:
        """Build state and deploy target status of one skill.

        Raises:
            SkillNotFoundError: If the skill has no source.
        """
        source = resolve_or_raise(name, scope, self.project_path)
        return self._status_of(source, with_targets=True)

    def lint(self, name: str, scope: SkillScope | None = None) -> list[Diagnostic]:
        """Lint a skill source."""
        source = resolve_or_raise(name, scope, self.project_path)
        return RuleLinter().lint(source)

    # -------------------------------------------------------------------------
    # Read access
    # -------------------------------------------------------------------------

    def outline(self, name: str, max_level: int | None = None) -> list[Heading]:
        return self.reader.outline(name, max_level)

    def show(
        self, name: str, section: str, file: str | None = None, max_lines: int | None = None
    ) -> str:
        return self.reader.show(name, section, file, max_lines)

    def open_file(self, name: str, path: str, max_lines: int | None = None) -> str:
        return self.reader.open_file(name, path, max_lines)

    def sources(
        self,
        name: str,
        depth: int | None = None,
        directory: str | None = None,
        limit: int = 100,
        pattern: str | None = None,
    ) -> tuple[list[str], int]:
        return self.reader.sources(name, depth, directory, limit, pattern)

    def search(self, query: str, skill: str | None = None, limit: int = 10) -> list[SearchHit]:
        return self.reader.search(query, skill, limit)

    # -------------------------------------------------------------------------
    # Analytics
    # -------------------------------------------------------------------------

    def stats(
        self,
        name: str,
        query: StatsQuery = StatsQuery.SUMMARY,
        since: datetime | None = None,
        until: datetime | None = None,
        projects: list[str] | None = None,
    ) -> StatsSummary | list[StatsRow]:
        """Aggregate a skill's primary access log.

        Raises:
            SkillNotFoundError: If the skill cannot be resolved.
        """
        source = resolve_or_raise(name, start_path=self.project_path, allow_runtime=True)
        events = filter_events(
            read_events(access_log_path(runtime_dir_for(source))), since, until, projects
        )
        if query == StatsQuery.SUMMARY:
            return summarize(events)
        return group_events(events, query)

    def recent_events(self, name: str, limit: int = 20) -> list[AccessEvent]:
        """The last limit events of a skill's primary access log, oldest first."""
        source = resolve_or_raise(name, start_path=self.project_path, allow_runtime=True)
        events = read_events(access_log_path(runtime_dir_for(source)))
        return events[-limit:] if limit > 0 else []

    def _primary_log_for(self, name: str) -> Path:
        source = resolve_or_raise(name, start_path=self.project_path, allow_runtime=True)
        runtime_dir = runtime_dir_for(source)
        if read_manifest(runtime_dir) is None:
            raise SyncError(f"skill '{name}' has not been built", runtime_dir)
        return access_log_path(runtime_dir)

    def sync(self, skill: str | None = None, dry_run: bool = False) -> list[SkillSyncResult]:
        """Merge fallback access logs under the working directory into primary logs."""
        return sync_all(self._primary_log_for, self.project_path, skill, dry_run)


# Singleton instance for convenience
_manager: SkillManager | None = None


def get_skill_manager(project_path: Path | None = None) -> SkillManager:
    """Get the skill manager singleton.

    Args:
        project_path: Optional project path for context.

    Returns:
        SkillManager instance.
    """
    global _manager
    if _manager is None or (project_path and _manager.project_path != project_path):
        _manager = SkillManager(project_path)
    return _manager
