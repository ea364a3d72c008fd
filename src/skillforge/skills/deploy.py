"""
Deployment engine for Skillforge.

Points each agent's skills directory at the canonical runtime entry. Link
strategies are tried in order (symlink, then directory junction on
Windows, then a full copy) and each target is provisioned independently:
a failure on one target is recorded in its DeployResult and never stops
the others.
"""

import logging
import os
import shutil
import subprocess
import sys
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from skillforge.config.schema import DeployConfig
from skillforge.errors import DeployError
from skillforge.skills.models import (
    CompiledArtifact,
    DeployResult,
    DeployStatus,
    DeployTarget,
    LinkStrategy,
    SkillScope,
    utc_now,
)
from skillforge.skills.runtime import ACCESS_LOG_FILENAME, read_manifest
from skillforge.storage.paths import expand_path

logger = logging.getLogger(__name__)

# Agent id -> skills directory template.
BUILTIN_TARGETS: dict[str, str] = {
    "claude": "{base}/.claude/skills",
    "codex": "{base}/.codex/skills",
    "copilot": "{base}/.github/skills",
    "cursor": "{base}/.cursor/skills",
    "gemini": "{base}/.gemini/skills",
    "kiro": "{base}/.kiro/skills",
    "opencode": "{base}/.opencode/skills",
    "trae": "{base}/.trae/skills",
}


def is_custom_path(target: str) -> bool:
    """Whether a target id is a literal skills directory rather than an agent id."""
    return "/" in target or "\\" in target or target.startswith(("~", "."))


class TargetRegistry:
    """Maps agent ids to skills directories.

    Built-in entries can be overridden and extended through the deploy
    config. Templates may use {base} (project root for project builds, the
    user's home for global builds), {project}, and {home}.
    """

    def __init__(self, overrides: dict[str, str] | None = None):
        self._templates = dict(BUILTIN_TARGETS)
        if overrides:
            self._templates.update(overrides)

    @classmethod
    def from_config(cls, deploy_config: DeployConfig) -> "TargetRegistry":
        """Create a registry from deploy configuration."""
        return cls(deploy_config.targets)

    @property
    def agents(self) -> list[str]:
        """All known agent ids, sorted."""
        return sorted(self._templates)

    def skills_dir(self, target: str, base: Path, project_root: Path | None = None) -> Path:
        """Resolve the skills directory of a target.

        Args:
            target: Agent id or a custom directory path.
            base: Base directory for built-in templates.
            project_root: Project root, used by {project}.

        Raises:
            DeployError: If the target id is unknown or its template does
                not render.
        """
        template = self._templates.get(target)
        if template is None:
            if is_custom_path(target):
                return expand_path(target)
            known = ", ".join(self.agents)
            raise DeployError(f"unknown target '{target}' (known: {known})", target)

        try:
            rendered = template.format(
                base=base,
                home=Path.home(),
                project=project_root or base,
            )
        except (KeyError, IndexError, ValueError) as e:
            raise DeployError(
                f"invalid template for target '{target}': {template!r} ({e!r}); "
                "allowed placeholders are {home}, {project}, {base}",
                target,
            ) from e
        return expand_path(rendered)


# =============================================================================
# Link strategies
# =============================================================================

LinkFunction = Callable[[Path, Path], LinkStrategy]


def create_symlink(source: Path, dest: Path) -> LinkStrategy:
    """Symlink dest to source."""
    os.symlink(source, dest, target_is_directory=True)
    return LinkStrategy.SYMLINK


def create_junction(source: Path, dest: Path) -> LinkStrategy:
    """Create a directory junction (Windows only)."""
    if sys.platform != "win32":
        raise OSError("directory junctions are only available on Windows")
    try:
        subprocess.run(
            ["cmd", "/c", "mklink", "/J", str(dest), str(source)],
            check=True,
            capture_output=True,
        )
    except subprocess.CalledProcessError as e:
        raise OSError(f"mklink /J failed: {e.stderr.decode(errors='replace').strip()}") from e
    return LinkStrategy.JUNCTION


def copy_tree(source: Path, dest: Path) -> LinkStrategy:
    """Copy the runtime entry, leaving out its access log."""
    shutil.copytree(
        source,
        dest,
        symlinks=False,
        ignore=shutil.ignore_patterns(ACCESS_LOG_FILENAME, "*.tmp", "*.lock"),
    )
    return LinkStrategy.COPY


def link_strategies(force_copy: bool = False) -> list[LinkFunction]:
    """Ordered strategies to try for one target."""
    if force_copy:
        return [copy_tree]
    return [create_symlink, create_junction, copy_tree]


# =============================================================================
# Provisioning
# =============================================================================


def _is_link(path: Path) -> bool:
    return path.is_symlink() or (hasattr(os.path, "isjunction") and os.path.isjunction(path))


def _remove_link(path: Path) -> None:
    if path.is_symlink():
        path.unlink()
    else:
        os.rmdir(path)


def _is_copy_of(dest: Path, skill: str) -> bool:
    manifest = read_manifest(dest)
    return manifest is not None and manifest.skill == skill


def clear_destination(dest: Path, skill: str, force_copy: bool = False) -> None:
    """Remove whatever a previous deployment left at dest.

    Links are always replaced. A real directory is only replaced when it is
    an earlier copy deployment of the same skill or when a copy is forced.

    Raises:
        DeployError: If dest is a directory this engine did not create.
    """
    if _is_link(dest):
        _remove_link(dest)
    elif dest.is_dir():
        if not (force_copy or _is_copy_of(dest, skill)):
            raise DeployError(
                "destination exists and is not a link; use --copy to replace it", skill, dest
            )
        shutil.rmtree(dest)
    elif dest.exists():
        raise DeployError("destination exists and is not a directory", skill, dest)


def provision(source: Path, dest: Path, strategies: list[LinkFunction]) -> LinkStrategy:
    """Try strategies in order until one succeeds.

    Raises:
        OSError: With the last strategy's error when all fail.
    """
    last_error: OSError | None = None
    for strategy in strategies:
        try:
            return strategy(source, dest)
        except OSError as e:
            logger.debug(f"{strategy.__name__} failed for {dest}: {e}")
            last_error = e
            if _is_link(dest):
                _remove_link(dest)
            elif dest.exists():
                shutil.rmtree(dest, ignore_errors=True)
    raise last_error or OSError(f"no link strategy available for {dest}")


def deploy_base(scope: SkillScope, project_root: Path | None) -> Path:
    """Base directory for built-in target templates."""
    if scope == SkillScope.PROJECT and project_root is not None:
        return project_root
    return Path.home()


def deploy_target(
    skill: str,
    runtime_path: Path,
    target: str,
    registry: TargetRegistry,
    base: Path,
    project_root: Path | None = None,
    force_copy: bool = False,
) -> DeployResult:
    """Provision one target. Never raises; failures are returned."""
    dest: Path | None = None
    try:
        skills_dir = registry.skills_dir(target, base, project_root)
        dest = skills_dir / skill
        skills_dir.mkdir(parents=True, exist_ok=True)
        clear_destination(dest, skill, force_copy)
        strategy = provision(runtime_path, dest, link_strategies(force_copy))
    except DeployError as e:
        logger.info(f"Deploy to {target} failed: {e.message}")
        return DeployResult(agent=target, destination=dest, success=False, error=e.message)
    except OSError as e:
        message = f"{e.strerror or e}" + (f": {e.filename}" if e.filename else "")
        logger.info(f"Deploy to {target} failed: {message}")
        return DeployResult(agent=target, destination=dest, success=False, error=message)

    logger.info(f"Deployed '{skill}' to {target} ({strategy.value}) at {dest}")
    return DeployResult(
        agent=target,
        destination=dest,
        success=True,
        strategy=strategy,
        deployed_at=utc_now(),
    )


def deploy(
    artifact: CompiledArtifact,
    runtime_path: Path,
    targets: list[str],
    force_copy: bool = False,
    project_root: Path | None = None,
    deploy_config: DeployConfig | None = None,
) -> list[DeployResult]:
    """Deploy a compiled skill to every requested target.

    Each target is provisioned independently; one target's failure is
    recorded and the remaining targets still deploy. With
    deploy_config.max_workers above one, targets are provisioned in
    parallel.

    Args:
        artifact: The published artifact (its manifest names skill and scope).
        runtime_path: The canonical runtime entry to reference.
        targets: Agent ids or custom directories. Duplicates are ignored.
        force_copy: Copy instead of linking, replacing real directories.
        project_root: Project root for project-scope deployments.
        deploy_config: Registry overrides and parallelism.

    Returns:
        One result per distinct target, in request order.
    """
    deploy_config = deploy_config or DeployConfig()
    registry = TargetRegistry.from_config(deploy_config)
    skill = artifact.manifest.skill
    base = deploy_base(artifact.manifest.scope, project_root)
    unique_targets = list(dict.fromkeys(targets))

    def _deploy(target: str) -> DeployResult:
        return deploy_target(skill, runtime_path, target, registry, base, project_root, force_copy)

    if deploy_config.max_workers > 1 and len(unique_targets) > 1:
        with ThreadPoolExecutor(max_workers=deploy_config.max_workers) as executor:
            return list(executor.map(_deploy, unique_targets))
    return [_deploy(target) for target in unique_targets]


def target_status(
    skill: str,
    runtime_path: Path,
    target: str,
    scope: SkillScope,
    project_root: Path | None = None,
    deploy_config: DeployConfig | None = None,
) -> DeployTarget:
    """Compare a target's destination with the runtime entry.

    Links are current when they resolve to the runtime entry. Copies are
    current when their manifest records the runtime entry's fingerprint.

    Raises:
        DeployError: If the target id is unknown.
    """
    registry = TargetRegistry.from_config(deploy_config or DeployConfig())
    dest = registry.skills_dir(target, deploy_base(scope, project_root), project_root) / skill

    if _is_link(dest):
        strategy = LinkStrategy.SYMLINK if dest.is_symlink() else LinkStrategy.JUNCTION
        current = dest.exists() and dest.resolve() == runtime_path.resolve()
        status = DeployStatus.CURRENT if current else DeployStatus.STALE
        return DeployTarget(agent=target, destination=dest, strategy=strategy, status=status)

    if not dest.exists():
        return DeployTarget(agent=target, destination=dest, status=DeployStatus.MISSING)

    deployed = read_manifest(dest)
    runtime = read_manifest(runtime_path)
    current = (
        deployed is not None
        and runtime is not None
        and deployed.source_hash == runtime.source_hash
    )
    return DeployTarget(
        agent=target,
        destination=dest,
        strategy=LinkStrategy.COPY,
        status=DeployStatus.CURRENT if current else DeployStatus.STALE,
    )
