"""
Build orchestrator for Skillforge.

Runs the pipeline for one skill: resolve, fingerprint, compare with the
last manifest, compile and index into a staging entry, publish it in one
swap, then deploy to every requested target.

A build fails only when resolution, validation, compilation, indexing, or
publication fails. Deployment failures are collected per target in the
report and never fail the build.
"""

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path

from skillforge.config.schema import Config
from skillforge.errors import LintFailedError, SkillforgeError, SkillIOError
from skillforge.skills.compiler import check_symlink_safety, compile_skill
from skillforge.skills.deploy import deploy
from skillforge.skills.fingerprint import fingerprint
from skillforge.skills.index import IndexState, build_index, check_index_state, index_path
from skillforge.skills.lint import Linter, RuleLinter, Severity
from skillforge.skills.models import (
    BuildReport,
    CompiledArtifact,
    SkillScope,
    SkillSource,
    StageStatus,
)
from skillforge.skills.resolver import resolve_or_raise, runtime_dir_for
from skillforge.skills.runtime import (
    access_log_path,
    read_manifest,
    stub_path,
    write_artifact,
)
from skillforge.storage.atomic import (
    make_staging_dir,
    publish_directory,
    recover_directory,
    skill_lock,
)

logger = logging.getLogger(__name__)


@dataclass
class BuildOptions:
    """Options for a single build."""

    force: bool = False
    force_copy: bool = False
    scope: SkillScope | None = None
    lint_gate: bool = False


class SkillBuilder:
    """Builds and deploys skills.

    The builder holds the resolved configuration and passes it to each
    pipeline stage; stages never look configuration up themselves.
    """

    def __init__(
        self,
        config: Config | None = None,
        start_path: Path | None = None,
        linter: Linter | None = None,
    ):
        """Initialize the builder.

        Args:
            config: Resolved configuration. Defaults to Config().
            start_path: Directory to start the project search from.
            linter: Linter used when a build asks for a lint gate.
        """
        self.config = config or Config()
        self.start_path = start_path
        self.linter = linter or RuleLinter()

    def build(
        self,
        name: str,
        targets: list[str] | None = None,
        options: BuildOptions | None = None,
    ) -> BuildReport:
        """Build one skill and deploy it.

        Args:
            name: Skill name.
            targets: Agent ids or directories. Defaults to the configured
                default targets.
            options: Build options.

        Returns:
            The build report. Errors are reported in it, not raised.
        """
        options = options or BuildOptions()
        report = BuildReport(skill=name)

        try:
            source = resolve_or_raise(name, options.scope, self.start_path)
        except SkillforgeError as e:
            return self._fail(report, e)

        runtime_dir = runtime_dir_for(source)
        report.scope = source.scope
        report.source_path = source.path
        report.runtime_path = runtime_dir

        try:
            with skill_lock(runtime_dir):
                recover_directory(runtime_dir)
                artifact = self._compile_and_publish(source, runtime_dir, options, report)
                report.deploy_results = deploy(
                    artifact,
                    runtime_dir,
                    targets if targets is not None else self.config.deploy.default_targets,
                    force_copy=options.force_copy,
                    project_root=source.project_root,
                    deploy_config=self.config.deploy,
                )
        except SkillforgeError as e:
            return self._fail(report, e)
        except OSError as e:
            return self._fail(report, SkillIOError("build failed", runtime_dir, e))

        return report

    def _compile_and_publish(
        self,
        source: SkillSource,
        runtime_dir: Path,
        options: BuildOptions,
        report: BuildReport,
    ) -> CompiledArtifact:
        source_hash = fingerprint(source.path)
        report.fingerprint = source_hash

        if options.lint_gate:
            diagnostics = self.linter.lint(source)
            errors = [d for d in diagnostics if d.severity == Severity.ERROR]
            if errors:
                raise LintFailedError(source.name, len(errors))

        manifest = read_manifest(runtime_dir)
        if (
            manifest is not None
            and manifest.source_hash == source_hash
            and stub_path(runtime_dir).is_file()
            and not options.force
        ):
            artifact = CompiledArtifact(
                stub=stub_path(runtime_dir).read_text(encoding="utf-8"),
                manifest=manifest,
            )
            report.compile_status = StageStatus.SKIPPED
            report.truncated = manifest.truncated

            state = check_index_state(
                index_path(runtime_dir), source, source_hash, self.config.search.tokenizer
            )
            if state == IndexState.UP_TO_DATE:
                report.index_status = StageStatus.SKIPPED
                logger.info(f"'{source.name}' is up to date")
            else:
                logger.info(f"Reindexing '{source.name}' (index {state.value})")
                # A link that was broken at compile time may resolve by now.
                check_symlink_safety(source.path)
                build_index(source, runtime_dir, source_hash, self.config.search)
                report.index_status = StageStatus.OK
            return artifact

        artifact = compile_skill(source, source_hash, self.config.build)
        report.compile_status = StageStatus.OK
        report.truncated = artifact.manifest.truncated

        staging = make_staging_dir(runtime_dir)
        try:
            write_artifact(staging, artifact)
            build_index(source, staging, source_hash, self.config.search, force=True)
            previous_log = access_log_path(runtime_dir)
            if previous_log.is_file():
                shutil.copy2(previous_log, access_log_path(staging))
            publish_directory(staging, runtime_dir)
        except BaseException:
            shutil.rmtree(staging, ignore_errors=True)
            raise
        report.index_status = StageStatus.OK

        logger.info(f"Published '{source.name}' to {runtime_dir}")
        return artifact

    def _fail(self, report: BuildReport, error: SkillforgeError) -> BuildReport:
        if report.compile_status == StageStatus.NOT_RUN:
            report.compile_status = StageStatus.FAILED
        elif report.index_status == StageStatus.NOT_RUN:
            report.index_status = StageStatus.FAILED
        report.error = str(error)
        report.error_code = error.code
        logger.info(f"Build of '{report.skill}' failed: {error}")
        return report
