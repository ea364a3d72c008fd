"""
Skill models for Skillforge.

Defines the data structures flowing through the build pipeline: resolved
sources, compiled artifacts and their manifests, deploy targets, and the
build report returned to callers.
"""

from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from pydantic import BaseModel, ConfigDict, Field

MANIFEST_VERSION = 1
PRIMARY_DOCUMENT = "SKILL.md"
META_DIR = ".skillforge-meta"


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class SkillScope(str, Enum):
    """Where a skill lives."""

    PROJECT = "project"
    GLOBAL = "global"


class SkillFrontmatter(BaseModel):
    """Frontmatter parsed from SKILL.md."""

    model_config = ConfigDict(extra="allow")

    name: str = Field(..., min_length=1, description="Skill name")
    description: str = Field(..., min_length=1, description="Short description")


class SkillMetadata(BaseModel):
    """Optional metadata from skill.yaml."""

    name: str = Field(..., description="Unique skill identifier")
    version: str = Field(default="1.0.0", description="Semantic version")
    description: str = Field(default="", description="Short description of what the skill does")
    keywords: list[str] = Field(default_factory=list, description="Keywords for discovery")
    author: str | None = Field(default=None, description="Skill author")
    license: str | None = Field(default=None, description="License (e.g., MIT)")


class SkillSource(BaseModel):
    """A resolved skill directory.

    Read-only to the pipeline. A source resolved from a runtime store
    (compiled copy, authored files unavailable) has read_only set and is
    never compiled.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str = Field(..., description="Name the skill was requested by")
    path: Path = Field(..., description="Resolved absolute skill directory")
    scope: SkillScope = Field(..., description="Store the skill was found in")
    read_only: bool = Field(default=False, description="Resolved from a runtime store")
    project_root: Path | None = Field(default=None, description="Project root, if any")


class Heading(BaseModel):
    """A Markdown heading found in a skill file."""

    level: int
    text: str
    file: str = Field(..., description="Path relative to the skill root, / separated")
    line: int = Field(..., description="1-indexed line number")


class Manifest(BaseModel):
    """Provenance record of the last successful compilation of one skill."""

    skill: str
    version: int = MANIFEST_VERSION
    source_hash: str
    stub_lines: int
    stub_bytes: int
    truncated: bool = False
    built_at: datetime = Field(default_factory=utc_now)
    scope: SkillScope
    source_path: str


class CompiledArtifact(BaseModel):
    """The stub document and its manifest, ready to publish."""

    stub: str
    manifest: Manifest

    @property
    def name(self) -> str:
        """Get the skill name."""
        return self.manifest.skill


class LinkStrategy(str, Enum):
    """How a deploy target references the runtime entry."""

    SYMLINK = "symlink"
    JUNCTION = "junction"
    COPY = "copy"


class DeployStatus(str, Enum):
    """Last-known state of a deploy target."""

    DEPLOYED = "deployed"
    FAILED = "failed"
    CURRENT = "current"
    STALE = "stale"
    MISSING = "missing"


class DeployTarget(BaseModel):
    """One (agent, destination) pair and its observed state."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    agent: str
    destination: Path
    strategy: LinkStrategy | None = None
    status: DeployStatus = DeployStatus.MISSING


class DeployResult(BaseModel):
    """Outcome of provisioning one deploy target."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    agent: str
    destination: Path | None = None
    success: bool
    strategy: LinkStrategy | None = None
    error: str | None = None
    deployed_at: datetime | None = None

    @property
    def status(self) -> DeployStatus:
        """Deploy status implied by the result."""
        return DeployStatus.DEPLOYED if self.success else DeployStatus.FAILED


class StageStatus(str, Enum):
    """Outcome of one build stage."""

    OK = "ok"
    SKIPPED = "skipped"
    FAILED = "failed"
    NOT_RUN = "not-run"


class BuildReport(BaseModel):
    """Per-stage and per-target summary of one build."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    skill: str
    scope: SkillScope | None = None
    source_path: Path | None = None
    runtime_path: Path | None = None
    fingerprint: str | None = None
    compile_status: StageStatus = StageStatus.NOT_RUN
    index_status: StageStatus = StageStatus.NOT_RUN
    deploy_results: list[DeployResult] = Field(default_factory=list)
    error: str | None = None
    error_code: str | None = None
    truncated: bool = False

    @property
    def build_failed(self) -> bool:
        """Whether resolution, compilation, or publication failed."""
        return self.error is not None

    @property
    def cache_hit(self) -> bool:
        """Whether compilation and indexing were both skipped."""
        return (
            self.compile_status == StageStatus.SKIPPED
            and self.index_status == StageStatus.SKIPPED
        )

    @property
    def deploy_failed_count(self) -> int:
        """Number of targets that failed to deploy."""
        return sum(1 for result in self.deploy_results if not result.success)

    @property
    def exit_code(self) -> int:
        """Process exit code: 0 success, 1 build failed, 2 some deployments failed."""
        if self.build_failed:
            return 1
        if self.deploy_failed_count:
            return 2
        return 0


class SearchHit(BaseModel):
    """A ranked search match."""

    skill: str
    file: str
    section: str
    line: int
    excerpt: str
    score: float


class BuildState(str, Enum):
    """Build state of a source skill as seen by listing and status."""

    NORMAL = "normal"
    NOT_BUILT = "not-built"
    OBSOLETE = "obsolete"


class SkillStatus(BaseModel):
    """Runtime entry and deploy targets of one skill."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    skill: str
    scope: SkillScope
    source_path: Path | None = None
    runtime_path: Path
    state: BuildState
    manifest: Manifest | None = None
    targets: list[DeployTarget] = Field(default_factory=list)
