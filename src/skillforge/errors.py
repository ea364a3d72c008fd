"""
Error types for Skillforge.

Every pipeline error carries a stable code so callers and scripts can match
on it without parsing messages.
"""

from pathlib import Path


class SkillforgeError(Exception):
    """Base exception for all Skillforge errors."""

    code = "E999"

    def __init__(self, message: str, path: Path | None = None):
        self.message = message
        self.path = path
        super().__init__(message)

    def __str__(self) -> str:
        location = f" (at {self.path})" if self.path else ""
        return f"error[{self.code}]: {self.message}{location}"


class SkillNotFoundError(SkillforgeError):
    """No source directory exists for the requested skill."""

    code = "E001"

    def __init__(self, name: str, searched_paths: list[Path] | None = None):
        self.name = name
        self.searched_paths = searched_paths or []
        paths_str = ", ".join(str(p) for p in self.searched_paths)
        super().__init__(
            f"skill '{name}' not found" + (f" (searched: {paths_str})" if paths_str else "")
        )


class IndexUnusableError(SkillforgeError):
    """Search index is missing or cannot be queried."""

    code = "E002"


class IndexCorruptError(SkillforgeError):
    """Search index exists but is not a valid index database."""

    code = "E003"


class EmptyQueryError(SkillforgeError):
    """Search query has no terms."""

    code = "E004"

    def __init__(self) -> None:
        super().__init__("empty query")


class SectionNotFoundError(SkillforgeError):
    """No heading matches the requested section."""

    code = "E005"

    def __init__(self, section: str, suggestions: list[str] | None = None):
        self.section = section
        self.suggestions = suggestions or []
        message = f"section '{section}' not found"
        if self.suggestions:
            message += "; did you mean: " + ", ".join(self.suggestions)
        super().__init__(message)


class SkillFileNotFoundError(SkillforgeError):
    """A file or directory requested inside a skill does not exist."""

    code = "E006"


class MissingPrimaryDocumentError(SkillforgeError):
    """Skill root has no SKILL.md."""

    code = "E010"

    def __init__(self, skill_dir: Path):
        super().__init__("missing SKILL.md", skill_dir)


class InvalidFrontmatterError(SkillforgeError):
    """SKILL.md frontmatter is absent or lacks required fields."""

    code = "E011"


class PathEscapeError(SkillforgeError):
    """A symlink or requested path resolves outside the skill root."""

    code = "E012"

    def __init__(self, link: Path, target: Path):
        self.link = link
        self.target = target
        super().__init__(f"'{link}' resolves outside skill root to '{target}'")


class LintFailedError(SkillforgeError):
    """Lint gate was requested and the linter reported errors."""

    code = "E030"

    def __init__(self, name: str, error_count: int):
        self.error_count = error_count
        super().__init__(f"skill '{name}' has {error_count} lint error(s)")


class SkillExistsError(SkillforgeError):
    """Target source directory already holds a skill."""

    code = "E050"


class DeployError(SkillforgeError):
    """Provisioning one deploy target failed."""

    code = "E020"

    def __init__(self, message: str, agent: str, path: Path | None = None):
        self.agent = agent
        super().__init__(message, path)


class SyncError(SkillforgeError):
    """Merging fallback access logs into the primary log failed."""

    code = "E040"


class ConfigurationError(SkillforgeError):
    """Configuration loading or validation failed."""

    code = "E090"


class SkillIOError(SkillforgeError):
    """Filesystem operation failed."""

    code = "E999"

    def __init__(self, message: str, path: Path | None = None, cause: OSError | None = None):
        self.cause = cause
        detail = f": {cause.strerror or cause}" if cause else ""
        super().__init__(f"{message}{detail}", path)
