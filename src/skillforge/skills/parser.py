"""
Skill parser for Skillforge.

Parses SKILL.md frontmatter, optional skill.yaml metadata, and Markdown
headings.
"""

import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from skillforge.errors import InvalidFrontmatterError, SkillIOError
from skillforge.skills.models import SkillFrontmatter, SkillMetadata

HEADING_RE = re.compile(r"^(#{1,6})[ \t]+(.+?)[ \t]*#*[ \t]*$")
FENCE_RE = re.compile(r"^[ ]{0,3}(`{3,}|~{3,})")


def read_text(path: Path) -> str:
    """Read a UTF-8 text file, wrapping OS errors with path context.

    Raises:
        SkillIOError: If the file cannot be read.
    """
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        raise SkillIOError("failed to read file", path, e) from e


def _frontmatter_end(lines: list[str]) -> int | None:
    """Index of the closing frontmatter delimiter, or None."""
    if not lines or lines[0].strip() != "---":
        return None
    for i, line in enumerate(lines[1:], start=1):
        if line.strip() == "---":
            return i
    return None


def frontmatter_length(lines: list[str]) -> int:
    """Number of leading lines taken by a frontmatter block (0 if none)."""
    end = _frontmatter_end(lines)
    return 0 if end is None else end + 1


def parse_yaml_frontmatter(content: str) -> tuple[dict[str, Any] | None, str]:
    """Parse YAML frontmatter from a markdown file.

    Frontmatter is delimited by --- at the start and end.

    Args:
        content: The full markdown content.

    Returns:
        Tuple of (frontmatter dict or None, remaining content).
    """
    lines = content.split("\n")
    end_index = _frontmatter_end(lines)
    if end_index is None:
        return None, content

    frontmatter_text = "\n".join(lines[1:end_index])
    remaining_content = "\n".join(lines[end_index + 1 :]).strip()

    try:
        frontmatter = yaml.safe_load(frontmatter_text)
    except yaml.YAMLError:
        return None, content
    if not isinstance(frontmatter, dict):
        return None, content
    return frontmatter, remaining_content


def parse_frontmatter(content: str, path: Path | None = None) -> SkillFrontmatter:
    """Parse the required frontmatter of a SKILL.md file.

    Args:
        content: The SKILL.md file content.
        path: Optional path for error messages.

    Returns:
        Validated frontmatter.

    Raises:
        InvalidFrontmatterError: If frontmatter is absent, not YAML, or lacks
            a non-empty name or description.
    """
    if _frontmatter_end(content.split("\n")) is None:
        raise InvalidFrontmatterError("SKILL.md has no frontmatter block", path)

    data, _ = parse_yaml_frontmatter(content)
    if data is None:
        raise InvalidFrontmatterError("SKILL.md frontmatter is not a YAML mapping", path)

    for field in ("name", "description"):
        value = data.get(field)
        if not isinstance(value, str) or not value.strip():
            raise InvalidFrontmatterError(
                f"SKILL.md frontmatter missing required '{field}' field", path
            )

    try:
        return SkillFrontmatter(**data)
    except ValidationError as e:
        raise InvalidFrontmatterError(f"invalid SKILL.md frontmatter: {e}", path) from e


def parse_skill_yaml(content: str, path: Path | None = None) -> SkillMetadata:
    """Parse an optional skill.yaml file.

    Args:
        content: The skill.yaml file content.
        path: Optional path for error messages.

    Returns:
        SkillMetadata model.

    Raises:
        InvalidFrontmatterError: If the content is not a valid metadata mapping.
    """
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise InvalidFrontmatterError(f"invalid YAML: {e}", path) from e

    if not isinstance(data, dict):
        raise InvalidFrontmatterError("skill.yaml must be a YAML mapping", path)

    if "name" not in data:
        raise InvalidFrontmatterError("skill.yaml missing required 'name' field", path)

    try:
        return SkillMetadata(**data)
    except ValidationError as e:
        raise InvalidFrontmatterError(f"invalid skill.yaml: {e}", path) from e


def extract_headings(content: str) -> list[tuple[int, str, int]]:
    """Extract ATX headings from Markdown.

    Frontmatter and fenced code blocks are skipped. Line numbers are
    1-indexed and relative to the whole file.

    Args:
        content: Markdown content.

    Returns:
        List of (level, text, line) tuples in document order.
    """
    lines = content.split("\n")
    headings: list[tuple[int, str, int]] = []

    fence: str | None = None
    for index in range(frontmatter_length(lines), len(lines)):
        line = lines[index]

        fence_match = FENCE_RE.match(line)
        if fence_match:
            marker = fence_match.group(1)
            if fence is None:
                fence = marker[0] * 3
            elif marker.startswith(fence):
                fence = None
            continue
        if fence is not None:
            continue

        match = HEADING_RE.match(line)
        if match:
            headings.append((len(match.group(1)), match.group(2).strip(), index + 1))

    return headings


def extract_description(content: str) -> str | None:
    """Get the description from a reference file's optional frontmatter."""
    data, _ = parse_yaml_frontmatter(content)
    if data is None:
        return None
    description = data.get("description")
    if isinstance(description, str) and description.strip():
        return " ".join(description.split())
    return None
