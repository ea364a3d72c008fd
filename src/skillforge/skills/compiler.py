"""
Artifact compiler for Skillforge.

Validates a skill source and renders the bounded stub that replaces the
skill's primary document in the runtime store. The stub keeps the skill's
identity (name, description) and an outline, and points agents at the
read-access commands instead of embedding the content.

Nothing here writes to disk; the builder publishes the returned artifact.
"""

import json
import logging
from pathlib import Path

from skillforge.config.schema import BuildConfig
from skillforge.errors import MissingPrimaryDocumentError, PathEscapeError
from skillforge.skills.fingerprint import iter_tracked_files
from skillforge.skills.models import (
    PRIMARY_DOCUMENT,
    CompiledArtifact,
    Heading,
    Manifest,
    SkillFrontmatter,
    SkillSource,
)
from skillforge.skills.parser import (
    extract_description,
    extract_headings,
    parse_frontmatter,
    read_text,
)

logger = logging.getLogger(__name__)

CLI_NAME = "skillforge"
TRUNCATION_MARKER = "... (truncated)"


def check_symlink_safety(root: Path) -> None:
    """Reject symlinks that resolve outside the skill root.

    Every symlink under the root (outside excluded directories) is checked
    without being followed during the walk. Broken links cannot be read
    through and are skipped with a warning.

    Args:
        root: Skill root directory.

    Raises:
        PathEscapeError: On the first link whose target lies outside root.
    """
    canonical_root = root.resolve()

    for relpath, path in iter_tracked_files(root):
        if not path.is_symlink():
            continue
        target = path.resolve()
        if not target.exists():
            logger.warning(f"Skipping broken symlink {relpath} in {root}")
            continue
        if not target.is_relative_to(canonical_root):
            raise PathEscapeError(path, target)


def markdown_files(root: Path) -> list[tuple[str, Path]]:
    """Tracked Markdown files, SKILL.md first, then by relative path."""
    files = [
        (relpath, path)
        for relpath, path in iter_tracked_files(root)
        if relpath.lower().endswith(".md") and path.is_file()
    ]
    files.sort(key=lambda entry: (entry[0] != PRIMARY_DOCUMENT, entry[0]))
    return files


def collect_headings(root: Path) -> tuple[list[Heading], dict[str, str], list[str]]:
    """Collect headings and reference descriptions from a skill's Markdown.

    Returns:
        Tuple of (headings, description per reference file, reference files
        in order).
    """
    headings: list[Heading] = []
    descriptions: dict[str, str] = {}
    references: list[str] = []

    for relpath, path in markdown_files(root):
        content = read_text(path)
        for level, text, line in extract_headings(content):
            headings.append(Heading(level=level, text=text, file=relpath, line=line))
        if relpath != PRIMARY_DOCUMENT:
            references.append(relpath)
            description = extract_description(content)
            if description:
                descriptions[relpath] = description

    return headings, descriptions, references


def truncate_description(description: str, max_length: int) -> str:
    """Shorten a description to max_length characters, marking the cut with an ellipsis."""
    if len(description) <= max_length:
        return description
    return description[: max_length - 1].rstrip() + "…"


def build_section_entries(
    headings: list[Heading],
    descriptions: dict[str, str],
    references: list[str],
    build_config: BuildConfig,
) -> list[tuple[int, str]]:
    """Build the indented outline entries shown in the stub.

    SKILL.md contributes its H1 headings at indent 0 and H2 headings at
    indent 1. Every other Markdown file contributes one entry under a
    "References" group: its first H1, or its path when it has none.

    Returns:
        List of (indent, text).
    """
    skill_entries: list[tuple[int, str]] = []
    for heading in headings:
        if heading.file != PRIMARY_DOCUMENT:
            continue
        if heading.level == 1:
            skill_entries.append((0, heading.text))
        elif heading.level == 2:
            skill_entries.append((1, heading.text))

    first_h1: dict[str, str] = {}
    for heading in headings:
        if heading.file != PRIMARY_DOCUMENT and heading.level == 1:
            first_h1.setdefault(heading.file, heading.text)

    reference_entries: list[tuple[int, str]] = []
    for relpath in references:
        text = first_h1.get(relpath, relpath)
        if relpath in descriptions:
            description = truncate_description(
                descriptions[relpath], build_config.max_description_length
            )
            text = f"{text} - {description}"
        reference_entries.append((1, text))

    entries: list[tuple[int, str]] = skill_entries[: build_config.max_section_entries]
    omitted = len(skill_entries) - build_config.max_section_entries
    if omitted > 0:
        entries.append((0, f"... ({omitted} more)"))

    if reference_entries:
        entries.append((0, "References"))
        entries.extend(reference_entries[: build_config.max_reference_entries])
        omitted = len(reference_entries) - build_config.max_reference_entries
        if omitted > 0:
            entries.append((1, f"... ({omitted} more)"))

    return entries


def render_stub(frontmatter: SkillFrontmatter, entries: list[tuple[int, str]]) -> str:
    """Render the stub document before size enforcement."""
    name = frontmatter.name
    lines = [
        "---",
        f"name: {name}",
        f"description: {json.dumps(frontmatter.description, ensure_ascii=False)}",
        "---",
        "",
        f"# {name} (compiled)",
        "",
        "DO NOT read skill source files directly.",
        f"Use the {CLI_NAME} read commands to access content.",
        "",
        "## Usage",
        "",
        f"- `{CLI_NAME} outline {name}` - list sections",
        f'- `{CLI_NAME} show {name} --section "<Heading>"` - view section content',
        f"- `{CLI_NAME} open {name} <relative-path>` - open file",
        f"- `{CLI_NAME} sources {name}` - list source files",
        f"- `{CLI_NAME} search <query> --skill {name}` - search content",
        "",
        "## Top Sections",
        "",
    ]
    lines.extend(f"{'  ' * indent}- {text}" for indent, text in entries)
    return "\n".join(lines) + "\n"


def enforce_line_limit(stub: str, max_lines: int) -> tuple[str, bool]:
    """Cut a stub to at most max_lines lines.

    Returns:
        Tuple of (stub, truncated).
    """
    lines = stub.rstrip("\n").split("\n")
    if len(lines) <= max_lines:
        return stub, False
    kept = lines[: max_lines - 1] + [TRUNCATION_MARKER]
    return "\n".join(kept) + "\n", True


def compile_skill(
    source: SkillSource, source_hash: str, build_config: BuildConfig | None = None
) -> CompiledArtifact:
    """Compile a skill source into a stub and manifest.

    Args:
        source: Resolved, writable skill source.
        source_hash: Fingerprint of the source taken by the caller.
        build_config: Stub limits. Defaults to BuildConfig().

    Returns:
        The compiled artifact.

    Raises:
        MissingPrimaryDocumentError: If SKILL.md is missing.
        PathEscapeError: If a symlink resolves outside the skill root.
        InvalidFrontmatterError: If SKILL.md frontmatter is invalid.
        SkillIOError: If a file cannot be read.
    """
    build_config = build_config or BuildConfig()
    root = source.path
    primary = root / PRIMARY_DOCUMENT

    if not primary.is_file():
        raise MissingPrimaryDocumentError(root)

    check_symlink_safety(root)

    frontmatter = parse_frontmatter(read_text(primary), primary)
    if frontmatter.name != source.name:
        logger.warning(
            f"Skill directory '{source.name}' declares name '{frontmatter.name}' in SKILL.md"
        )

    headings, descriptions, references = collect_headings(root)
    entries = build_section_entries(headings, descriptions, references, build_config)
    stub, truncated = enforce_line_limit(
        render_stub(frontmatter, entries), build_config.max_stub_lines
    )
    if truncated:
        logger.info(f"Stub for '{source.name}' truncated to {build_config.max_stub_lines} lines")

    manifest = Manifest(
        skill=source.name,
        source_hash=source_hash,
        stub_lines=stub.count("\n"),
        stub_bytes=len(stub.encode("utf-8")),
        truncated=truncated,
        scope=source.scope,
        source_path=str(root),
    )
    logger.debug(f"Compiled '{source.name}': {manifest.stub_lines} lines")
    return CompiledArtifact(stub=stub, manifest=manifest)
