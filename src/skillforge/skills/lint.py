"""
Skill linter for Skillforge.

Rules are plain functions registered by id. Each takes a resolved skill
source and yields diagnostics; the linter runs every registered rule and
returns the diagnostics in (file, line, rule id) order. Lint results never
affect a build unless the caller asks to gate on them.
"""

import re
from collections.abc import Callable, Iterable, Iterator
from enum import Enum
from pathlib import Path
from typing import Protocol
from urllib.parse import unquote

from pydantic import BaseModel

from skillforge.errors import InvalidFrontmatterError, SkillforgeError
from skillforge.skills.compiler import markdown_files
from skillforge.skills.models import PRIMARY_DOCUMENT, SkillSource
from skillforge.skills.parser import (
    parse_frontmatter,
    parse_skill_yaml,
    parse_yaml_frontmatter,
    read_text,
)

MAX_DESCRIPTION_LENGTH = 1024
LINK_RE = re.compile(r"(?<!!)\[[^\]]*\]\(([^)\s]+)(?:\s+\"[^\"]*\")?\)")


class Severity(str, Enum):
    """Diagnostic severity."""

    ERROR = "error"
    WARNING = "warning"


class Diagnostic(BaseModel):
    """One lint finding."""

    rule_id: str
    severity: Severity
    file: str
    line: int = 0
    message: str


class Linter(Protocol):
    """Anything that can lint a skill source."""

    def lint(self, source: SkillSource) -> list[Diagnostic]: ...


Rule = Callable[[SkillSource], Iterable[Diagnostic]]

_RULES: dict[str, Rule] = {}


def register_rule(rule_id: str) -> Callable[[Rule], Rule]:
    """Register a lint rule under an id."""

    def decorator(func: Rule) -> Rule:
        _RULES[rule_id] = func
        return func

    return decorator


def get_rules() -> dict[str, Rule]:
    """All registered rules by id."""
    return dict(_RULES)


@register_rule("SF001")
def check_frontmatter(source: SkillSource) -> Iterator[Diagnostic]:
    """SKILL.md must have frontmatter with a name and description."""
    primary = source.path / PRIMARY_DOCUMENT
    try:
        parse_frontmatter(read_text(primary), primary)
    except InvalidFrontmatterError as e:
        yield Diagnostic(
            rule_id="SF001",
            severity=Severity.ERROR,
            file=PRIMARY_DOCUMENT,
            line=1,
            message=e.message,
        )


@register_rule("SF002")
def check_name_matches_directory(source: SkillSource) -> Iterator[Diagnostic]:
    """Frontmatter name should match the skill directory name."""
    data, _ = parse_yaml_frontmatter(read_text(source.path / PRIMARY_DOCUMENT))
    name = (data or {}).get("name")
    if isinstance(name, str) and name and name != source.path.name:
        yield Diagnostic(
            rule_id="SF002",
            severity=Severity.WARNING,
            file=PRIMARY_DOCUMENT,
            line=2,
            message=f"name '{name}' does not match directory '{source.path.name}'",
        )


@register_rule("SF003")
def check_description_length(source: SkillSource) -> Iterator[Diagnostic]:
    """Descriptions are loaded into agent context and must stay short."""
    data, _ = parse_yaml_frontmatter(read_text(source.path / PRIMARY_DOCUMENT))
    description = (data or {}).get("description")
    if isinstance(description, str) and len(description) > MAX_DESCRIPTION_LENGTH:
        yield Diagnostic(
            rule_id="SF003",
            severity=Severity.WARNING,
            file=PRIMARY_DOCUMENT,
            line=3,
            message=f"description is {len(description)} characters (max {MAX_DESCRIPTION_LENGTH})",
        )


@register_rule("SF004")
def check_relative_links(source: SkillSource) -> Iterator[Diagnostic]:
    """Relative Markdown links must point at files inside the skill."""
    root = source.path.resolve()

    for relpath, path in markdown_files(source.path):
        for number, line in enumerate(read_text(path).split("\n"), start=1):
            for match in LINK_RE.finditer(line):
                target = match.group(1)
                if re.match(r"^[a-zA-Z][a-zA-Z0-9+.-]*:", target) or target.startswith(("#", "/")):
                    continue
                target_path = unquote(target.split("#", 1)[0])
                if not target_path:
                    continue
                resolved = (path.parent / target_path).resolve()
                if not resolved.is_relative_to(root):
                    message = f"link '{target}' points outside the skill"
                elif not resolved.exists():
                    message = f"link '{target}' does not resolve"
                else:
                    continue
                yield Diagnostic(
                    rule_id="SF004",
                    severity=Severity.WARNING,
                    file=relpath,
                    line=number,
                    message=message,
                )


@register_rule("SF005")
def check_skill_yaml(source: SkillSource) -> Iterator[Diagnostic]:
    """An optional skill.yaml must parse and agree with SKILL.md."""
    path = source.path / "skill.yaml"
    if not path.is_file():
        return
    try:
        metadata = parse_skill_yaml(read_text(path), path)
    except InvalidFrontmatterError as e:
        yield Diagnostic(
            rule_id="SF005", severity=Severity.ERROR, file="skill.yaml", message=e.message
        )
        return

    data, _ = parse_yaml_frontmatter(read_text(source.path / PRIMARY_DOCUMENT))
    name = (data or {}).get("name")
    if name and metadata.name != name:
        yield Diagnostic(
            rule_id="SF005",
            severity=Severity.ERROR,
            file="skill.yaml",
            message=f"name mismatch: skill.yaml has '{metadata.name}', SKILL.md has '{name}'",
        )


class RuleLinter:
    """Linter that runs registered rules."""

    def __init__(self, rules: dict[str, Rule] | None = None):
        self.rules = rules if rules is not None else get_rules()

    def lint(self, source: SkillSource) -> list[Diagnostic]:
        """Run every rule against a source.

        A rule that cannot read the files it needs reports an SF000 error
        instead of aborting the other rules.
        """
        diagnostics: list[Diagnostic] = []
        for rule_id, rule in self.rules.items():
            try:
                diagnostics.extend(rule(source))
            except SkillforgeError as e:
                file = Path(e.path).name if e.path else PRIMARY_DOCUMENT
                diagnostics.append(
                    Diagnostic(
                        rule_id="SF000",
                        severity=Severity.ERROR,
                        file=file,
                        message=f"{rule_id} could not run: {e.message}",
                    )
                )
        diagnostics.sort(key=lambda d: (d.file, d.line, d.rule_id))
        return diagnostics


def has_errors(diagnostics: list[Diagnostic]) -> bool:
    """Whether any diagnostic is an error."""
    return any(d.severity == Severity.ERROR for d in diagnostics)
