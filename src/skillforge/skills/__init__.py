"""
Skillforge Skills System.

A skill is a directory of Markdown documents with a SKILL.md primary
document. Building a skill replaces that document, for agents, with a
short compiled stub plus a search index, and deploys the result to each
agent's skills directory.

Usage:
    from skillforge.skills import get_skill_manager

    manager = get_skill_manager()

    # Build and deploy a skill
    report = manager.build("release-notes", targets=["claude", "cursor"])

    # Read it back through the index
    headings = manager.outline("release-notes")
    hits = manager.search("changelog format", skill="release-notes")
"""

# Models
from skillforge.skills.models import (
    BuildReport,
    BuildState,
    CompiledArtifact,
    DeployResult,
    DeployStatus,
    DeployTarget,
    Heading,
    LinkStrategy,
    Manifest,
    SearchHit,
    SkillFrontmatter,
    SkillMetadata,
    SkillScope,
    SkillSource,
    SkillStatus,
    StageStatus,
)

# Parser
from skillforge.skills.parser import (
    extract_headings,
    parse_frontmatter,
    parse_skill_yaml,
    parse_yaml_frontmatter,
)

# Pipeline
from skillforge.skills.fingerprint import fingerprint
from skillforge.skills.resolver import discover_skills, resolve, resolve_or_raise
from skillforge.skills.compiler import compile_skill
from skillforge.skills.index import IndexState, build_index, register_format, search
from skillforge.skills.deploy import TargetRegistry, deploy, target_status
from skillforge.skills.lint import Diagnostic, RuleLinter, Severity, register_rule
from skillforge.skills.builder import BuildOptions, SkillBuilder
from skillforge.skills.reader import SkillReader

# Manager
from skillforge.skills.manager import (
    SkillManager,
    get_skill_manager,
)

__all__ = [
    # Models
    "BuildReport",
    "BuildState",
    "CompiledArtifact",
    "DeployResult",
    "DeployStatus",
    "DeployTarget",
    "Heading",
    "LinkStrategy",
    "Manifest",
    "SearchHit",
    "SkillFrontmatter",
    "SkillMetadata",
    "SkillScope",
    "SkillSource",
    "SkillStatus",
    "StageStatus",
    # Parser
    "extract_headings",
    "parse_frontmatter",
    "parse_skill_yaml",
    "parse_yaml_frontmatter",
    # Pipeline
    "fingerprint",
    "discover_skills",
    "resolve",
    "resolve_or_raise",
    "compile_skill",
    "IndexState",
    "build_index",
    "register_format",
    "search",
    "TargetRegistry",
    "deploy",
    "target_status",
    "Diagnostic",
    "RuleLinter",
    "Severity",
    "register_rule",
    "BuildOptions",
    "SkillBuilder",
    "SkillReader",
    # Manager
    "SkillManager",
    "get_skill_manager",
]
