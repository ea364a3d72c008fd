"""
Pytest configuration and fixtures for skillforge tests.
"""

import tempfile
from collections.abc import Callable, Generator
from pathlib import Path

import pytest
from typer.testing import CliRunner

import skillforge.audit.logger as access_logger
import skillforge.skills.manager as skill_manager
from skillforge.config.schema import Config
from skillforge.skills.models import SkillScope, SkillSource

SkillFactory = Callable[..., Path]


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Typer CLI test runner."""
    return CliRunner()


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir).resolve()


@pytest.fixture(autouse=True)
def reset_singletons(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Drop cached managers and run ids, and ignore the caller's environment."""
    monkeypatch.delenv("SKILLFORGE_RUN_ID", raising=False)
    for key in ("SEARCH_TOKENIZER", "BUILD_MAX_STUB_LINES", "DEPLOY_DEFAULT_TARGETS"):
        monkeypatch.delenv(f"SKILLFORGE_{key}", raising=False)
    skill_manager._manager = None
    access_logger._run_id = None
    yield
    skill_manager._manager = None
    access_logger._run_id = None


@pytest.fixture
def mock_skillforge_home(temp_dir: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Provide a mock ~/.skillforge directory inside a mock user home."""
    user_home = temp_dir / "home"
    skillforge_home = user_home / ".skillforge"
    (skillforge_home / "skills").mkdir(parents=True)

    monkeypatch.setenv("HOME", str(user_home))
    monkeypatch.setenv("USERPROFILE", str(user_home))
    monkeypatch.setenv("SKILLFORGE_HOME", str(skillforge_home))
    return skillforge_home


@pytest.fixture
def mock_project_dir(temp_dir: Path, mock_skillforge_home: Path) -> Path:
    """Provide a mock project directory with .skillforge/ inside."""
    project_dir = temp_dir / "test-project"
    (project_dir / ".skillforge" / "skills").mkdir(parents=True)
    return project_dir


@pytest.fixture
def config() -> Config:
    """Provide the default configuration."""
    return Config()


@pytest.fixture
def sample_skill_md() -> str:
    """Provide sample SKILL.md content."""
    return """---
name: test-skill
description: A test skill for unit tests
---

# Test Skill

This is a test skill for unit testing.

## Instructions

1. Do something
2. Do something else

### Edge Cases

Handle empty input gracefully.

## Output Format

Return results in a specific format.
"""


@pytest.fixture
def sample_reference_md() -> str:
    """Provide a reference document with its own frontmatter."""
    return """---
description: Deep dive into release automation
---

# Release Guide

Tag the release and publish the changelog.

## Versioning

Use semantic versioning for every tag.
"""


@pytest.fixture
def make_skill(sample_skill_md: str) -> SkillFactory:
    """Provide a factory that writes a skill directory into a store."""

    def _make(
        store: Path,
        name: str = "test-skill",
        skill_md: str | None = None,
        files: dict[str, str] | None = None,
    ) -> Path:
        skill_dir = store / name
        skill_dir.mkdir(parents=True, exist_ok=True)
        content = skill_md if skill_md is not None else sample_skill_md
        (skill_dir / "SKILL.md").write_text(
            content.replace("name: test-skill", f"name: {name}"), encoding="utf-8"
        )
        for relpath, text in (files or {}).items():
            path = skill_dir / relpath
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(text, encoding="utf-8")
        return skill_dir

    return _make


@pytest.fixture
def project_skill(mock_project_dir: Path, make_skill: SkillFactory, sample_reference_md: str) -> Path:
    """Provide a project-local skill with one reference document."""
    return make_skill(
        mock_project_dir / ".skillforge" / "skills",
        files={"docs/release.md": sample_reference_md, "notes.txt": "plain text notes\n"},
    )


@pytest.fixture
def project_source(project_skill: Path, mock_project_dir: Path) -> SkillSource:
    """Provide the resolved source of project_skill."""
    return SkillSource(
        name=project_skill.name,
        path=project_skill.resolve(),
        scope=SkillScope.PROJECT,
        project_root=mock_project_dir,
    )
