"""
Unit tests for skill resolution and project discovery.
"""

from pathlib import Path

import pytest

from skillforge.errors import MissingPrimaryDocumentError, SkillNotFoundError
from skillforge.skills.models import SkillScope
from skillforge.skills.resolver import (
    discover_skills,
    resolve,
    resolve_or_raise,
    runtime_dir_for,
    validate_skill_name,
)
from skillforge.storage.paths import find_project_root


class TestFindProjectRoot:
    """Tests for project root discovery."""

    def test_finds_nearest_marker(self, mock_project_dir):
        nested = mock_project_dir / "src" / "pkg"
        nested.mkdir(parents=True)
        assert find_project_root(nested) == mock_project_dir.resolve()

    def test_none_without_marker(self, temp_dir, mock_skillforge_home):
        outside = temp_dir / "elsewhere"
        outside.mkdir()
        assert find_project_root(outside) is None

    def test_global_home_is_not_a_project(self, mock_skillforge_home):
        user_home = mock_skillforge_home.parent
        assert find_project_root(user_home) is None


class TestValidateSkillName:
    """Tests for skill name validation."""

    @pytest.mark.parametrize("name", ["a/b", "..\\b", "", "..", "."])
    def test_rejects_paths(self, name):
        with pytest.raises(SkillNotFoundError):
            validate_skill_name(name)

    def test_accepts_plain_name(self):
        validate_skill_name("release-notes")


class TestResolve:
    """Tests for resolve() and resolve_or_raise()."""

    def test_project_only(self, project_skill, mock_project_dir):
        source = resolve("test-skill", start_path=mock_project_dir)
        assert source is not None
        assert source.scope == SkillScope.PROJECT
        assert source.path == project_skill.resolve()
        assert source.read_only is False

    def test_global_only(self, mock_skillforge_home, make_skill, temp_dir):
        make_skill(mock_skillforge_home / "skills", "global-skill")
        source = resolve("global-skill", start_path=temp_dir)
        assert source is not None
        assert source.scope == SkillScope.GLOBAL

    def test_project_wins_over_global(self, project_skill, mock_skillforge_home, make_skill, mock_project_dir):
        make_skill(mock_skillforge_home / "skills", "test-skill")
        source = resolve("test-skill", start_path=mock_project_dir)
        assert source.scope == SkillScope.PROJECT

    def test_scope_restricts_search(self, project_skill, mock_skillforge_home, make_skill, mock_project_dir):
        make_skill(mock_skillforge_home / "skills", "test-skill")
        source = resolve("test-skill", SkillScope.GLOBAL, start_path=mock_project_dir)
        assert source.scope == SkillScope.GLOBAL

    def test_not_found_returns_none(self, mock_project_dir):
        assert resolve("nope", start_path=mock_project_dir) is None

    def test_not_found_raises_with_searched_paths(self, mock_project_dir):
        with pytest.raises(SkillNotFoundError) as exc_info:
            resolve_or_raise("nope", start_path=mock_project_dir)
        assert exc_info.value.code == "E001"
        assert len(exc_info.value.searched_paths) == 2

    def test_directory_without_primary_document(self, mock_project_dir):
        (mock_project_dir / ".skillforge" / "skills" / "empty").mkdir()
        with pytest.raises(MissingPrimaryDocumentError):
            resolve("empty", start_path=mock_project_dir)

    def test_runtime_fallback_only_when_allowed(self, mock_project_dir):
        runtime = mock_project_dir / ".skillforge" / "runtime" / "built-only"
        runtime.mkdir(parents=True)

        assert resolve("built-only", start_path=mock_project_dir) is None
        source = resolve("built-only", start_path=mock_project_dir, allow_runtime=True)
        assert source is not None
        assert source.read_only is True
        assert runtime_dir_for(source) == runtime.resolve()

    def test_source_preferred_over_runtime(self, project_skill, mock_project_dir):
        (mock_project_dir / ".skillforge" / "runtime" / "test-skill").mkdir(parents=True)
        source = resolve("test-skill", start_path=mock_project_dir, allow_runtime=True)
        assert source.read_only is False


class TestRuntimeDirFor:
    """Tests for runtime_dir_for()."""

    def test_project_runtime(self, project_source, mock_project_dir):
        assert runtime_dir_for(project_source) == (
            mock_project_dir / ".skillforge" / "runtime" / "test-skill"
        )

    def test_global_runtime(self, mock_skillforge_home, make_skill, temp_dir):
        make_skill(mock_skillforge_home / "skills", "global-skill")
        source = resolve_or_raise("global-skill", start_path=temp_dir)
        assert runtime_dir_for(source) == mock_skillforge_home / "runtime" / "global-skill"


class TestDiscoverSkills:
    """Tests for discover_skills()."""

    def test_project_first_then_global(self, project_skill, mock_skillforge_home, make_skill, mock_project_dir):
        make_skill(mock_skillforge_home / "skills", "a-global")
        found = discover_skills(start_path=mock_project_dir)
        assert [(path.name, scope) for path, scope in found] == [
            ("test-skill", SkillScope.PROJECT),
            ("a-global", SkillScope.GLOBAL),
        ]

    def test_ignores_directories_without_primary_document(self, mock_project_dir):
        (mock_project_dir / ".skillforge" / "skills" / "draft").mkdir()
        assert discover_skills(SkillScope.PROJECT, mock_project_dir) == []
