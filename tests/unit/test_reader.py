"""
Unit tests for read-access commands.
"""

import os
import shutil
from pathlib import Path

import pytest

from skillforge.audit.logger import fallback_log_path, read_events
from skillforge.config.schema import Config
from skillforge.errors import (
    EmptyQueryError,
    IndexUnusableError,
    PathEscapeError,
    SectionNotFoundError,
    SkillFileNotFoundError,
    SkillNotFoundError,
)
from skillforge.skills.builder import SkillBuilder
from skillforge.skills.reader import SkillReader, limit_lines
from skillforge.skills.runtime import access_log_path


@pytest.fixture
def reader(mock_project_dir: Path) -> SkillReader:
    return SkillReader(Config(), start_path=mock_project_dir, cwd=mock_project_dir)


@pytest.fixture
def runtime_entry(mock_project_dir: Path) -> Path:
    return mock_project_dir / ".skillforge" / "runtime" / "test-skill"


@pytest.fixture
def built_skill(project_skill, mock_project_dir, runtime_entry) -> Path:
    report = SkillBuilder(Config(), start_path=mock_project_dir).build("test-skill", targets=[])
    assert report.error is None
    return runtime_entry


class TestLimitLines:
    """Tests for limit_lines()."""

    def test_no_limit(self):
        assert limit_lines("a\nb\nc", None) == "a\nb\nc"

    def test_short_content(self):
        assert limit_lines("a\nb", 5) == "a\nb"

    def test_cut(self):
        assert limit_lines("a\nb\nc\nd", 2) == "a\nb\n... (2 more lines)"


class TestOutline:
    """Tests for outline()."""

    def test_all_files_in_order(self, reader, project_skill):
        headings = reader.outline("test-skill")
        assert [(h.file, h.text, h.level) for h in headings] == [
            ("SKILL.md", "Test Skill", 1),
            ("SKILL.md", "Instructions", 2),
            ("SKILL.md", "Edge Cases", 3),
            ("SKILL.md", "Output Format", 2),
            ("docs/release.md", "Release Guide", 1),
            ("docs/release.md", "Versioning", 2),
        ]
        assert headings[0].line == 6

    def test_max_level(self, reader, project_skill):
        headings = reader.outline("test-skill", max_level=1)
        assert [h.text for h in headings] == ["Test Skill", "Release Guide"]

    def test_same_result_from_index(self, reader, built_skill):
        from_index = reader.outline("test-skill")
        shutil.rmtree(built_skill)
        assert reader.outline("test-skill") == from_index

    def test_reads_runtime_when_source_removed(self, reader, built_skill, project_skill):
        shutil.rmtree(project_skill)
        assert "Versioning" in [h.text for h in reader.outline("test-skill")]

    def test_unknown_skill(self, reader):
        with pytest.raises(SkillNotFoundError):
            reader.outline("missing-skill")


class TestShow:
    """Tests for show()."""

    def test_includes_subsections(self, reader, project_skill):
        content = reader.show("test-skill", "Instructions")
        assert content.startswith("## Instructions")
        assert "### Edge Cases" in content
        assert "Output Format" not in content

    def test_unbuilt_skill_rejects_file_outside_root(self, reader, project_skill, temp_dir):
        secret = temp_dir / "secret.md"
        secret.write_text("# Secret\n\nzebrapassword123\n")
        os.symlink(secret, project_skill / "leak.md")

        with pytest.raises(PathEscapeError):
            reader.show("test-skill", "Secret")

    def test_case_insensitive(self, reader, project_skill):
        assert reader.show("test-skill", "output format").startswith("## Output Format")

    def test_reference_line_query(self, reader, project_skill):
        content = reader.show("test-skill", "Versioning - Use semantic versioning")
        assert "Use semantic versioning for every tag." in content

    def test_max_lines(self, reader, project_skill):
        assert reader.show("test-skill", "Instructions", max_lines=2) == (
            "## Instructions\n\n... (6 more lines)"
        )

    def test_file_filter(self, reader, project_skill):
        with pytest.raises(SectionNotFoundError):
            reader.show("test-skill", "Versioning", file="SKILL.md")

    def test_suggestions(self, reader, project_skill):
        with pytest.raises(SectionNotFoundError) as exc_info:
            reader.show("test-skill", "Edge")
        assert exc_info.value.code == "E005"
        assert exc_info.value.suggestions == ["Edge Cases (SKILL.md)"]

    def test_from_index_after_build(self, reader, built_skill):
        assert "Use semantic versioning" in reader.show("test-skill", "Versioning")


class TestOpenFile:
    """Tests for open_file()."""

    def test_reads_file(self, reader, project_skill):
        content = reader.open_file("test-skill", "docs/release.md")
        assert content.startswith("---\ndescription: Deep dive")

    def test_max_lines(self, reader, project_skill):
        assert reader.open_file("test-skill", "notes.txt", max_lines=1).startswith("plain text notes")

    def test_path_escape(self, reader, project_skill):
        with pytest.raises(PathEscapeError) as exc_info:
            reader.open_file("test-skill", "../../config.yaml")
        assert exc_info.value.code == "E012"

    def test_missing(self, reader, project_skill):
        with pytest.raises(SkillFileNotFoundError) as exc_info:
            reader.open_file("test-skill", "docs/missing.md")
        assert exc_info.value.code == "E006"

    def test_directory(self, reader, project_skill):
        with pytest.raises(SkillFileNotFoundError, match="is a directory"):
            reader.open_file("test-skill", "docs")

    def test_needs_source(self, reader, built_skill, project_skill):
        shutil.rmtree(project_skill)
        with pytest.raises(SkillNotFoundError):
            reader.open_file("test-skill", "SKILL.md")


class TestSources:
    """Tests for sources()."""

    def test_all(self, reader, project_skill):
        assert reader.sources("test-skill") == (["SKILL.md", "docs/release.md", "notes.txt"], 3)

    def test_depth(self, reader, project_skill):
        paths, _ = reader.sources("test-skill", depth=1)
        assert paths == ["SKILL.md", "notes.txt"]

    def test_directory(self, reader, project_skill):
        assert reader.sources("test-skill", directory="docs") == (["docs/release.md"], 1)

    def test_missing_directory(self, reader, project_skill):
        with pytest.raises(SkillFileNotFoundError):
            reader.sources("test-skill", directory="nothing")

    def test_pattern(self, reader, project_skill):
        paths, _ = reader.sources("test-skill", pattern="*.md")
        assert paths == ["SKILL.md", "docs/release.md"]

    def test_limit_keeps_total(self, reader, project_skill):
        assert reader.sources("test-skill", limit=1) == (["SKILL.md"], 3)

    def test_hidden_files_skipped(self, reader, project_skill):
        (project_skill / ".draft.md").write_text("# Draft\n")
        paths, _ = reader.sources("test-skill")
        assert ".draft.md" not in paths


class TestSearch:
    """Tests for search()."""

    def test_single_skill(self, reader, built_skill):
        [hit, *_] = reader.search("semantic versioning", skill="test-skill")
        assert hit.skill == "test-skill"
        assert hit.file == "docs/release.md"
        assert hit.section == "Versioning"

    def test_unbuilt_skill(self, reader, project_skill):
        with pytest.raises(IndexUnusableError):
            reader.search("anything", skill="test-skill")

    def test_empty_query(self, reader, built_skill):
        with pytest.raises(EmptyQueryError):
            reader.search("  ", skill="test-skill")

    def test_all_skills_skips_unbuilt(self, reader, built_skill, make_skill, mock_project_dir):
        make_skill(mock_project_dir / ".skillforge" / "skills", "unbuilt-skill")
        hits = reader.search("gracefully")
        assert hits
        assert {hit.skill for hit in hits} == {"test-skill"}


class TestAccessLogging:
    """Tests for the events read commands record."""

    def test_primary_after_build(self, reader, built_skill, mock_project_dir):
        reader.outline("test-skill")
        reader.show("test-skill", "Instructions", max_lines=3)

        events = read_events(access_log_path(built_skill))
        assert [e.command for e in events] == ["outline", "show"]
        assert events[1].section == "Instructions"
        assert events[1].args == {"max_lines": 3}
        assert events[1].cwd == str(mock_project_dir)
        assert not fallback_log_path("test-skill", mock_project_dir).exists()

    def test_fallback_before_build(self, reader, project_skill, runtime_entry, mock_project_dir):
        reader.sources("test-skill")

        assert not runtime_entry.exists()
        [event] = read_events(fallback_log_path("test-skill", mock_project_dir))
        assert event.command == "sources"
        assert event.args == {"limit": 100}

    def test_failed_command_logged(self, reader, built_skill):
        with pytest.raises(SectionNotFoundError):
            reader.show("test-skill", "Nowhere")

        [event] = read_events(access_log_path(built_skill))
        assert event.command == "show"
        assert "E005" in event.error

    def test_disabled(self, mock_project_dir, built_skill):
        config = Config.model_validate({"analytics": {"enable": False}})
        SkillReader(config, start_path=mock_project_dir, cwd=mock_project_dir).outline("test-skill")
        assert read_events(access_log_path(built_skill)) == []
