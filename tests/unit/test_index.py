"""
Unit tests for the per-skill search index.
"""

import os
import sqlite3
from pathlib import Path

import pytest

import skillforge.skills.index as index_module
from skillforge.config.schema import SearchConfig
from skillforge.errors import EmptyQueryError, IndexUnusableError, PathEscapeError
from skillforge.skills.fingerprint import fingerprint
from skillforge.skills.index import (
    IndexState,
    build_index,
    build_match_query,
    check_index_state,
    extract_markdown_units,
    index_path,
    read_sections,
    register_format,
    search,
    search_many,
    segment_cjk,
)
from skillforge.skills.models import SkillScope, SkillSource


@pytest.fixture
def runtime_dir(temp_dir: Path) -> Path:
    path = temp_dir / "runtime" / "test-skill"
    path.mkdir(parents=True)
    return path


@pytest.fixture
def indexed(project_source, runtime_dir) -> str:
    source_hash = fingerprint(project_source.path)
    assert build_index(project_source, runtime_dir, source_hash) is True
    return source_hash


class TestMarkdownUnits:
    """Tests for splitting Markdown into sections."""

    def test_one_unit_per_heading(self, sample_skill_md):
        units = extract_markdown_units("SKILL.md", sample_skill_md)
        assert [(u.section, u.level) for u in units] == [
            ("Test Skill", 1),
            ("Instructions", 2),
            ("Edge Cases", 3),
            ("Output Format", 2),
        ]
        instructions = units[1]
        assert instructions.content.startswith("## Instructions")
        assert "Do something else" in instructions.content
        assert "Edge Cases" not in instructions.content

    def test_preamble_unit(self):
        units = extract_markdown_units("a.md", "intro text\n\n# Title\nbody\n")
        assert units[0].section == ""
        assert units[0].content == "intro text"
        assert units[1].line == 3

    def test_no_headings(self):
        units = extract_markdown_units("a.md", "---\ndescription: x\n---\njust text\n")
        assert len(units) == 1
        assert units[0].section == ""
        assert units[0].content == "just text"

    def test_empty_file(self):
        assert extract_markdown_units("a.md", "\n\n") == []


class TestIndexState:
    """Tests for check_index_state()."""

    def test_missing(self, project_source, runtime_dir):
        state = check_index_state(index_path(runtime_dir), project_source, "h", "ascii")
        assert state == IndexState.MISSING

    def test_up_to_date(self, project_source, runtime_dir, indexed):
        state = check_index_state(index_path(runtime_dir), project_source, indexed, "ascii")
        assert state == IndexState.UP_TO_DATE

    def test_stale_on_hash(self, project_source, runtime_dir, indexed):
        state = check_index_state(index_path(runtime_dir), project_source, "other", "ascii")
        assert state == IndexState.STALE

    def test_stale_on_tokenizer(self, project_source, runtime_dir, indexed):
        state = check_index_state(index_path(runtime_dir), project_source, indexed, "cjk")
        assert state == IndexState.STALE

    def test_corrupt(self, project_source, runtime_dir):
        db = index_path(runtime_dir)
        db.parent.mkdir(parents=True)
        db.write_bytes(b"this is not a database")
        assert check_index_state(db, project_source, "h", "ascii") == IndexState.CORRUPT


class TestBuildIndex:
    """Tests for build_index()."""

    def test_noop_when_up_to_date(self, project_source, runtime_dir, indexed):
        assert build_index(project_source, runtime_dir, indexed) is False

    def test_force_rebuilds(self, project_source, runtime_dir, indexed):
        assert build_index(project_source, runtime_dir, indexed, force=True) is True

    def test_corrupt_index_rebuilt(self, project_source, runtime_dir):
        db = index_path(runtime_dir)
        db.parent.mkdir(parents=True)
        db.write_bytes(b"garbage")
        source_hash = fingerprint(project_source.path)

        assert build_index(project_source, runtime_dir, source_hash) is True
        assert check_index_state(db, project_source, source_hash, "ascii") == IndexState.UP_TO_DATE

    def test_no_temporary_files_left(self, project_source, runtime_dir, indexed):
        leftovers = [p.name for p in index_path(runtime_dir).parent.iterdir() if p.suffix == ".tmp"]
        assert leftovers == []

    def test_failed_build_keeps_previous_index(self, project_source, runtime_dir, indexed, monkeypatch):
        def broken(*args, **kwargs):
            raise IndexUnusableError("failed to build search index: boom")

        monkeypatch.setattr(index_module, "write_index", broken)
        with pytest.raises(IndexUnusableError):
            build_index(project_source, runtime_dir, indexed, force=True)

        assert search(runtime_dir, "semantic versioning")

    def test_formats_filter(self, project_source, runtime_dir):
        build_index(
            project_source, runtime_dir, "h", SearchConfig(formats=[".md"]), force=True
        )
        files = {unit.file for unit in read_sections(runtime_dir)}
        assert "notes.txt" not in files
        assert "docs/release.md" in files

    def test_txt_indexed_by_default(self, project_source, runtime_dir, indexed):
        files = {unit.file for unit in read_sections(runtime_dir)}
        assert "notes.txt" in files

    def test_registered_format(self, project_skill, project_source, runtime_dir):
        @register_format(".csv")
        def extract_csv(relpath, content):
            from skillforge.skills.index import TextUnit

            return [TextUnit(file=relpath, section="", level=0, line=1, content=content)]

        (project_skill / "table.csv").write_text("zebra,quagga\n")
        build_index(
            project_source, runtime_dir, "h", SearchConfig(formats=[".md", ".csv"]), force=True
        )
        hits = search(runtime_dir, "quagga")
        assert [hit.file for hit in hits] == ["table.csv"]

    def test_file_outside_root_rejected(self, project_skill, project_source, runtime_dir, temp_dir):
        secret = temp_dir / "secret.md"
        secret.write_text("# Secret\n\nzebrapassword123\n")
        os.symlink(secret, project_skill / "leak.md")

        with pytest.raises(PathEscapeError) as exc_info:
            build_index(project_source, runtime_dir, "h", force=True)

        assert exc_info.value.code == "E012"
        assert not index_path(runtime_dir).exists()


class TestSearch:
    """Tests for search()."""

    def test_finds_section(self, runtime_dir, indexed):
        hits = search(runtime_dir, "semantic versioning")
        assert hits[0].skill == "test-skill"
        assert hits[0].file == "docs/release.md"
        assert hits[0].section == "Versioning"
        assert hits[0].line > 0
        assert "[versioning]" in hits[0].excerpt.lower()

    def test_all_terms_required(self, runtime_dir, indexed):
        assert search(runtime_dir, "versioning zebra") == []

    def test_stemming(self, runtime_dir, indexed):
        assert search(runtime_dir, "publishing")

    def test_deterministic(self, runtime_dir, indexed):
        assert search(runtime_dir, "something") == search(runtime_dir, "something")

    def test_limit(self, runtime_dir, indexed):
        assert len(search(runtime_dir, "test", limit=1)) <= 1

    @pytest.mark.parametrize("limit", [0, -1])
    def test_non_positive_limit(self, runtime_dir, indexed, limit):
        assert search(runtime_dir, "semantic")
        assert search(runtime_dir, "semantic", limit=limit) == []
        assert search_many([runtime_dir], "semantic", limit=limit) == []

    def test_rejected_query_closes_connections(self, runtime_dir, indexed, monkeypatch):
        opened = []
        connect = index_module._connect_readonly

        def tracking_connect(db_path):
            conn = connect(db_path)
            opened.append(conn)
            return conn

        monkeypatch.setattr(index_module, "_connect_readonly", tracking_connect)
        with pytest.raises(EmptyQueryError):
            search(runtime_dir, "!!!")

        for conn in opened:
            with pytest.raises(sqlite3.ProgrammingError):
                conn.execute("SELECT 1")

    def test_punctuation_is_not_syntax(self, runtime_dir, indexed):
        assert search(runtime_dir, 'tag" OR NOT (') == search(runtime_dir, "tag OR NOT")

    @pytest.mark.parametrize("query", ["", "   ", "!!!"])
    def test_empty_query(self, runtime_dir, indexed, query):
        with pytest.raises(EmptyQueryError) as exc_info:
            search(runtime_dir, query)
        assert exc_info.value.code == "E004"

    def test_missing_index(self, runtime_dir):
        with pytest.raises(IndexUnusableError) as exc_info:
            search(runtime_dir, "anything")
        assert exc_info.value.code == "E002"

    def test_corrupt_index(self, runtime_dir):
        db = index_path(runtime_dir)
        db.parent.mkdir(parents=True)
        db.write_bytes(b"garbage")
        with pytest.raises(IndexUnusableError):
            search(runtime_dir, "anything")

    def test_search_many_skips_unusable(self, runtime_dir, indexed, temp_dir):
        empty = temp_dir / "runtime" / "other"
        empty.mkdir()
        hits = search_many([empty, runtime_dir], "versioning")
        assert {hit.skill for hit in hits} == {"test-skill"}


class TestCjk:
    """Tests for the CJK tokenizer mode."""

    def test_segment(self):
        assert segment_cjk("使用说明").split() == ["使", "用", "说", "明"]
        assert segment_cjk("plain text") == "plain text"

    def test_match_query_segmented(self):
        assert build_match_query("部署", "cjk") == '"部" "署"'
        assert build_match_query("部署", "ascii") == '"部署"'

    def test_cjk_search(self, make_skill, temp_dir, runtime_dir):
        root = make_skill(
            temp_dir / "store",
            skill_md="---\nname: test-skill\ndescription: d\n---\n# 部署指南\n\n使用命令部署技能。\n",
        )
        source = SkillSource(name="test-skill", path=root, scope=SkillScope.GLOBAL)
        build_index(source, runtime_dir, "h", SearchConfig(tokenizer="cjk"))

        hits = search(runtime_dir, "部署")
        assert hits
        assert hits[0].section == "部署指南"


def test_index_is_fts5(project_source, runtime_dir, indexed):
    with sqlite3.connect(index_path(runtime_dir)) as conn:
        sql = conn.execute("SELECT sql FROM sqlite_master WHERE name = 'sections'").fetchone()[0]
    assert "fts5" in sql.lower()
