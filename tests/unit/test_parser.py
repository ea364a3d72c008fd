"""
Unit tests for SKILL.md and skill.yaml parsing.
"""

import pytest

from skillforge.errors import InvalidFrontmatterError
from skillforge.skills.parser import (
    extract_description,
    extract_headings,
    parse_frontmatter,
    parse_skill_yaml,
    parse_yaml_frontmatter,
)


class TestParseYamlFrontmatter:
    """Tests for tolerant frontmatter parsing."""

    def test_with_frontmatter(self):
        content = "---\nname: test\ndescription: hello\n---\n\n# Body\n"
        data, body = parse_yaml_frontmatter(content)
        assert data == {"name": "test", "description": "hello"}
        assert body == "# Body"

    def test_without_frontmatter(self):
        content = "# Just a heading\n"
        data, body = parse_yaml_frontmatter(content)
        assert data is None
        assert body == content

    def test_invalid_yaml(self):
        data, _ = parse_yaml_frontmatter("---\nname: [unclosed\n---\n")
        assert data is None

    def test_non_mapping(self):
        data, _ = parse_yaml_frontmatter("---\n- a\n- b\n---\n")
        assert data is None


class TestParseFrontmatter:
    """Tests for strict SKILL.md frontmatter parsing."""

    def test_valid(self, sample_skill_md):
        frontmatter = parse_frontmatter(sample_skill_md)
        assert frontmatter.name == "test-skill"
        assert frontmatter.description == "A test skill for unit tests"

    def test_extra_fields_kept(self):
        frontmatter = parse_frontmatter("---\nname: a\ndescription: b\nlicense: MIT\n---\n")
        assert frontmatter.model_extra == {"license": "MIT"}

    def test_missing_block(self):
        with pytest.raises(InvalidFrontmatterError, match="no frontmatter"):
            parse_frontmatter("# Title\n")

    @pytest.mark.parametrize(
        "content",
        [
            "---\ndescription: only\n---\n",
            "---\nname: only\n---\n",
            "---\nname: ''\ndescription: d\n---\n",
            "---\nname: a\ndescription: 42\n---\n",
        ],
    )
    def test_missing_required_field(self, content):
        with pytest.raises(InvalidFrontmatterError) as exc_info:
            parse_frontmatter(content)
        assert exc_info.value.code == "E011"


class TestParseSkillYaml:
    """Tests for the optional skill.yaml."""

    def test_valid(self):
        metadata = parse_skill_yaml("name: test\nversion: 2.0.0\nkeywords: [a, b]\n")
        assert metadata.name == "test"
        assert metadata.version == "2.0.0"
        assert metadata.keywords == ["a", "b"]

    def test_missing_name(self):
        with pytest.raises(InvalidFrontmatterError, match="name"):
            parse_skill_yaml("version: 1.0.0\n")

    def test_not_a_mapping(self):
        with pytest.raises(InvalidFrontmatterError):
            parse_skill_yaml("- a\n")


class TestExtractHeadings:
    """Tests for ATX heading extraction."""

    def test_levels_and_lines(self, sample_skill_md):
        headings = extract_headings(sample_skill_md)
        assert headings[0] == (1, "Test Skill", 6)
        assert [(level, text) for level, text, _ in headings] == [
            (1, "Test Skill"),
            (2, "Instructions"),
            (3, "Edge Cases"),
            (2, "Output Format"),
        ]

    def test_skips_fenced_code(self):
        content = "# Real\n\n```bash\n# not a heading\n```\n\n~~~\n## also not\n~~~\n## After\n"
        assert [text for _, text, _ in extract_headings(content)] == ["Real", "After"]

    def test_skips_frontmatter(self):
        content = "---\nname: a\n# comment: yes\n---\n# Title\n"
        assert extract_headings(content) == [(1, "Title", 5)]

    def test_closing_hashes_stripped(self):
        assert extract_headings("## Setup ##\n") == [(2, "Setup", 1)]

    def test_requires_space(self):
        assert extract_headings("#hashtag\n") == []


class TestExtractDescription:
    """Tests for reference document descriptions."""

    def test_present(self, sample_reference_md):
        assert extract_description(sample_reference_md) == "Deep dive into release automation"

    def test_whitespace_collapsed(self):
        assert extract_description("---\ndescription: |\n  two\n  lines\n---\n") == "two lines"

    def test_absent(self):
        assert extract_description("# No frontmatter\n") is None
