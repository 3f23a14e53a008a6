"""Tests for cascade.lib.frontmatter module."""

from pathlib import Path

from cascade.lib.frontmatter import parse_frontmatter, parse_record
from cascade.lib.types import Estimate, ItemType, Priority, Status

from conftest import record_text


VALID = """---
item: S49
title: Core foundation
type: story
status: In Progress
priority: High
estimate: M
dependencies: [S48]
created: 2025-10-12
updated: 2025-10-14
---

# S49 - Core foundation
"""


class TestParseFrontmatter:
    """Tests for parse_frontmatter."""

    def test_valid(self):
        result = parse_frontmatter(VALID)
        assert result.success
        assert result.frontmatter["item"] == "S49"
        assert result.frontmatter["created"] == "2025-10-12"

    def test_crlf_line_endings(self):
        assert parse_frontmatter(VALID.replace("\n", "\r\n")).success

    def test_missing_delimiters(self):
        result = parse_frontmatter("# Just a heading\n")
        assert not result.success
        assert result.error == "No frontmatter found (missing --- delimiters)"

    def test_invalid_yaml(self):
        result = parse_frontmatter("---\nitem: [unclosed\n---\n")
        assert not result.success
        assert result.error.startswith("Invalid YAML syntax")

    def test_scalar_frontmatter(self):
        result = parse_frontmatter("---\njust a string\n---\n")
        assert not result.success
        assert "must be a YAML mapping" in result.error

    def test_missing_required_field(self):
        result = parse_frontmatter(VALID.replace("priority: High\n", ""))
        assert not result.success
        assert "'priority' is a required property" in result.error

    def test_unknown_status(self):
        result = parse_frontmatter(VALID.replace("In Progress", "Done"))
        assert not result.success
        assert "[frontmatter]" in result.error
        assert "at status" in result.error

    def test_bad_item_id(self):
        result = parse_frontmatter(VALID.replace("item: S49", "item: story-49"))
        assert not result.success
        assert "at item" in result.error


class TestParseRecord:
    """Tests for parse_record."""

    def test_builds_work_item(self, tmp_path):
        path = tmp_path / "story-49.md"
        path.write_text(VALID)
        item = parse_record(path)
        assert item.id == "S49"
        assert item.type == ItemType.STORY
        assert item.status == Status.IN_PROGRESS
        assert item.priority == Priority.HIGH
        assert item.estimate == Estimate.M
        assert item.dependencies == ("S48",)
        assert item.source_path == path
        assert item.parent is None
        assert item.is_leaf

    def test_parent_field(self, tmp_path):
        path = tmp_path / "story.md"
        path.write_text(record_text("S2", "story", parent="F1"))
        assert parse_record(path).parent == "F1"

    def test_malformed_returns_none_and_logs(self, tmp_path, caplog):
        path = tmp_path / "broken.md"
        path.write_text("no frontmatter here")
        assert parse_record(path) is None
        assert "[Parser] Skipping" in caplog.text

    def test_missing_file(self, tmp_path, caplog):
        assert parse_record(tmp_path / "gone.md") is None
        assert "[Parser] Cannot read" in caplog.text
