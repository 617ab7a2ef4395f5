"""Unit tests for the level-section scanner."""

import pytest

from prodsys.errors import InvalidEncoding
from prodsys.scanner import (
    as_text,
    heading_level,
    project_name,
    scan,
    section_bounds,
    split_lines,
    task_records,
    transition,
)


PROJECT = """# Project: Alpha

**Status:** Active

- [ ] Before any level

## Goal
- [ ] Goal bullet

## Level 3 Milestones (Quarterly)
- [ ] Milestone A
- [x] Milestone B

## Level 0 Actions (Next 15 minutes)
- [ ] Quick call
### Sub-notes
- [x] Under sub-notes

## Completed
- [x] Old thing
"""


class TestTransition:
    """Test cases for heading state transitions."""

    def test_level_heading_enters_level(self):
        """Test entering a level from any state."""
        assert transition(None, "## Level 2 Tasks") == (2, True)
        assert transition(4, "# Level 0") == (0, True)
        assert transition(None, "### Level 1 (This Week)") == (1, True)

    def test_plain_h2_resets(self):
        """Test that a non-level ## heading leaves level tracking."""
        assert transition(3, "## Notes") == (None, True)
        assert transition(3, "### Sub heading") == (None, True)

    def test_h1_without_level_keeps_state(self):
        """Test that a single # heading leaves the state unchanged."""
        assert transition(2, "# Project: Alpha") == (2, True)

    def test_level_out_of_range_keeps_state(self):
        """Test headings naming Level 5 or Level 10."""
        assert transition(1, "## Level 5 Dreams") == (1, True)
        assert transition(1, "## Level 10") == (1, True)

    def test_non_heading_passes_through(self):
        """Test ordinary lines."""
        assert transition(2, "- [ ] task") == (2, False)
        assert transition(None, "text") == (None, False)

    def test_heading_level(self):
        """Test extracting the level token."""
        assert heading_level("## Current Focus (Level 2-3)") == 2
        assert heading_level("not a heading Level 2") is None
        assert heading_level("## MyLevel 2") is None


class TestScan:
    """Test cases for scan()."""

    def test_levels_assigned(self):
        """Test classification of every checkbox."""
        entries = scan(PROJECT)
        assert [(e.level, e.completed, e.description) for e in entries] == [
            (None, False, "Before any level"),
            (None, False, "Goal bullet"),
            (3, False, "Milestone A"),
            (3, True, "Milestone B"),
            (0, False, "Quick call"),
            (None, True, "Under sub-notes"),
            (None, True, "Old thing"),
        ]

    def test_line_indices(self):
        """Test that line indices point at the source lines."""
        lines = PROJECT.splitlines()
        for entry in scan(PROJECT):
            assert entry.description in lines[entry.line_index]

    def test_bytes_input(self):
        """Test UTF-8 bytes are decoded."""
        entries = scan("## Level 1\n- [ ] Café\n".encode("utf-8"))
        assert entries[0].description == "Café"

    def test_invalid_bytes(self):
        """Test invalid UTF-8 raises InvalidEncoding."""
        with pytest.raises(InvalidEncoding):
            scan(b"\xff\xfe\xfa")

    def test_non_text_input(self):
        """Test non-text input raises InvalidEncoding."""
        with pytest.raises(InvalidEncoding):
            as_text(42)

    def test_empty_and_malformed(self):
        """Test that malformed markdown never raises."""
        assert scan("") == []
        entries = scan("####\n- [\n- [ ]\n##Level 2\n- [ ] x")
        assert [(e.level, e.description, e.line_index) for e in entries] == [(2, "x", 4)]

    def test_crlf(self):
        """Test CRLF line endings."""
        entries = scan("## Level 0\r\n- [ ] one\r\n- [x] two\r\n")
        assert [(e.level, e.description) for e in entries] == [(0, "one"), (0, "two")]

    @pytest.mark.parametrize("separator", ["\x0c", "\x0b", "\x1c", "\x85", "\u2028", "\u2029"])
    def test_only_newline_breaks_lines(self, separator):
        """Test that other line separators stay inside the description."""
        entries = scan(f"## Level 0\n- [ ] page{separator}break\n- [ ] next\n")
        assert [(e.description, e.line_index) for e in entries] == [(f"page{separator}break", 1), ("next", 2)]

    def test_separator_does_not_start_a_task(self):
        """Test that a checkbox after U+2028 is not a separate task."""
        entries = scan("## Level 0\n- [ ] x\u2028- [x] hidden\n")
        assert len(entries) == 1
        assert entries[0].completed is False


class TestSplitLines:
    """Test cases for split_lines()."""

    def test_bodies(self):
        """Test that CRLF and LF endings are removed."""
        assert split_lines("a\r\nb\nc") == ["a", "b", "c"]
        assert split_lines("a\n") == ["a"]
        assert split_lines("") == []

    def test_keepends(self):
        """Test that joining the pieces restores the text."""
        text = "a\r\nb\x0cc\n\nd"
        lines = split_lines(text, keepends=True)
        assert lines == ["a\r\n", "b\x0cc\n", "\n", "d"]
        assert "".join(lines) == text


class TestProjectName:
    """Test cases for project_name()."""

    def test_title_line(self):
        """Test # Project: title."""
        assert project_name(PROJECT, "projects/alpha.md") == "Alpha"

    def test_bom_is_ignored(self):
        """Test a leading byte order mark."""
        assert project_name("\ufeff# Project: Beta\n", "b.md") == "Beta"

    def test_falls_back_to_stem(self):
        """Test files without a title line."""
        assert project_name("# Something else\n", "projects/work/gamma.md") == "gamma"
        assert project_name("", "delta.md") == "delta"

    def test_title_must_be_first_line(self):
        """Test that a later title line is ignored."""
        assert project_name("\n# Project: Late\n", "late-file.md") == "late-file"

    @pytest.mark.parametrize("title", ["# Project:", "# Project:   ", "# Project: \t"])
    def test_blank_title_falls_back_to_stem(self, title):
        """Test that an empty title is not used as the project name."""
        assert project_name(f"{title}\n- [ ] a\n", "projects/alpha.md") == "alpha"


class TestTaskRecords:
    """Test cases for task_records()."""

    def test_classified_only_by_default(self):
        """Test that unclassified tasks are dropped."""
        records = task_records(PROJECT, "alpha.md")
        assert [r.description for r in records] == ["Milestone A", "Milestone B", "Quick call"]
        assert all(r.project_name == "Alpha" for r in records)
        assert all(r.source_file == "alpha.md" for r in records)

    def test_include_unclassified(self):
        """Test opting into unclassified tasks."""
        records = task_records(PROJECT, "alpha.md", include_unclassified=True)
        assert len(records) == 7
        assert records[0].level is None


class TestSectionBounds:
    """Test cases for section_bounds()."""

    def test_section_ends_at_next_heading(self):
        """Test that any heading ends the section."""
        lines = PROJECT.splitlines()
        start, end = section_bounds(lines, 0)
        assert lines[start].startswith("## Level 0")
        assert lines[end] == "### Sub-notes"

    def test_section_at_end_of_file(self):
        """Test a section running to the end."""
        lines = ["# Project: X", "## Level 1", "- [ ] a"]
        assert section_bounds(lines, 1) == (1, 3)

    def test_missing_section(self):
        """Test a level with no heading."""
        assert section_bounds(PROJECT.splitlines(), 2) is None

    def test_first_section_wins(self):
        """Test duplicate level headings."""
        lines = ["## Level 1 A", "- [ ] a", "## Level 1 B", "- [ ] b"]
        assert section_bounds(lines, 1) == (0, 2)
