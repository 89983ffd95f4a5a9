"""
Unit tests for finish-stat parsing from attachment descriptions.
"""
import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from core.finishes import (
    FinishEntry,
    normalize_name,
    parse_finish_stats,
    format_finish_stats,
    is_screenshot_description,
    is_finish_description,
    aggregate_finish_stats,
)


class TestNormalizeName:
    """Tests for name normalization."""

    def test_case_and_whitespace(self):
        """Test case folding and whitespace collapsing."""
        assert normalize_name("  Storm   Pegasus ") == "storm pegasus"

    def test_invisible_characters(self):
        """Test zero-width characters and non-breaking spaces."""
        assert normalize_name("Da\u200bran\u00a0Bey\ufeff") == "daran bey"

    def test_none(self):
        """Test None normalizes to an empty string."""
        assert normalize_name(None) == ""


class TestParseFinishStats:
    """Tests for parse_finish_stats."""

    def test_two_players(self):
        """Test a typical description with a header and two players."""
        text = ("Finishes – 1. Alice: [Spin: 2, Over: 1, Burst: 0, Extreme: 1, Penalty: 0] | "
                "2. Bob: [Spin: 1, Over: 0, Burst: 2, Extreme: 0, Penalty: 1]")
        entries = parse_finish_stats(text)
        assert [e.name for e in entries] == ["Alice", "Bob"]
        assert entries[0].to_dict() == {
            'name': 'Alice', 'spin': 2, 'over': 1, 'burst': 0, 'extreme': 1, 'penalty': 0
        }
        assert entries[1].burst == 2
        assert entries[1].penalty == 1

    def test_total(self):
        """Test the total across all finish types."""
        entry = parse_finish_stats("Alice: [Spin: 2, Over: 1, Burst: 3]")[0]
        assert entry.total == 6

    def test_missing_and_unknown_labels(self):
        """Test absent stats default to 0 and unknown labels are ignored."""
        entry = parse_finish_stats("Alice: [Spin: 2, Foo: 9]")[0]
        assert entry.spin == 2
        assert entry.over == 0
        assert not hasattr(entry, 'foo')

    def test_non_numeric_value(self):
        """Test non-numeric counts become 0."""
        entry = parse_finish_stats("Alice: [Spin: two, Over: 1]")[0]
        assert entry.spin == 0
        assert entry.over == 1

    def test_case_insensitive_labels(self):
        """Test stat labels are matched regardless of case."""
        entry = parse_finish_stats("Alice: [SPIN: 3, over: 2]")[0]
        assert (entry.spin, entry.over) == (3, 2)

    def test_no_entries(self):
        """Test text without any stat block."""
        assert parse_finish_stats("Match Screenshot") == []
        assert parse_finish_stats("") == []
        assert parse_finish_stats(None) == []

    def test_format_round_trip(self):
        """Test formatted text parses back to the same counts."""
        entries = [FinishEntry("Alice", spin=1, over=2), FinishEntry("Bob", burst=3, penalty=1)]
        parsed = parse_finish_stats(format_finish_stats(entries))
        assert [e.to_dict() for e in parsed] == [e.to_dict() for e in entries]


class TestClassification:
    """Tests for attachment description classification."""

    def test_screenshot(self):
        """Test screenshot descriptions."""
        assert is_screenshot_description("Match Screenshot - Alice vs Bob")
        assert not is_screenshot_description("Finishes – Alice: [Spin: 1]")
        assert not is_screenshot_description(None)

    def test_finish(self):
        """Test finish descriptions, with or without the header."""
        assert is_finish_description("Finishes – Alice: [Spin: 1]")
        assert is_finish_description("Alice: [Spin: 1]")
        assert not is_finish_description("match screenshot with finishes")
        assert not is_finish_description("Great game!")
        assert not is_finish_description(42)


class TestAggregateFinishStats:
    """Tests for aggregate_finish_stats."""

    def test_sums_over_matches(self):
        """Test totals for one player across matches and descriptions."""
        descriptions = {
            10: ["Alice: [Spin: 2, Over: 1] | Bob: [Burst: 1]"],
            11: ["Bob: [Spin: 1]", "alice : [Extreme: 1, Penalty: 1]"],
            12: ["Carol: [Spin: 4]"],
        }
        totals = aggregate_finish_stats("ALICE", descriptions)
        assert totals['spin'] == 2
        assert totals['over'] == 1
        assert totals['extreme'] == 1
        assert totals['penalty'] == 1
        assert totals['total'] == 5
        assert totals['matches_with_stats'] == 2

    def test_player_without_stats(self):
        """Test a player never mentioned."""
        totals = aggregate_finish_stats("Dave", {1: ["Alice: [Spin: 1]"]})
        assert totals['total'] == 0
        assert totals['matches_with_stats'] == 0
