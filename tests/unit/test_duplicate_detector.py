"""Unit tests for title canonicalization and duplicate grouping."""

from __future__ import annotations

import pytest

from lorekeeper.models.knowledge import Category
from lorekeeper.services.duplicate_detector import DuplicateDetector, canonicalize
from tests.conftest import make_entry


class TestCanonicalize:
    @pytest.mark.parametrize(
        ("title", "expected"),
        [
            ("Aria", "Aria"),
            ("Aria (2)", "Aria"),
            ("Aria（3）", "Aria"),
            ("Aria (the healer)", "Aria"),
            ("Aria — the healer", "Aria"),
            ("Aria – the healer", "Aria"),
            ("Aria: the healer", "Aria"),
            ("Aria - the healer", "Aria"),
            ("Aria (the healer) (2)", "Aria"),
            ("Jean-Luc", "Jean-Luc"),
            ("  Saltmere  ", "Saltmere"),
            ("林萧：少年剑客", "林萧"),
        ],
    )
    def test_strips_qualifiers(self, title: str, expected: str) -> None:
        assert canonicalize(title) == expected

    @pytest.mark.parametrize(
        "title",
        ["Aria (a) (b)", "Aria (x (2))", "Name - one - two", "(2)", "A (b) - c (3)", ""],
    )
    def test_idempotent(self, title: str) -> None:
        once = canonicalize(title)
        assert canonicalize(once) == once


class TestDuplicateDetector:
    def test_groups_variants_of_the_same_name(self) -> None:
        entries = [
            make_entry("Aria"),
            make_entry("Aria (2)"),
            make_entry("Aria — the healer"),
            make_entry("Borin"),
            make_entry("Aria", category=Category.LOCATION),
        ]

        groups = DuplicateDetector().find_duplicates(entries)

        assert len(groups) == 1
        group = groups[0]
        assert group.canonical_name == "Aria"
        assert group.category is Category.CHARACTER
        assert [e.title for e in group.entries] == ["Aria", "Aria (2)", "Aria — the healer"]

    def test_no_duplicates(self) -> None:
        entries = [make_entry("Aria"), make_entry("Borin")]
        assert DuplicateDetector().find_duplicates(entries) == []

    def test_empty_input(self) -> None:
        assert DuplicateDetector().find_duplicates([]) == []

    def test_grouping_is_transitive(self) -> None:
        entries = [
            make_entry("Borin (2)"),
            make_entry("Borin: the smith"),
            make_entry("Borin (the smith)"),
        ]

        groups = DuplicateDetector().find_duplicates(entries)

        assert len(groups) == 1
        assert groups[0].size == 3

    def test_short_names_are_never_grouped(self) -> None:
        entries = [make_entry("X"), make_entry("X (2)")]
        assert DuplicateDetector().find_duplicates(entries) == []

    def test_min_name_length_is_configurable(self) -> None:
        entries = [make_entry("X"), make_entry("X (2)")]
        groups = DuplicateDetector(min_name_length=1).find_duplicates(entries)
        assert [g.canonical_name for g in groups] == ["X"]

    def test_largest_group_first_then_first_seen(self) -> None:
        entries = [
            make_entry("Borin"),
            make_entry("Cael"),
            make_entry("Aria"),
            make_entry("Borin (2)"),
            make_entry("Aria (2)"),
            make_entry("Cael (2)"),
            make_entry("Aria (3)"),
        ]

        groups = DuplicateDetector().find_duplicates(entries)

        assert [(g.canonical_name, g.size) for g in groups] == [
            ("Aria", 3),
            ("Borin", 2),
            ("Cael", 2),
        ]

    def test_every_grouped_entry_shares_the_key(self) -> None:
        entries = [make_entry(t) for t in ("Aria", "Aria (2)", "Borin", "Borin - smith")]

        for group in DuplicateDetector().find_duplicates(entries):
            assert {canonicalize(e.title) for e in group.entries} == {group.canonical_name}
            assert {e.category for e in group.entries} == {group.category}
