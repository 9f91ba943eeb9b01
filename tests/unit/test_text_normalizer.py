"""Unit tests for text normalization utilities."""

from __future__ import annotations

import pytest

from lorekeeper.utils.text_normalizer import (
    canonicalize_title,
    coerce_keywords,
    dedupe_preserving_order,
    fuzzy_match,
)


# ======================================================================
# canonicalize_title
# ======================================================================


class TestCanonicalizeTitle:
    def test_plain_title_unchanged(self) -> None:
        assert canonicalize_title("Saltmere") == "Saltmere"

    def test_repeated_suffixes_are_all_removed(self) -> None:
        assert canonicalize_title("Aria (healer) (2) (3)") == "Aria"

    def test_hyphenated_name_kept(self) -> None:
        assert canonicalize_title("Jean-Luc") == "Jean-Luc"

    def test_whitespace_only(self) -> None:
        assert canonicalize_title("   ") == ""


# ======================================================================
# fuzzy_match
# ======================================================================


class TestFuzzyMatch:
    def test_word_order_ignored(self) -> None:
        result = fuzzy_match("Red Tower", ["Blue Gate", "Tower Red"])
        assert result is not None
        assert result[0] == "Tower Red"
        assert result[1] == pytest.approx(1.0)

    def test_below_threshold(self) -> None:
        assert fuzzy_match("Aria", ["Borin", "Cael"], threshold=0.9) is None

    def test_empty_candidates(self) -> None:
        assert fuzzy_match("Aria", []) is None


# ======================================================================
# coerce_keywords
# ======================================================================


class TestCoerceKeywords:
    def test_list(self) -> None:
        assert coerce_keywords(["Aria", " healer ", "Aria", ""]) == ["Aria", "healer"]

    def test_delimited_string(self) -> None:
        assert coerce_keywords("Aria, healer；北境、剑|rain") == ["Aria", "healer", "北境", "剑", "rain"]

    def test_non_string_items_are_stringified(self) -> None:
        assert coerce_keywords([1, None, "two"]) == ["1", "two"]

    @pytest.mark.parametrize("raw", [None, 5, {"a": 1}])
    def test_unsupported_types(self, raw: object) -> None:
        assert coerce_keywords(raw) == []


def test_dedupe_preserving_order() -> None:
    assert dedupe_preserving_order(["b", "a", "b", "", "c", "a"]) == ["b", "a", "c"]
