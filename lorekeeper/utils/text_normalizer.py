"""Text normalization utilities for knowledge-entry titles and keywords.

This module handles three distinct normalization concerns:

1. **Title canonicalization**: strips numbering suffixes such as ``(2)``,
   trailing parentheticals and dash/colon qualifiers so that
   ``"Aria (2)"`` and ``"Aria — the healer"`` both reduce to ``"Aria"``.
   The duplicate detector groups entries on this canonical form.

2. **Fuzzy matching**: rapidfuzz ``token_sort_ratio`` lookups used by the
   importer to find an existing entry whose title differs only cosmetically.

3. **Keyword coercion**: the extraction service returns keywords either as a
   JSON list or as one delimiter-separated string; both become an ordered,
   de-duplicated list of strings.
"""

import re
from typing import Any

from rapidfuzz import fuzz, process

# ------------------------------------------------------------------
# Title canonicalization
# ------------------------------------------------------------------

# "(2)", "（3）" numbering suffix left by repeated imports.
_NUMERIC_SUFFIX = re.compile(r"\s*[（(]\s*\d+\s*[)）]\s*$")

# Any trailing parenthetical, ASCII or full-width.
_PAREN_SUFFIX = re.compile(r"\s*[（(][^()（）]*[)）]\s*$")

# A qualifier introduced by an em/en dash or a colon anywhere, or by an
# ASCII hyphen preceded by whitespace.  "Jean-Luc" keeps its hyphen.
_QUALIFIER_SUFFIX = re.compile(r"(?:\s*[—–:：]|\s+-)\s*.*$", re.DOTALL)


def canonicalize_title(title: str) -> str:
    """Reduce *title* to the name used as a duplicate-matching key.

    The three stripping rules are applied repeatedly until nothing changes,
    so ``canonicalize_title(canonicalize_title(t)) == canonicalize_title(t)``
    holds for every input.

    Args:
        title: Raw entry title.

    Returns:
        The canonical name (may be empty).
    """
    name = title.strip()
    while True:
        previous = name
        name = _NUMERIC_SUFFIX.sub("", name)
        name = _PAREN_SUFFIX.sub("", name)
        name = _QUALIFIER_SUFFIX.sub("", name)
        name = name.strip()
        if name == previous:
            return name


def fuzzy_match(
    query: str,
    candidates: list[str],
    threshold: float = 0.8,
) -> tuple[str, float] | None:
    """Find the best fuzzy match for a query among candidates.

    Uses rapidfuzz ``token_sort_ratio``, which sorts tokens before comparing
    so word-order differences ("Red Tower" / "Tower Red") still match.

    Args:
        query: The string to match.
        candidates: List of candidate strings to match against.
        threshold: Minimum similarity score (0.0--1.0) to accept a match.

    Returns:
        A (best_match, score) tuple if a match meets the threshold, else None.
    """
    if not candidates:
        return None

    result = process.extractOne(
        query,
        candidates,
        scorer=fuzz.token_sort_ratio,
        score_cutoff=threshold * 100,
    )

    if result is None:
        return None

    match_str, score, _ = result
    return (match_str, score / 100.0)


# ------------------------------------------------------------------
# Keyword coercion
# ------------------------------------------------------------------

# Delimiters seen in string-valued keyword fields: ASCII and full-width
# commas, the CJK enumeration comma, semicolons, pipes and newlines.
_KEYWORD_DELIMITERS = re.compile(r"[,，、;；|\n]+")


def coerce_keywords(raw: Any) -> list[str]:
    """Coerce a raw ``keywords`` value into an ordered set of strings.

    Args:
        raw: A list of values, a delimiter-separated string, or anything else.

    Returns:
        Stripped, non-empty keywords in first-seen order.  Unsupported
        types yield an empty list.
    """
    if isinstance(raw, str):
        values: list[Any] = _KEYWORD_DELIMITERS.split(raw)
    elif isinstance(raw, (list, tuple)):
        values = list(raw)
    else:
        return []
    return dedupe_preserving_order(str(v).strip() for v in values if v is not None)


def dedupe_preserving_order(values: Any) -> list[str]:
    """Return the non-empty strings of *values* without repeats, order kept."""
    seen: set[str] = set()
    result: list[str] = []
    for value in values:
        if value and value not in seen:
            seen.add(value)
            result.append(value)
    return result
