"""Parsing of free-text service replies into JSON and extraction items.

Despite explicit instructions to return bare JSON, models wrap output in
```` ```json ```` fences or add a sentence of preamble.  The helpers here
strip fences and then decode the *first* complete JSON array (or object)
in the remaining text, ignoring anything after it.
"""

from __future__ import annotations

import json
import re
from typing import Any

import structlog

from lorekeeper.models.knowledge import ExtractionItem
from lorekeeper.services.category_normalizer import CategoryNormalizer
from lorekeeper.utils.errors import CandidateValidationError, MalformedResponseError
from lorekeeper.utils.text_normalizer import coerce_keywords

logger = structlog.get_logger(logger_name=__name__)

_JSON_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?\s*```", re.DOTALL)

_decoder = json.JSONDecoder()


def strip_code_fences(text: str) -> str:
    """Return the body of the first fenced block in *text*, or *text* itself."""
    text = text.strip()
    fence_match = _JSON_FENCE_RE.search(text)
    if fence_match:
        return fence_match.group(1).strip()
    return text


def _first_json_value(text: str, opener: str, kind: type) -> Any:
    start = text.find(opener)
    while start != -1:
        try:
            value, _ = _decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            value = None
        if isinstance(value, kind):
            return value
        start = text.find(opener, start + 1)
    raise MalformedResponseError(f"No JSON {kind.__name__} found in reply")


def parse_json_array(reply: str) -> list[Any]:
    """Decode the first JSON array in *reply*.

    Raises
    ------
    MalformedResponseError
        If no complete array can be decoded.
    """
    return _first_json_value(strip_code_fences(reply), "[", list)


def parse_json_object(reply: str) -> dict[str, Any]:
    """Decode the first JSON object in *reply*.

    Raises
    ------
    MalformedResponseError
        If no complete object can be decoded.
    """
    return _first_json_value(strip_code_fences(reply), "{", dict)


def candidate_to_item(raw: Any, normalizer: CategoryNormalizer) -> ExtractionItem:
    """Validate one raw candidate and build an :class:`ExtractionItem`.

    Raises
    ------
    CandidateValidationError
        If *raw* is not an object or lacks a non-empty title or content.
    """
    if not isinstance(raw, dict):
        raise CandidateValidationError(f"Candidate is not an object: {type(raw).__name__}")

    title = raw.get("title")
    content = raw.get("content")
    if not isinstance(title, str) or not title.strip():
        raise CandidateValidationError("Candidate has no title")
    if not isinstance(content, str) or not content.strip():
        raise CandidateValidationError(f"Candidate {title.strip()!r} has no content")

    return ExtractionItem(
        category=normalizer.normalize(raw.get("category")),
        title=title,
        keywords=coerce_keywords(raw.get("keywords")),
        content=content,
    )


def parse_extraction_reply(
    reply: str,
    normalizer: CategoryNormalizer,
    **log_context: Any,
) -> list[ExtractionItem]:
    """Turn a reply into validated items, discarding invalid candidates.

    Raises
    ------
    MalformedResponseError
        If the reply contains no JSON array at all.
    """
    items: list[ExtractionItem] = []
    for position, raw in enumerate(parse_json_array(reply)):
        try:
            items.append(candidate_to_item(raw, normalizer))
        except CandidateValidationError as exc:
            logger.debug("candidate_discarded", position=position, reason=str(exc), **log_context)
    return items
