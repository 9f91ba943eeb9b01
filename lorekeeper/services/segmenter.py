"""Chapter-aware text segmentation for long manuscripts.

Splits raw manuscript text into an ordered list of
:class:`~lorekeeper.models.pipeline.Chunk` objects, each no longer than
``max_chunk_length`` characters, so every chunk fits in one request to the
text-understanding service.

The algorithm runs in four phases:

1. **Preprocess** -- strip platform boilerplate (download banners, "本书由…
   整理" credits, bare URLs), delete long separator runs and collapse
   stacked blank lines.

2. **Detect chapters** -- try a fixed, ordered list of line-anchored heading
   patterns.  The pattern with the most matches wins (ties go to the earlier
   pattern).  A winner with at most one match is not trusted: a single
   "Chapter 1" line does not make a chaptered book.

3. **Split** -- text between headings becomes a candidate labelled with the
   heading; oversized candidates (or the whole text when no chapters were
   found) are packed paragraph by paragraph.  A paragraph that alone exceeds
   the limit is split at sentence boundaries and, failing that, hard-cut.

4. **Filter noise** -- candidates shorter than ``min_chunk_length`` or
   dominated by boilerplate keywords are dropped.  Short trailing residue is
   dropped, never merged backward into the previous chunk.
"""

from __future__ import annotations

import re

import structlog

from lorekeeper.models.pipeline import Chunk

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_MAX_CHUNK_LENGTH = 3000
DEFAULT_MIN_CHUNK_LENGTH = 50
DEFAULT_METADATA_KEYWORD_THRESHOLD = 3

# ------------------------------------------------------------------
# Preprocessing patterns
# ------------------------------------------------------------------

_BOILERPLATE_LINE = re.compile(
    r"^[ \t]*(?:downloaded from|this e-?book (?:is|was)|scanned by|"
    r"本书由|本书来自|更多精彩|免费阅读|txt下载|最新章节请|手机阅读)[^\n]*$",
    re.IGNORECASE | re.MULTILINE,
)
_URL = re.compile(r"(?:https?://|www\.)[^\s<>\"'）)]+", re.IGNORECASE)
_SEPARATOR_RUN = re.compile(r"[=\-_*~#·—─]{5,}")
_STACKED_BLANK_LINES = re.compile(r"\n(?:[ \t]*\n){2,}")
_TRAILING_SPACE = re.compile(r"[ \t]+$", re.MULTILINE)

# Boilerplate phrases counted by the noise filter; a candidate hitting the
# threshold is treated as front/back matter rather than story text.  Only
# platform and publishing phrases belong here.
_METADATA_KEYWORDS: tuple[str, ...] = (
    "copyright",
    "all rights reserved",
    "isbn",
    "ebook",
    "downloaded from",
    "版权所有",
    "本书由",
    "本书来自",
    "txt下载",
    "小说网",
    "最新章节",
    "免费阅读",
    "手机阅读",
    "更多精彩",
)

# ------------------------------------------------------------------
# Chapter heading patterns (order breaks ties)
# ------------------------------------------------------------------

_NUMBER_WORDS = (
    r"one|two|three|four|five|six|seven|eight|nine|ten|eleven|twelve|"
    r"thirteen|fourteen|fifteen|sixteen|seventeen|eighteen|nineteen|twenty"
)

_HEADING_PATTERNS: list[re.Pattern[str]] = [
    # "第一章 初遇", "第12回", "第三卷"
    re.compile(
        r"^[ \t]*第[一二三四五六七八九十百千万零〇两\d]+[章回节卷][^\n]*$",
        re.MULTILINE,
    ),
    # "Chapter 1", "CHAPTER XII: The Fall", "Chapter One"
    re.compile(
        rf"^[ \t]*chapter[ \t]+(?:\d+|[ivxlcdm]+|{_NUMBER_WORDS})\b[^\n]*$",
        re.IGNORECASE | re.MULTILINE,
    ),
    # "Part 2", "BOOK III"
    re.compile(
        r"^[ \t]*(?:part|book)[ \t]+(?:\d+|[ivxlcdm]+)\b[^\n]*$",
        re.IGNORECASE | re.MULTILINE,
    ),
    # Markdown headings
    re.compile(r"^[ \t]{0,3}#{1,6}[ \t]+\S[^\n]*$", re.MULTILINE),
    # "12. The Storm" (short numbered heading lines)
    re.compile(r"^[ \t]*\d{1,3}\.[ \t]+\S[^\n]{0,60}$", re.MULTILINE),
]

_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")
# Sentence terminator run plus any closing quotes/brackets and whitespace.
_SENTENCE_END = re.compile(r"[.!?。！？]+[\"'”’」』)）]*\s*")


class TextSegmenter:
    """Partitions manuscript text into bounded, ordered chunks.

    Parameters
    ----------
    max_chunk_length:
        Hard upper bound on ``len(chunk.text)``.
    min_chunk_length:
        Candidates shorter than this are dropped as noise.
    metadata_keyword_threshold:
        Candidates with at least this many boilerplate keyword hits are
        dropped as noise.
    """

    def __init__(
        self,
        max_chunk_length: int = DEFAULT_MAX_CHUNK_LENGTH,
        min_chunk_length: int = DEFAULT_MIN_CHUNK_LENGTH,
        metadata_keyword_threshold: int = DEFAULT_METADATA_KEYWORD_THRESHOLD,
    ) -> None:
        _validate_bounds(max_chunk_length, min_chunk_length)
        self._max = max_chunk_length
        self._min = min_chunk_length
        self._keyword_threshold = metadata_keyword_threshold

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def segment(self, text: str, max_chunk_length: int | None = None) -> list[Chunk]:
        """Split *text* into chunks in source order.

        Parameters
        ----------
        text:
            Raw manuscript text.
        max_chunk_length:
            Overrides the instance limit for this call.

        Returns
        -------
        list[Chunk]
            Ordered chunks; empty for empty or whitespace-only input.

        Raises
        ------
        ValueError
            If the limit is not positive or is below the minimum length.
        """
        limit = self._max if max_chunk_length is None else max_chunk_length
        _validate_bounds(limit, self._min)

        if not text or not text.strip():
            return []

        cleaned = preprocess(text)
        pattern = self._detect_heading_pattern(cleaned)

        candidates: list[tuple[str, str | None]] = []
        if pattern is None:
            candidates.extend((piece, None) for piece in self._pack_paragraphs(cleaned, limit))
        else:
            for body, label in self._split_chapters(cleaned, pattern):
                if len(body) <= limit:
                    candidates.append((body, label))
                else:
                    candidates.extend(
                        (piece, label) for piece in self._pack_paragraphs(body, limit)
                    )

        chunks = [
            Chunk(text=body, chapter_label=label)
            for body, label in candidates
            if not self._is_noise(body)
        ]
        logger.debug(
            "segmentation_complete",
            num_chunks=len(chunks),
            dropped=len(candidates) - len(chunks),
            chaptered=pattern is not None,
            max_chunk_length=limit,
        )
        return chunks

    # ------------------------------------------------------------------
    # Chapter detection / splitting
    # ------------------------------------------------------------------

    @staticmethod
    def _detect_heading_pattern(text: str) -> re.Pattern[str] | None:
        best: re.Pattern[str] | None = None
        best_count = 0
        for pattern in _HEADING_PATTERNS:
            count = sum(1 for _ in pattern.finditer(text))
            if count > best_count:
                best, best_count = pattern, count
        if best_count <= 1:
            return None
        return best

    @staticmethod
    def _split_chapters(
        text: str, pattern: re.Pattern[str]
    ) -> list[tuple[str, str | None]]:
        """Return ``(body, heading)`` pairs; the preamble has no heading."""
        matches = list(pattern.finditer(text))
        sections: list[tuple[str, str | None]] = []

        preamble = text[: matches[0].start()].strip()
        if preamble:
            sections.append((preamble, None))

        for i, match in enumerate(matches):
            end = matches[i + 1].start() if i + 1 < len(matches) else len(text)
            body = text[match.end() : end].strip()
            if body:
                sections.append((body, match.group(0).strip()))
        return sections

    # ------------------------------------------------------------------
    # Paragraph / sentence packing
    # ------------------------------------------------------------------

    def _pack_paragraphs(self, text: str, limit: int) -> list[str]:
        """Greedily pack paragraphs into pieces no longer than *limit*."""
        paragraphs = [p.strip() for p in _PARAGRAPH_BREAK.split(text) if p.strip()]
        pieces: list[str] = []
        current = ""

        for para in paragraphs:
            if len(para) > limit:
                if current:
                    pieces.append(current)
                    current = ""
                pieces.extend(self._pack_sentences(para, limit))
                continue

            candidate = f"{current}\n\n{para}" if current else para
            if len(candidate) > limit:
                pieces.append(current)
                current = para
            else:
                current = candidate

        if current:
            pieces.append(current)
        return pieces

    @staticmethod
    def _pack_sentences(paragraph: str, limit: int) -> list[str]:
        """Split one oversized paragraph at sentence ends, hard-cutting if needed."""
        sentences = split_sentences(paragraph)
        pieces: list[str] = []
        current = ""

        for sentence in sentences:
            if len(current) + len(sentence) > limit and current.strip():
                pieces.append(current.strip())
                current = ""
            if len(sentence) > limit:
                for start in range(0, len(sentence), limit):
                    piece = sentence[start : start + limit].strip()
                    if piece:
                        pieces.append(piece)
                continue
            current += sentence

        if current.strip():
            pieces.append(current.strip())
        return pieces

    # ------------------------------------------------------------------
    # Noise filter
    # ------------------------------------------------------------------

    def _is_noise(self, body: str) -> bool:
        if not body or len(body) < self._min:
            return True
        return metadata_keyword_hits(body) >= self._keyword_threshold


# ------------------------------------------------------------------
# Module-level helpers
# ------------------------------------------------------------------


def _validate_bounds(max_chunk_length: int, min_chunk_length: int) -> None:
    if max_chunk_length <= 0:
        raise ValueError(f"max_chunk_length must be positive, got {max_chunk_length}")
    if min_chunk_length < 0:
        raise ValueError(f"min_chunk_length must not be negative, got {min_chunk_length}")
    if max_chunk_length < min_chunk_length:
        raise ValueError(
            f"max_chunk_length ({max_chunk_length}) is below "
            f"min_chunk_length ({min_chunk_length})"
        )


def preprocess(text: str) -> str:
    """Normalise line endings and strip boilerplate from raw text."""
    cleaned = text.replace("\r\n", "\n").replace("\r", "\n")
    cleaned = _BOILERPLATE_LINE.sub("", cleaned)
    cleaned = _URL.sub("", cleaned)
    cleaned = _SEPARATOR_RUN.sub("", cleaned)
    cleaned = _TRAILING_SPACE.sub("", cleaned)
    cleaned = _STACKED_BLANK_LINES.sub("\n\n", cleaned)
    return cleaned.strip()


def split_sentences(text: str) -> list[str]:
    """Split *text* after Western and CJK sentence terminators.

    Whitespace following a terminator stays attached to its sentence, so
    ``"".join(split_sentences(t)) == t``.
    """
    sentences: list[str] = []
    last = 0
    for match in _SENTENCE_END.finditer(text):
        sentences.append(text[last : match.end()])
        last = match.end()
    if last < len(text):
        sentences.append(text[last:])
    return sentences


def metadata_keyword_hits(text: str) -> int:
    """Count boilerplate keyword occurrences in *text* (case-insensitive)."""
    lowered = text.lower()
    return sum(lowered.count(keyword) for keyword in _METADATA_KEYWORDS)


def segment(text: str, max_chunk_length: int = DEFAULT_MAX_CHUNK_LENGTH) -> list[Chunk]:
    """Segment *text* with default noise settings.

    The minimum length is lowered to *max_chunk_length* when the limit is
    smaller than the default minimum.
    """
    return TextSegmenter(
        max_chunk_length=max_chunk_length,
        min_chunk_length=min(DEFAULT_MIN_CHUNK_LENGTH, max(max_chunk_length, 0)),
    ).segment(text)
