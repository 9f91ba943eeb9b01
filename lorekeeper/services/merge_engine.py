"""AI-assisted consolidation of duplicate knowledge entries.

For each :class:`DuplicateGroup` the engine sends one request that lists
every member entry and asks the service for a single consolidated entry as
``{"title", "keywords", "content"}``.  The reply is validated *before* the
store is touched, so a failed merge never leaves partial side effects.

Error handling
--------------
- Malformed replies and service failures surface as :class:`MergeError`.
- :class:`AuthenticationError` and :class:`CancellationError` propagate
  unchanged: a batch cannot continue past either.
"""

from __future__ import annotations

from collections.abc import Sequence

import structlog

from lorekeeper.interfaces.knowledge_store import IKnowledgeStore
from lorekeeper.interfaces.llm_provider import ILLMProvider
from lorekeeper.models.knowledge import (
    Category,
    DuplicateGroup,
    KnowledgeEntry,
    MergeReport,
    MergeResult,
    details_with_content,
)
from lorekeeper.services.response_parser import parse_json_object
from lorekeeper.utils.cancellation import CancelToken, run_cancellable, sleep_cancellable
from lorekeeper.utils.errors import (
    AuthenticationError,
    CancellationError,
    LoreKeeperError,
    MergeError,
)
from lorekeeper.utils.text_normalizer import coerce_keywords

logger = structlog.get_logger(logger_name=__name__)

CONFLICT_ANNOTATION = "(multiple accounts)"
MERGED_TITLE_SUFFIX = " (merged)"

_CATEGORY_STRUCTURES: dict[Category, str] = {
    Category.CHARACTER: (
        "Suggested profile structure:\n"
        "- Basic information (name, rank, position)\n"
        "- Appearance\n"
        "- Personality\n"
        "- Abilities\n"
        "- Relationships\n"
        "- Key experiences, in chronological order\n"
        "- Summary of pivotal events"
    ),
    Category.WORLD: (
        "Suggested setting structure:\n"
        "- Concept definition\n"
        "- Historical background\n"
        "- Rules and how they operate\n"
        "- Related organisations and factions\n"
        "- Important details"
    ),
    Category.CHAPTER: (
        "Suggested chapter structure:\n"
        "- Chapter range\n"
        "- Main events\n"
        "- Character interactions\n"
        "- Key turning points\n"
        "- Foreshadowing and clues"
    ),
}

_GENERIC_STRUCTURE = (
    "Suggested structure:\n"
    "- Core information\n"
    "- Detailed description\n"
    "- Related content"
)


class MergeEngine:
    """Merge duplicate groups into consolidated entries.

    Parameters
    ----------
    llm_provider:
        Text-understanding service used for the consolidation request.
    store:
        Knowledge store receiving merged entries.
    request_delay:
        Seconds to wait between groups in :meth:`merge_all`.
    """

    def __init__(
        self,
        llm_provider: ILLMProvider,
        store: IKnowledgeStore,
        request_delay: float = 2.0,
    ) -> None:
        self._llm = llm_provider
        self._store = store
        self._request_delay = request_delay

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def merge(
        self,
        group: DuplicateGroup,
        delete_originals: bool = False,
        cancel_token: CancelToken | None = None,
    ) -> KnowledgeEntry:
        """Merge one group and store the result.

        Parameters
        ----------
        group:
            The duplicate group to consolidate.
        delete_originals:
            Delete the member entries after the merged entry is stored.
        cancel_token:
            Raced against the in-flight request.

        Returns
        -------
        KnowledgeEntry
            The newly stored entry.

        Raises
        ------
        MergeError
            The reply could not be parsed or the request failed.
        AuthenticationError
            The service rejected the credentials.
        CancellationError
            *cancel_token* fired.
        """
        if cancel_token is not None:
            cancel_token.raise_if_set()
        provider_name = self._llm.get_provider_name()
        prompt = build_merge_prompt(group)
        logger.info(
            "merge_start",
            group=group.canonical_name,
            category=group.category.value,
            entries=group.size,
        )

        try:
            reply = await run_cancellable(self._llm.complete(prompt), cancel_token)
            parsed = parse_json_object(reply)
        except (AuthenticationError, CancellationError):
            raise
        except LoreKeeperError as exc:
            raise MergeError(
                message=f"Merging {group.canonical_name!r} failed: {exc}",
                provider_name=provider_name,
            ) from exc

        content = parsed.get("content")
        if not isinstance(content, str) or not content.strip():
            raise MergeError(
                message=f"Merge reply for {group.canonical_name!r} has no content",
                provider_name=provider_name,
            )

        title = parsed.get("title")
        if not isinstance(title, str) or not title.strip():
            title = f"{group.canonical_name}{MERGED_TITLE_SUFFIX}"

        entry = await self._store.add_entry(
            category=group.category,
            title=title.strip(),
            keywords=coerce_keywords(parsed.get("keywords")),
            details=details_with_content(group.category, content.strip()),
        )

        if delete_originals:
            for original in group.entries:
                await self._store.delete_entry(original.id)

        logger.info(
            "merge_complete",
            group=group.canonical_name,
            entry_id=entry.id,
            title=entry.title,
            originals_deleted=delete_originals,
        )
        return entry

    async def merge_all(
        self,
        groups: Sequence[DuplicateGroup],
        delete_originals: bool = False,
        cancel_token: CancelToken | None = None,
    ) -> MergeReport:
        """Merge *groups* one after another.

        Per-group failures are recorded and the batch continues.  An
        authentication failure or a fired *cancel_token* stops the batch;
        the returned report then has ``aborted=True``.
        """
        results: list[MergeResult] = []
        aborted = False

        for index, group in enumerate(groups):
            if index > 0 and await sleep_cancellable(self._request_delay, cancel_token):
                aborted = True
                break
            try:
                entry = await self.merge(group, delete_originals, cancel_token)
            except CancellationError:
                logger.info("merge_batch_cancelled", completed=len(results))
                aborted = True
                break
            except AuthenticationError as exc:
                logger.error("merge_batch_auth_failed", group=group.canonical_name, error=str(exc))
                results.append(MergeResult(group=group, error=str(exc)))
                aborted = True
                break
            except LoreKeeperError as exc:
                logger.warning("merge_group_failed", group=group.canonical_name, error=str(exc))
                results.append(MergeResult(group=group, error=str(exc)))
                continue
            results.append(MergeResult(group=group, entry=entry))

        report = MergeReport(results=results, aborted=aborted)
        logger.info(
            "merge_batch_complete",
            merged=len(report.succeeded),
            failed=len(report.failed),
            aborted=aborted,
        )
        return report


# ------------------------------------------------------------------
# Prompt construction
# ------------------------------------------------------------------


def _describe_entry(position: int, entry: KnowledgeEntry) -> str:
    lines = [
        f"[Entry {position}: {entry.title}]",
        f"Keywords: {', '.join(entry.keywords)}",
    ]
    lines.extend(f"{spec.label}: {value}" for spec, value in entry.filled_fields())
    return "\n".join(lines)


def build_merge_prompt(group: DuplicateGroup) -> str:
    """Build the consolidation request for *group*."""
    structure = _CATEGORY_STRUCTURES.get(group.category, _GENERIC_STRUCTURE)
    members = "\n\n---\n\n".join(
        _describe_entry(i, entry) for i, entry in enumerate(group.entries, start=1)
    )
    return (
        "You are an expert editor of fiction reference material. Merge the "
        f"following knowledge entries about the same subject \"{group.canonical_name}\" "
        "into one complete, detailed entry.\n"
        "\n"
        f"Category: {group.category.value}\n"
        f"Number of entries: {group.size}\n"
        "\n"
        "Requirements:\n"
        "1. Integrate all information without dropping any detail.\n"
        "2. Remove content that is exactly duplicated; keep every unique fact.\n"
        "3. When statements conflict, keep all of them and mark them "
        f"\"{CONFLICT_ANNOTATION}\".\n"
        "4. Organise the content in chronological or logical order.\n"
        "\n"
        f"{structure}\n"
        "\n"
        "Original entries:\n"
        f"{members}\n"
        "\n"
        "Return only a JSON object, with no other text:\n"
        '{"title": "concise title", "keywords": ["keyword1", "keyword2"], '
        '"content": "the merged content"}'
    )
