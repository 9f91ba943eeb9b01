"""End-to-end flow: segment, extract with a pause, resume from disk, import, dedupe, merge."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from lorekeeper.interfaces.llm_provider import ILLMProvider
from lorekeeper.models.knowledge import Category
from lorekeeper.models.pipeline import PipelineCheckpoint, PipelineStatus
from lorekeeper.pipeline.extraction_pipeline import ExtractionPipeline
from lorekeeper.providers.store.sqlite_store import SQLiteKnowledgeStore
from lorekeeper.services.duplicate_detector import DuplicateDetector
from lorekeeper.services.knowledge_importer import KnowledgeImporter
from lorekeeper.services.merge_engine import MergeEngine
from lorekeeper.services.segmenter import TextSegmenter
from lorekeeper.utils.cancellation import CancelToken
from lorekeeper.utils.retry import RetryPolicy
from tests.conftest import ScriptedLLM


def _character(title: str, content: str) -> str:
    return json.dumps([{"category": "character", "title": title, "content": content}])


@pytest.fixture
def manuscript() -> str:
    return "\n\n".join(
        f"CHUNK-{i} The caravan crossed the salt flats at dusk and camped." for i in range(6)
    )


@pytest.mark.asyncio
async def test_full_flow(manuscript: str, tmp_path: Path) -> None:
    chunks = TextSegmenter(max_chunk_length=100, min_chunk_length=10).segment(manuscript)
    assert len(chunks) == 6

    llm = ScriptedLLM(
        {
            1: _character("Aria", "A healer from the north."),
            4: _character("Aria (2)", "Carries a silver locket."),
        }
    )

    # First pass: pause after three chunks and persist the checkpoint.
    token = CancelToken()
    first = ExtractionPipeline(llm, retry_policy=RetryPolicy(base_delay=0), request_delay=0)
    run = first.run(chunks, cancel_token=token)
    async for _ in run:
        if first.checkpoint is not None and first.checkpoint.cursor == 3:
            token.request_pause()
    paused = run.outcome
    assert paused is not None and paused.status is PipelineStatus.PAUSED
    assert paused.checkpoint is not None

    checkpoint_file = tmp_path / "checkpoint.json"
    checkpoint_file.write_text(paused.checkpoint.model_dump_json(), encoding="utf-8")

    # Second pass: a fresh pipeline resumes from the file.
    restored = PipelineCheckpoint.model_validate_json(checkpoint_file.read_text(encoding="utf-8"))
    second = ExtractionPipeline(llm, retry_policy=RetryPolicy(base_delay=0), request_delay=0)
    outcome = await second.resume(checkpoint=restored).collect()

    assert outcome.status is PipelineStatus.COMPLETED
    assert llm.calls == [0, 1, 2, 3, 4, 5]
    assert [item.title for item in outcome.items] == [
        "Item 0",
        "Aria",
        "Item 2",
        "Item 3",
        "Aria (2)",
        "Item 5",
    ]

    # Import into a SQLite store.
    store = SQLiteKnowledgeStore(tmp_path / "knowledge.db")
    await store.initialize()
    report = await KnowledgeImporter(store).import_items(outcome.items)
    assert len(report.created) == 6

    # Detect and merge duplicates.
    groups = DuplicateDetector().find_duplicates(await store.list_entries())
    assert len(groups) == 1
    assert groups[0].canonical_name == "Aria"
    assert groups[0].category is Category.CHARACTER

    merge_llm = MagicMock(spec=ILLMProvider)
    merge_llm.get_provider_name.return_value = "mock"
    merge_llm.complete = AsyncMock(
        return_value=json.dumps(
            {
                "title": "Aria",
                "keywords": ["healer", "locket"],
                "content": "A healer from the north who carries a silver locket.",
            }
        )
    )
    merge_report = await MergeEngine(merge_llm, store, request_delay=0).merge_all(
        groups, delete_originals=True
    )

    assert not merge_report.aborted
    assert len(merge_report.succeeded) == 1
    entries = await store.list_entries()
    assert len(entries) == 5
    aria = [e for e in entries if e.category is Category.CHARACTER]
    assert [e.title for e in aria] == ["Aria"]
    assert aria[0].keywords == ["healer", "locket"]
    assert aria[0].details["basicInfo"] == "A healer from the north who carries a silver locket."
