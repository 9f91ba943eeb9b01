"""Extraction pipeline components for lorekeeper."""

from lorekeeper.pipeline.extraction_pipeline import (
    ExtractionPipeline,
    PipelineRun,
    build_extraction_prompt,
)
from lorekeeper.pipeline.progress_tracker import ProgressTracker

__all__ = [
    "ExtractionPipeline",
    "PipelineRun",
    "ProgressTracker",
    "build_extraction_prompt",
]
