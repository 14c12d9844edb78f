"""Progress reporting for ingestion runs."""

from src.pipeline.progress_reporter import ProgressReporter, embedding_percent
from src.pipeline.progress_tracker import ProgressTracker

__all__ = [
    "ProgressReporter",
    "ProgressTracker",
    "embedding_percent",
]
