"""Per-file job orchestration for transcription and summarization."""

from clipflow.jobs.base import JobOrchestrator
from clipflow.jobs.summarization import SummarizationOrchestrator
from clipflow.jobs.transcription import TranscriptionOrchestrator

__all__ = [
    "JobOrchestrator",
    "SummarizationOrchestrator",
    "TranscriptionOrchestrator",
]
