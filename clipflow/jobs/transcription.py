"""Automatic transcription of pending media files."""

from __future__ import annotations

import asyncio
import logging
from typing import Final, Iterable, Literal

from clipflow.exceptions import (
    FileTooLargeError,
    JobFailedError,
    NoModelsInstalledError,
    ProviderUnavailableError,
    describe_error,
)
from clipflow.jobs.base import Clock, JobOrchestrator, now_ms
from clipflow.models import TERMINAL_STATUSES, FileEntry, Transcript, TranscriptMetadata
from clipflow.services.interfaces import (
    CloudTranscriber,
    CredentialProvider,
    LocalTranscriber,
    ProgressCallback,
    ProgressStage,
    TranscriptionOutput,
)
from clipflow.settings import LanguageMemory, Settings
from clipflow.status_store import FileStatusStore
from clipflow.task_queue import TaskQueue

LOGGER = logging.getLogger(__name__)

DEFAULT_MODEL_ID: Final = "base"
OPENAI_MAX_FILE_SIZE: Final = 25 * 1024 * 1024
CLOUD_START_PROGRESS: Final = 10

NO_TRANSCRIPTION_SERVICE_MESSAGE: Final = (
    "No transcription service available. Please either:\n"
    "1. Download a local Whisper model, or\n"
    "2. Set OPENAI_API_KEY"
)

TranscriptionMethod = Literal["local", "openai", "none"]


def format_file_size(size: int) -> str:
    if size < 1024:
        return f"{size} bytes"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    if size < 1024 * 1024 * 1024:
        return f"{size / (1024 * 1024):.1f} MB"
    return f"{size / (1024 * 1024 * 1024):.1f} GB"


def select_local_model(configured: str, installed: list[str]) -> str:
    """Pick the model to run: the configured one, else the default, else the first installed.

    Raises:
        NoModelsInstalledError: If nothing is installed
    """
    if not installed:
        raise NoModelsInstalledError("No Whisper models installed. Please download a model first.")
    if configured in installed:
        return configured
    fallback = DEFAULT_MODEL_ID if DEFAULT_MODEL_ID in installed else installed[0]
    LOGGER.warning("Selected model %r not installed, falling back to %r", configured, fallback)
    return fallback


class TranscriptionOrchestrator(JobOrchestrator):
    """Schedules transcription for every pending file and runs it on the best available provider."""

    kind = "transcription"

    def __init__(
        self,
        store: FileStatusStore,
        queue: TaskQueue,
        settings: Settings,
        *,
        credentials: CredentialProvider,
        local: LocalTranscriber | None = None,
        cloud: CloudTranscriber | None = None,
        language_memory: LanguageMemory | None = None,
        clock: Clock = now_ms,
    ) -> None:
        super().__init__(store, queue, settings, clock=clock)
        self.credentials = credentials
        self.local = local
        self.cloud = cloud
        self.language_memory = language_memory

    def is_eligible(self, file: FileEntry) -> bool:
        return file.status == "pending"

    # --- provider selection --------------------------------------------

    async def _local_ready(self) -> bool:
        if self.local is None:
            return False
        try:
            if not await asyncio.to_thread(self.local.is_available):
                return False
            return bool(await asyncio.to_thread(self.local.list_installed_models))
        except Exception as error:
            LOGGER.warning("Local whisper check failed: %s", error)
            return False

    async def _openai_ready(self) -> bool:
        if self.cloud is None:
            return False
        try:
            return bool(self.credentials.status().get("openai"))
        except Exception as error:
            LOGGER.warning("OpenAI API key check failed: %s", error)
            return False

    async def resolve_provider(self) -> TranscriptionMethod:
        """Walk the fallback chain for the preferred provider and return the first ready one."""
        if self.settings.transcription_provider == "openai":
            chain = ((self._openai_ready, "openai"), (self._local_ready, "local"))
        else:
            chain = ((self._local_ready, "local"), (self._openai_ready, "openai"))

        for probe, method in chain:
            if await probe():
                if method != self.settings.transcription_provider:
                    LOGGER.warning(
                        "%s transcription unavailable, falling back to %s",
                        self.settings.transcription_provider,
                        method,
                    )
                return method
        return "none"

    # --- job -----------------------------------------------------------

    async def _run(self, file: FileEntry) -> None:
        path = file.path
        LOGGER.info("Transcribing %s", path)
        try:
            async with self._deadline(path):
                method = await self.resolve_provider()
                LOGGER.debug("Using %s transcription for %s", method, path)
                if method == "none":
                    raise ProviderUnavailableError(NO_TRANSCRIPTION_SERVICE_MESSAGE)
                if method == "openai" and file.size > OPENAI_MAX_FILE_SIZE:
                    raise FileTooLargeError(
                        f"File size ({format_file_size(file.size)}) exceeds 25MB. "
                        "OpenAI Whisper API file size limit exceeded."
                    )

                self.store.update_status(path, "extracting", 0)
                if method == "openai":
                    transcript = await self._transcribe_cloud(path)
                else:
                    transcript = await self._transcribe_local(path)
        except Exception as error:
            message = describe_error(error)
            LOGGER.error("Transcription failed for %s: %s", path, message)
            self.store.update_status(path, "error", 0, message)
            raise JobFailedError(message) from error

        self.store.set_transcript(path, transcript)
        LOGGER.info("Transcription complete: %s", path)

    async def _transcribe_local(self, path: str) -> Transcript:
        assert self.local is not None
        installed = await asyncio.to_thread(self.local.list_installed_models)
        model = select_local_model(self.settings.whisper_model, installed)
        LOGGER.debug("Local model %s, language %s", model, self.settings.language_or_none())

        output = await self.local.transcribe(
            path,
            model,
            language=self.settings.language_or_none(),
            on_progress=self._progress_for(path),
        )
        return self._to_transcript(output, "local", model)

    async def _transcribe_cloud(self, path: str) -> Transcript:
        assert self.cloud is not None
        model = self.settings.openai_whisper_model or "whisper-1"
        self.store.update_status(path, "transcribing", CLOUD_START_PROGRESS)
        output = await self.cloud.transcribe(path, language=self.settings.language_or_none(), model=model)
        return self._to_transcript(output, "openai", model)

    def _progress_for(self, path: str) -> ProgressCallback:
        """Progress callback bound to one file, so concurrent jobs never cross-report."""

        def on_progress(stage: ProgressStage, percent: float) -> None:
            record = self.store.get(path)
            if record is not None and record.status in TERMINAL_STATUSES:
                return
            self.store.update_status(path, stage, percent)

        return on_progress

    def _to_transcript(
        self, output: TranscriptionOutput, provider: Literal["local", "openai"], model: str
    ) -> Transcript:
        return Transcript(
            segments=tuple(output.segments),
            full_text=output.full_text,
            language=output.language or None,
            duration=output.duration or None,
            metadata=TranscriptMetadata(provider=provider, model=model, transcribed_at=self._clock()),
        )

    # --- manual resets -------------------------------------------------

    def retranscribe(self, path: str) -> None:
        self.store.retranscribe(path)
        self.queue.reset_item(path)

    def retranscribe_all(self, paths: Iterable[str]) -> None:
        paths = list(paths)
        self.store.retranscribe_all(paths)
        for path in paths:
            self.queue.reset_item(path)

    def apply_language_change(self) -> bool:
        """Reset finished transcripts when the language differs from the previous run.

        Returns:
            True if transcripts were reset
        """
        if self.language_memory is None:
            return False
        language = self.settings.transcription_language
        changed = self.language_memory.has_changed(language)
        if changed:
            LOGGER.info("Transcription language changed to %s, resetting all transcriptions", language)
            self.store.reset_all_terminal()
            self.queue.clear_completed()
        self.language_memory.remember(language)
        return changed
