"""Automatic summarization of finished transcripts."""

from __future__ import annotations

import logging
from typing import Final, Literal, Mapping

from clipflow.exceptions import JobFailedError, ProviderUnavailableError, SummarizationFailedError, describe_error
from clipflow.jobs.base import Clock, JobOrchestrator, now_ms
from clipflow.models import FileEntry, Summary, SummaryMetadata, SummaryProviderName
from clipflow.services.interfaces import CredentialProvider, DaemonProbe, Summarizer
from clipflow.settings import Settings
from clipflow.status_store import FileStatusStore
from clipflow.task_queue import TaskQueue

LOGGER = logging.getLogger(__name__)

# A file in one of these summary states is either in flight or finished
BLOCKING_SUMMARY_STATUSES: Final = frozenset({"summarizing", "completed", "error"})

NO_SUMMARY_SERVICE_MESSAGE: Final = "No summarization service available. Please configure an LLM provider."

SummarizationMethod = Literal["ollama", "openai", "claude", "none"]


class SummarizationOrchestrator(JobOrchestrator):
    """Schedules a summary for every transcribed file using the configured LLM provider.

    There is no fallback between providers: if the configured one is not
    ready, the job fails with a message telling the user to configure one.
    """

    kind = "summarization"

    def __init__(
        self,
        store: FileStatusStore,
        queue: TaskQueue,
        settings: Settings,
        *,
        summarizers: Mapping[str, Summarizer],
        credentials: CredentialProvider,
        ollama: DaemonProbe | None = None,
        clock: Clock = now_ms,
    ) -> None:
        super().__init__(store, queue, settings, clock=clock)
        self.summarizers = dict(summarizers)
        self.credentials = credentials
        self.ollama = ollama

    def is_eligible(self, file: FileEntry) -> bool:
        return (
            file.status == "completed"
            and file.transcript is not None
            and bool(file.transcript.full_text)
            and file.summary is None
            and file.summary_status not in BLOCKING_SUMMARY_STATUSES
        )

    async def resolve_provider(self) -> tuple[SummarizationMethod, str]:
        """Return the configured provider and model if it is ready, else ("none", "")."""
        provider = self.settings.llm_provider or "ollama"
        if provider not in self.summarizers:
            return "none", ""

        if provider == "ollama":
            if self.ollama is None:
                return "none", ""
            try:
                if await self.ollama.is_running():
                    return "ollama", self.settings.ollama_model
            except Exception as error:
                LOGGER.warning("Ollama check failed: %s", error)
            return "none", ""

        try:
            configured = bool(self.credentials.status().get(provider))
        except Exception as error:
            LOGGER.warning("%s API key check failed: %s", provider, error)
            return "none", ""
        if not configured:
            return "none", ""
        if provider == "openai":
            return "openai", self.settings.openai_model
        if provider == "claude":
            return "claude", self.settings.claude_model
        return "none", ""

    async def _run(self, file: FileEntry) -> None:
        path = file.path
        record = self.store.get(path)
        transcript = record.transcript if record is not None else file.transcript
        if transcript is None or not transcript.full_text:
            LOGGER.warning("No transcript text for %s, skipping summary", path)
            return

        LOGGER.info("Summarizing %s", path)
        self.store.update_summary_status(path, "summarizing")
        language = self.settings.summary_language()
        try:
            async with self._deadline(path):
                method, model = await self.resolve_provider()
                LOGGER.debug("Using %s (%s) for %s", method, model, path)
                if method == "none":
                    raise ProviderUnavailableError(NO_SUMMARY_SERVICE_MESSAGE)

                text = await self.summarizers[method].summarize(transcript.full_text, language, model)
            if not text or not text.strip():
                raise SummarizationFailedError(f"{method} returned an empty summary")
        except Exception as error:
            message = describe_error(error)
            LOGGER.error("Summarization failed for %s: %s", path, message)
            self.store.update_summary_status(path, "error", message)
            raise JobFailedError(message) from error

        provider: SummaryProviderName = method
        summary = Summary(
            text=text.strip(),
            language=language,
            metadata=SummaryMetadata(provider=provider, model=model, summarized_at=self._clock()),
        )
        self.store.set_summary(path, summary)
        LOGGER.info("Summary complete: %s", path)

    def resummarize(self, path: str) -> None:
        """Discard the summary of path and make it eligible again."""
        self.store.reset_summary(path)
        self.queue.reset_item(path)
