"""Service interfaces for the external collaborators using structural typing."""

from dataclasses import dataclass, field
from typing import Awaitable, Callable, Literal, Protocol, runtime_checkable

from clipflow.models import FileChangeEvent, RawNode, TranscriptSegment

ProgressStage = Literal["extracting", "transcribing"]
ProgressCallback = Callable[[ProgressStage, float], None]
ChangeCallback = Callable[[FileChangeEvent], None]


@dataclass
class TranscriptionOutput:
    """Raw result of a transcription call, before it becomes a Transcript."""

    segments: list[TranscriptSegment] = field(default_factory=list)
    full_text: str = ""
    language: str | None = None
    duration: float | None = None


@runtime_checkable
class KeyValueStore(Protocol):
    """Durable string key-value storage."""

    def get(self, key: str) -> str | None:
        """Return the value for key, or None when absent."""
        ...

    def set(self, key: str, value: str) -> None:
        """Store value under key."""
        ...

    def delete(self, key: str) -> None:
        """Remove key if present."""
        ...


@runtime_checkable
class DirectoryScanner(Protocol):
    """Service for turning a directory into a raw tree of media files."""

    async def scan(self, path: str) -> RawNode:
        """Scan path recursively. Raises ScanError when it is inaccessible."""
        ...


@runtime_checkable
class DirectoryWatcher(Protocol):
    """Service for observing file changes below one root directory."""

    async def watch(self, path: str) -> None:
        """Start watching path, replacing any previous watch."""
        ...

    async def stop(self) -> None:
        """Stop the active watch, if any."""
        ...

    def on_change(self, callback: ChangeCallback) -> Callable[[], None]:
        """Register a change listener and return its unsubscribe function."""
        ...


@runtime_checkable
class LocalTranscriber(Protocol):
    """Service for on-device transcription."""

    def is_available(self) -> bool:
        """Whether the local engine can run at all."""
        ...

    def list_installed_models(self) -> list[str]:
        """Ids of models that are downloaded and ready."""
        ...

    async def transcribe(
        self,
        path: str,
        model: str,
        language: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> TranscriptionOutput:
        """Transcribe one media file, reporting progress for this file only."""
        ...


@runtime_checkable
class CloudTranscriber(Protocol):
    """Service for transcription through a hosted API with an upload size limit."""

    max_file_size: int

    async def transcribe(self, path: str, language: str | None = None, model: str = "whisper-1") -> TranscriptionOutput:
        """Upload and transcribe one media file."""
        ...


@runtime_checkable
class Summarizer(Protocol):
    """Service for summarizing transcript text."""

    async def summarize(self, text: str, language: str, model: str) -> str:
        """Return a summary of text written in language."""
        ...


@runtime_checkable
class CredentialProvider(Protocol):
    """Service reporting which cloud providers have a configured credential."""

    def status(self) -> dict[str, bool]:
        """Map provider name ('openai', 'claude') to whether a key is configured."""
        ...


@runtime_checkable
class DaemonProbe(Protocol):
    """Service checking whether a local daemon (e.g. Ollama) answers."""

    def is_running(self) -> Awaitable[bool]:
        """Resolve to True when the daemon is reachable."""
        ...
