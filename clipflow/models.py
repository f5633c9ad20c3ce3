"""Data model for the media library: status records, tree entries and queue stats.

Tree entries and status records are immutable. Every update produces a new
object, so a snapshot handed to a subscriber never changes underneath it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Final, Literal, Mapping, cast, get_args

FileStatus = Literal["pending", "extracting", "transcribing", "completed", "error"]
SummaryStatus = Literal["pending", "summarizing", "completed", "error"]
TranscriptionProviderName = Literal["local", "openai"]
SummaryProviderName = Literal["ollama", "openai", "claude"]
FileChangeKind = Literal["Created", "Modified", "Removed"]

FILE_STATUSES: Final[frozenset[str]] = frozenset(get_args(FileStatus))
SUMMARY_STATUSES: Final[frozenset[str]] = frozenset(get_args(SummaryStatus))
TERMINAL_STATUSES: Final[frozenset[str]] = frozenset({"completed", "error"})
IN_FLIGHT_STATUSES: Final[frozenset[str]] = frozenset({"extracting", "transcribing"})


def _check_choice(value: Any, allowed: frozenset[str], field_name: str) -> str:
    if value not in allowed:
        raise ValueError(f"Unknown {field_name} {value!r}; expected one of {sorted(allowed)}")
    return cast(str, value)


@dataclass(frozen=True, slots=True)
class TranscriptSegment:
    start: float
    end: float
    text: str

    def to_dict(self) -> dict[str, Any]:
        return {"start": self.start, "end": self.end, "text": self.text}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TranscriptSegment":
        return cls(start=float(data["start"]), end=float(data["end"]), text=str(data["text"]))


@dataclass(frozen=True, slots=True)
class TranscriptMetadata:
    """Which provider and model produced a transcript, and when (ms since epoch)."""

    provider: TranscriptionProviderName
    model: str
    transcribed_at: int

    def to_dict(self) -> dict[str, Any]:
        return {"provider": self.provider, "model": self.model, "transcribed_at": self.transcribed_at}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TranscriptMetadata":
        return cls(
            provider=cast(TranscriptionProviderName, data["provider"]),
            model=str(data["model"]),
            transcribed_at=int(data["transcribed_at"]),
        )


@dataclass(frozen=True, slots=True)
class Transcript:
    """Result of one transcription job."""

    segments: tuple[TranscriptSegment, ...]
    full_text: str
    language: str | None = None
    duration: float | None = None
    metadata: TranscriptMetadata | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "segments": [segment.to_dict() for segment in self.segments],
            "full_text": self.full_text,
        }
        if self.language is not None:
            data["language"] = self.language
        if self.duration is not None:
            data["duration"] = self.duration
        if self.metadata is not None:
            data["metadata"] = self.metadata.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Transcript":
        metadata = data.get("metadata")
        duration = data.get("duration")
        return cls(
            segments=tuple(TranscriptSegment.from_dict(item) for item in data.get("segments") or []),
            full_text=str(data.get("full_text", "")),
            language=data.get("language"),
            duration=float(duration) if duration is not None else None,
            metadata=TranscriptMetadata.from_dict(metadata) if metadata else None,
        )


@dataclass(frozen=True, slots=True)
class SummaryMetadata:
    provider: SummaryProviderName
    model: str
    summarized_at: int

    def to_dict(self) -> dict[str, Any]:
        return {"provider": self.provider, "model": self.model, "summarized_at": self.summarized_at}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SummaryMetadata":
        return cls(
            provider=cast(SummaryProviderName, data["provider"]),
            model=str(data["model"]),
            summarized_at=int(data["summarized_at"]),
        )


@dataclass(frozen=True, slots=True)
class Summary:
    text: str
    language: str
    metadata: SummaryMetadata

    def to_dict(self) -> dict[str, Any]:
        return {"text": self.text, "language": self.language, "metadata": self.metadata.to_dict()}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Summary":
        return cls(
            text=str(data["text"]),
            language=str(data["language"]),
            metadata=SummaryMetadata.from_dict(data["metadata"]),
        )


@dataclass(frozen=True, slots=True)
class StatusRecord:
    """Per-file processing state that a directory scan cannot reproduce.

    Keyed by absolute path in the status store; survives rescans and restarts.
    """

    status: FileStatus = "pending"
    progress: int = 0
    error: str | None = None
    transcript: Transcript | None = None
    summary: Summary | None = None
    summary_status: SummaryStatus | None = None
    summary_error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"status": self.status, "progress": self.progress}
        if self.error is not None:
            data["error"] = self.error
        if self.transcript is not None:
            data["transcript"] = self.transcript.to_dict()
        if self.summary is not None:
            data["summary"] = self.summary.to_dict()
        if self.summary_status is not None:
            data["summary_status"] = self.summary_status
        if self.summary_error is not None:
            data["summary_error"] = self.summary_error
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "StatusRecord":
        status = _check_choice(data.get("status", "pending"), FILE_STATUSES, "status")
        summary_status = data.get("summary_status")
        if summary_status is not None:
            _check_choice(summary_status, SUMMARY_STATUSES, "summary_status")
        transcript = data.get("transcript")
        summary = data.get("summary")
        return cls(
            status=cast(FileStatus, status),
            progress=int(data.get("progress", 0)),
            error=data.get("error"),
            transcript=Transcript.from_dict(transcript) if transcript else None,
            summary=Summary.from_dict(summary) if summary else None,
            summary_status=cast("SummaryStatus | None", summary_status),
            summary_error=data.get("summary_error"),
        )


@dataclass(frozen=True, slots=True)
class FileEntry:
    """A media file in the scanned tree, with status fields projected onto it."""

    id: str
    name: str
    path: str
    size: int
    extension: str | None
    modified: int | None
    status: FileStatus = "pending"
    progress: int = 0
    error: str | None = None
    transcript: Transcript | None = None
    summary: Summary | None = None
    summary_status: SummaryStatus | None = None
    summary_error: str | None = None


@dataclass(frozen=True, slots=True)
class FolderEntry:
    id: str
    name: str
    path: str
    files: tuple[FileEntry, ...] = ()
    subfolders: tuple["FolderEntry", ...] = ()
    is_expanded: bool = True


@dataclass(frozen=True, slots=True)
class RawNode:
    """Directory scanner output, one node per file or directory."""

    path: str
    name: str
    is_dir: bool
    size: int = 0
    modified: int | None = None
    extension: str | None = None
    children: tuple["RawNode", ...] = ()


@dataclass(frozen=True, slots=True)
class FileChangeEvent:
    kind: FileChangeKind
    path: str


@dataclass(frozen=True, slots=True)
class QueueStats:
    pending: int = 0
    active: int = 0
    completed: int = 0
    error: int = 0

    @property
    def total(self) -> int:
        return self.pending + self.active + self.completed + self.error

    def to_dict(self) -> dict[str, int]:
        return {
            "pending": self.pending,
            "active": self.active,
            "completed": self.completed,
            "error": self.error,
            "total": self.total,
        }


StatusMap = Mapping[str, StatusRecord]

EMPTY_STATS: Final = QueueStats()

__all__ = [
    "EMPTY_STATS",
    "FILE_STATUSES",
    "FileChangeEvent",
    "FileChangeKind",
    "FileEntry",
    "FileStatus",
    "FolderEntry",
    "IN_FLIGHT_STATUSES",
    "QueueStats",
    "RawNode",
    "SUMMARY_STATUSES",
    "StatusMap",
    "StatusRecord",
    "Summary",
    "SummaryMetadata",
    "SummaryProviderName",
    "SummaryStatus",
    "TERMINAL_STATUSES",
    "Transcript",
    "TranscriptMetadata",
    "TranscriptSegment",
    "TranscriptionProviderName",
]

