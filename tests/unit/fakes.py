"""In-memory stand-ins for the service protocols used by the unit tests."""

from __future__ import annotations

import asyncio
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Callable

from clipflow.exceptions import StorageError
from clipflow.models import FileChangeEvent, FileEntry, RawNode, Transcript, TranscriptSegment
from clipflow.services.interfaces import ProgressCallback, ProgressStage, TranscriptionOutput
from clipflow.services.whisper_engine import MODEL_REPOS


class MemoryKeyValueStore:
    """KeyValueStore kept in a dict, recording every write."""

    def __init__(self, data: dict[str, str] | None = None) -> None:
        self.data: dict[str, str] = dict(data or {})
        self.writes: list[tuple[str, str]] = []
        self.fail_reads = False
        self.fail_writes = False

    def get(self, key: str) -> str | None:
        if self.fail_reads:
            raise StorageError("read failed")
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        if self.fail_writes:
            raise StorageError("write failed")
        self.writes.append((key, value))
        self.data[key] = value

    def delete(self, key: str) -> None:
        if self.fail_writes:
            raise StorageError("write failed")
        self.data.pop(key, None)

    def writes_to(self, key: str) -> list[str]:
        return [value for written_key, value in self.writes if written_key == key]


class FakeScanner:
    """DirectoryScanner returning prepared trees or raising prepared errors."""

    def __init__(self) -> None:
        self.trees: dict[str, RawNode] = {}
        self.errors: dict[str, OSError] = {}
        self.calls: list[str] = []

    async def scan(self, path: str) -> RawNode:
        self.calls.append(path)
        if path in self.errors:
            raise self.errors[path]
        return self.trees[path]


class FakeWatcher:
    """DirectoryWatcher that only fires events when a test calls emit()."""

    def __init__(self) -> None:
        self.watched_path: str | None = None
        self.watch_calls: list[str] = []
        self.stop_calls = 0
        self._listeners: list[Callable[[FileChangeEvent], None]] = []

    async def watch(self, path: str) -> None:
        self.watch_calls.append(path)
        self.watched_path = path

    async def stop(self) -> None:
        self.stop_calls += 1
        self.watched_path = None

    def on_change(self, callback: Callable[[FileChangeEvent], None]) -> Callable[[], None]:
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def emit(self, event: FileChangeEvent) -> None:
        for listener in list(self._listeners):
            listener(event)


def make_output(text: str = "hello world", language: str | None = "en") -> TranscriptionOutput:
    return TranscriptionOutput(
        segments=[TranscriptSegment(start=0.0, end=1.5, text=text)],
        full_text=text,
        language=language,
        duration=1.5,
    )


class FakeLocalTranscriber:
    """LocalTranscriber with scripted availability, models, progress and results."""

    def __init__(
        self,
        *,
        available: bool = True,
        models: list[str] | None = None,
        output: TranscriptionOutput | None = None,
        error: Exception | None = None,
    ) -> None:
        self.available = available
        self.models = ["base"] if models is None else models
        self.output = output or make_output()
        self.error = error
        self.progress_steps: list[tuple[ProgressStage, float]] = []
        self.gate: asyncio.Event | None = None
        self.calls: list[dict[str, Any]] = []

    def is_available(self) -> bool:
        return self.available

    def list_installed_models(self) -> list[str]:
        return list(self.models)

    async def transcribe(
        self,
        path: str,
        model: str,
        language: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> TranscriptionOutput:
        self.calls.append({"path": path, "model": model, "language": language})
        for stage, percent in self.progress_steps:
            if on_progress is not None:
                on_progress(stage, percent)
            await asyncio.sleep(0)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.output


class FakeCloudTranscriber:
    """CloudTranscriber recording uploads."""

    max_file_size = 25 * 1024 * 1024

    def __init__(self, *, output: TranscriptionOutput | None = None, error: Exception | None = None) -> None:
        self.output = output or make_output("cloud text")
        self.error = error
        self.calls: list[dict[str, Any]] = []

    async def transcribe(self, path: str, language: str | None = None, model: str = "whisper-1") -> TranscriptionOutput:
        self.calls.append({"path": path, "language": language, "model": model})
        if self.error is not None:
            raise self.error
        return self.output


class FakeSummarizer:
    def __init__(self, result: str = "  A short summary.  ", error: Exception | None = None) -> None:
        self.result = result
        self.error = error
        self.calls: list[tuple[str, str, str]] = []

    async def summarize(self, text: str, language: str, model: str) -> str:
        self.calls.append((text, language, model))
        if self.error is not None:
            raise self.error
        return self.result


class FakeCredentials:
    def __init__(self, openai: bool = False, claude: bool = False) -> None:
        self.keys = {"openai": openai, "claude": claude}

    def status(self) -> dict[str, bool]:
        return dict(self.keys)


class FakeDaemon:
    def __init__(self, running: bool = True) -> None:
        self.running = running

    async def is_running(self) -> bool:
        return self.running


def make_transcript(text: str = "hello world", language: str | None = "en") -> Transcript:
    return Transcript(
        segments=(TranscriptSegment(start=0.0, end=1.5, text=text),),
        full_text=text,
        language=language,
        duration=1.5,
    )


def make_file(path: str, **fields: Any) -> FileEntry:
    values: dict[str, Any] = {
        "id": path,
        "name": path.rsplit("/", 1)[-1],
        "path": path,
        "size": 1024,
        "extension": path.rsplit(".", 1)[-1].lower() if "." in path else None,
        "modified": 1_700_000_000,
    }
    values.update(fields)
    return FileEntry(**values)


def raw_file(path: str, size: int = 1024) -> RawNode:
    name = path.rsplit("/", 1)[-1]
    return RawNode(
        path=path,
        name=name,
        is_dir=False,
        size=size,
        modified=1_700_000_000,
        extension=name.rsplit(".", 1)[-1].lower(),
    )


def raw_dir(path: str, *children: RawNode) -> RawNode:
    return RawNode(path=path, name=path.rsplit("/", 1)[-1], is_dir=True, children=tuple(children))




class FakeDeleteStrategy:
    def __init__(self, hashes: tuple[str, ...]) -> None:
        self.hashes = hashes
        self.expected_freed_size = 2048
        self.executed = False

    def execute(self) -> None:
        self.executed = True


class FakeCache:
    """Cache report holding cached repositories and recording delete requests."""

    def __init__(self, *repos: Any) -> None:
        self.repos = list(repos)
        self.strategies: list[FakeDeleteStrategy] = []

    def delete_revisions(self, *hashes: str) -> FakeDeleteStrategy:
        strategy = FakeDeleteStrategy(hashes)
        self.strategies.append(strategy)
        return strategy


def cached_model_repo(model: str, size: int = 75_000_000) -> SimpleNamespace:
    return SimpleNamespace(
        repo_id=MODEL_REPOS[model],
        repo_type="model",
        size_on_disk=size,
        repo_path=Path("/cache") / model,
        revisions=[SimpleNamespace(commit_hash="abc"), SimpleNamespace(commit_hash="def")],
    )
