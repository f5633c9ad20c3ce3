"""Unit tests for the faster-whisper engine with the model and ffmpeg stubbed out."""

from __future__ import annotations

import asyncio
from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pytest
from fakes import FakeCache, cached_model_repo
from huggingface_hub.utils import CacheNotFound

import clipflow.services.whisper_engine as whisper_engine
from clipflow.exceptions import ModelDownloadError, NoAudioStreamError, TranscriptionFailedError
from clipflow.services.whisper_engine import MODEL_REPOS, ModelStatus, WhisperEngine


class FakeWhisperModel:
    def __init__(self, segments: list[tuple[float, float, str]], duration: float = 10.0, language: str = "en"):
        self.segments = segments
        self.info = SimpleNamespace(duration=duration, language=language)
        self.calls: list[dict[str, Any]] = []

    def transcribe(self, audio: str, **kwargs: Any):
        self.calls.append({"audio": audio, **kwargs})
        segments = (SimpleNamespace(start=start, end=end, text=text) for start, end, text in self.segments)
        return segments, self.info


@pytest.fixture
def stub_ffmpeg(monkeypatch: pytest.MonkeyPatch) -> list[str]:
    """Replace the ffmpeg helpers; returns the list of extracted inputs."""
    extracted: list[str] = []

    def fake_extract(input_path: str, output_path: Path) -> Path:
        extracted.append(str(input_path))
        return output_path

    monkeypatch.setattr(whisper_engine, "has_audio_stream", lambda path: True)
    monkeypatch.setattr(whisper_engine, "extract_audio", fake_extract)
    return extracted


def _engine(model: FakeWhisperModel, loads: list[tuple[str, str, str]] | None = None) -> WhisperEngine:
    def factory(repo_id: str, device: str, compute_type: str) -> FakeWhisperModel:
        if loads is not None:
            loads.append((repo_id, device, compute_type))
        return model

    return WhisperEngine(device="cpu", compute_type="int8", model_factory=factory)  # type: ignore[arg-type]


def test_transcribe_collects_segments_and_progress(stub_ffmpeg: list[str]) -> None:
    """Test text assembly and the ordered progress stream."""
    model = FakeWhisperModel([(0.0, 4.0, " Hello "), (4.0, 10.0, "world. ")])
    engine = _engine(model)
    seen: list[tuple[str, float]] = []

    output = asyncio.run(engine.transcribe("/m/clip.mp4", "base", "en", lambda stage, pct: seen.append((stage, pct))))

    assert output.full_text == "Hello world."
    assert [segment.text for segment in output.segments] == ["Hello", "world."]
    assert output.language == "en"
    assert output.duration == 10.0
    assert seen == [
        ("extracting", 0),
        ("extracting", 100),
        ("transcribing", 0),
        ("transcribing", 40.0),
        ("transcribing", 99.0),
    ]
    assert stub_ffmpeg == ["/m/clip.mp4"]
    assert model.calls[0]["language"] == "en"


def test_models_are_cached_per_id(stub_ffmpeg: list[str]) -> None:
    loads: list[tuple[str, str, str]] = []
    engine = _engine(FakeWhisperModel([(0.0, 1.0, "hi")]), loads)

    async def scenario() -> None:
        await engine.transcribe("/m/a.mp4", "small")
        await engine.transcribe("/m/b.mp4", "small")

    asyncio.run(scenario())

    assert loads == [(MODEL_REPOS["small"], "cpu", "int8")]


def test_missing_audio_stream(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that silent video is reported before any model is loaded."""
    loads: list[tuple[str, str, str]] = []
    monkeypatch.setattr(whisper_engine, "has_audio_stream", lambda path: False)
    engine = _engine(FakeWhisperModel([]), loads)

    with pytest.raises(NoAudioStreamError):
        asyncio.run(engine.transcribe("/m/silent.mp4", "base"))
    assert loads == []


def test_model_runtime_errors_are_wrapped(stub_ffmpeg: list[str]) -> None:
    class Broken(FakeWhisperModel):
        def transcribe(self, audio: str, **kwargs: Any):
            raise RuntimeError("CUDA out of memory")

    engine = _engine(Broken([]))

    with pytest.raises(TranscriptionFailedError, match="CUDA out of memory"):
        asyncio.run(engine.transcribe("/m/clip.mp4", "base"))


def test_stt_device_overrides_default(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STT_DEVICE", "CUDA")
    assert WhisperEngine().device == "cuda"


def test_installed_models_from_cache(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that only cached model repositories are listed, in preference order."""
    repos = [
        SimpleNamespace(repo_id=MODEL_REPOS["small"], repo_type="model"),
        SimpleNamespace(repo_id=MODEL_REPOS["tiny"], repo_type="model"),
        SimpleNamespace(repo_id="someone/dataset", repo_type="dataset"),
    ]
    monkeypatch.setattr(whisper_engine, "scan_cache_dir", lambda cache_dir: SimpleNamespace(repos=repos))

    assert WhisperEngine().list_installed_models() == ["tiny", "small"]


def test_installed_models_without_cache(monkeypatch: pytest.MonkeyPatch) -> None:
    def missing(cache_dir: Any) -> Any:
        raise CacheNotFound("no cache", cache_dir="/nowhere")

    monkeypatch.setattr(whisper_engine, "scan_cache_dir", missing)

    assert WhisperEngine().list_installed_models() == []


def test_stt_device_with_compute_type(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test the device/compute_type form and rejection of unknown values."""
    monkeypatch.setenv("STT_DEVICE", "cuda/float16")
    engine = WhisperEngine(compute_type="int8")
    assert (engine.device, engine.compute_type) == ("cuda", "float16")

    monkeypatch.setenv("STT_DEVICE", "cuda/float99")
    assert WhisperEngine(compute_type="int8").compute_type == "int8"

    monkeypatch.setenv("STT_DEVICE", "tpu")
    assert WhisperEngine(device="cpu").device == "cpu"


def test_models_status_reports_every_offered_model(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that installed models carry their size and path, the rest are listed as missing."""
    cache = FakeCache(cached_model_repo("base"))
    monkeypatch.setattr(whisper_engine, "scan_cache_dir", lambda cache_dir: cache)

    statuses = {status.id: status for status in WhisperEngine().models_status()}

    assert list(statuses) == list(MODEL_REPOS)
    assert statuses["base"] == ModelStatus(
        id="base",
        repo_id=MODEL_REPOS["base"],
        installed=True,
        size_on_disk=75_000_000,
        path=str(Path("/cache") / "base"),
    )
    assert statuses["tiny"] == ModelStatus(id="tiny", repo_id=MODEL_REPOS["tiny"], installed=False)


def test_is_model_installed(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(whisper_engine, "scan_cache_dir", lambda cache_dir: FakeCache(cached_model_repo("small")))
    engine = WhisperEngine()

    assert engine.is_model_installed("small") is True
    assert engine.is_model_installed("tiny") is False
    with pytest.raises(ValueError, match="Unknown model 'huge'"):
        engine.is_model_installed("huge")


def test_download_model_uses_hub_cache(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that downloads go to the engine's cache directory."""
    calls: list[tuple[str, Any]] = []

    def fake_download(repo_id: str, cache_dir: Any = None) -> str:
        calls.append((repo_id, cache_dir))
        return f"/hub/{repo_id}/snapshots/abc"

    monkeypatch.setattr(whisper_engine, "snapshot_download", fake_download)

    path = WhisperEngine(cache_dir="/hub").download_model("tiny")

    assert calls == [(MODEL_REPOS["tiny"], "/hub")]
    assert path == f"/hub/{MODEL_REPOS['tiny']}/snapshots/abc"


def test_download_model_wraps_failures(monkeypatch: pytest.MonkeyPatch) -> None:
    def offline(repo_id: str, cache_dir: Any = None) -> str:
        raise OSError("network unreachable")

    monkeypatch.setattr(whisper_engine, "snapshot_download", offline)

    with pytest.raises(ModelDownloadError, match="Failed to download base: network unreachable"):
        WhisperEngine().download_model("base")
    with pytest.raises(ValueError):
        WhisperEngine().download_model("huge")


def test_delete_model_removes_all_revisions(stub_ffmpeg: list[str], monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that deleting drops every cached revision and the loaded model."""
    cache = FakeCache(cached_model_repo("base"))
    monkeypatch.setattr(whisper_engine, "scan_cache_dir", lambda cache_dir: cache)
    loads: list[tuple[str, str, str]] = []
    engine = _engine(FakeWhisperModel([(0.0, 1.0, "hi")]), loads)
    asyncio.run(engine.transcribe("/media/clip.mp4", "base"))

    assert engine.delete_model("base") == 2048

    assert [strategy.hashes for strategy in cache.strategies] == [("abc", "def")]
    assert cache.strategies[0].executed is True
    asyncio.run(engine.transcribe("/media/clip.mp4", "base"))
    assert len(loads) == 2


def test_delete_model_not_installed(monkeypatch: pytest.MonkeyPatch) -> None:
    cache = FakeCache()
    monkeypatch.setattr(whisper_engine, "scan_cache_dir", lambda cache_dir: cache)

    assert WhisperEngine().delete_model("tiny") == 0
    assert cache.strategies == []
