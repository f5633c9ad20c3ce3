"""End-to-end runs with real ffmpeg and the tiny faster-whisper model."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from clipflow.exceptions import NoAudioStreamError
from clipflow.services.whisper_engine import WhisperEngine, has_audio_stream

pytestmark = pytest.mark.slow


def test_audio_stream_probe(media_folder: Path) -> None:
    """Test ffprobe detection on generated media."""
    assert has_audio_stream(media_folder / "talks" / "tone.wav")
    assert not has_audio_stream(media_folder / "silent.mp4")


def test_engine_transcribes_generated_tone(media_folder: Path, tiny_model_cached: str) -> None:
    """Test that a real model run completes and reports ordered progress."""
    engine = WhisperEngine(device="cpu", compute_type="int8")
    assert engine.is_available()
    assert tiny_model_cached in engine.list_installed_models()

    stages: list[str] = []
    output = asyncio.run(
        engine.transcribe(
            str(media_folder / "talks" / "tone.wav"),
            tiny_model_cached,
            "en",
            lambda stage, _percent: stages.append(stage),
        )
    )

    assert stages[:2] == ["extracting", "extracting"]
    assert "transcribing" in stages
    assert output.duration == pytest.approx(1.0, abs=0.1)
    assert isinstance(output.full_text, str)


def test_engine_rejects_silent_video(media_folder: Path, ffmpeg_tooling: tuple[str, str]) -> None:
    engine = WhisperEngine(device="cpu", compute_type="int8")

    with pytest.raises(NoAudioStreamError):
        asyncio.run(engine.transcribe(str(media_folder / "silent.mp4"), "tiny"))
