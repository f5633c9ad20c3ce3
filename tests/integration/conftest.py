"""Integration test configuration and shared fixtures."""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path

import ffmpeg  # type: ignore[import-untyped]
import pytest

LOGGER = logging.getLogger(__name__)

TINY_MODEL_REPO = "Systran/faster-whisper-tiny"


@pytest.fixture(scope="session")
def ffmpeg_tooling() -> tuple[str, str]:
    """Paths to ffmpeg and ffprobe; skips the test when either is missing."""
    ffmpeg_path = shutil.which("ffmpeg")
    ffprobe_path = shutil.which("ffprobe")
    if ffmpeg_path is None or ffprobe_path is None:
        pytest.skip("ffmpeg/ffprobe not installed")
    return ffmpeg_path, ffprobe_path


@pytest.fixture
def media_folder(tmp_path: Path, ffmpeg_tooling: tuple[str, str]) -> Path:
    """Create a folder with a short generated tone and a silent video.

    The files are synthesized with ffmpeg's lavfi sources so no sample media
    has to be checked in.
    """
    folder = tmp_path / "media"
    (folder / "talks").mkdir(parents=True)

    tone = ffmpeg.input("sine=frequency=440:duration=1", f="lavfi")  # type: ignore[reportUnknownMemberType]
    ffmpeg.run(  # type: ignore[reportUnknownMemberType]
        ffmpeg.output(tone, str(folder / "talks" / "tone.wav")),  # type: ignore[reportUnknownMemberType]
        overwrite_output=True,
        quiet=True,
    )
    video = ffmpeg.input("color=c=black:s=64x64:d=1", f="lavfi")  # type: ignore[reportUnknownMemberType]
    ffmpeg.run(  # type: ignore[reportUnknownMemberType]
        ffmpeg.output(video, str(folder / "silent.mp4"), vcodec="mpeg4"),  # type: ignore[reportUnknownMemberType]
        overwrite_output=True,
        quiet=True,
    )
    (folder / "notes.txt").write_text("not media")
    return folder


@pytest.fixture(scope="session")
def tiny_model_cached() -> str:
    """Make sure the tiny faster-whisper model is in the Hugging Face cache.

    Controlled by USE_CACHED_MODEL (defaults to true). Explicitly fails when the
    download errors so dependent tests cannot silently skip.
    """
    use_cached = os.getenv("USE_CACHED_MODEL", "true").lower() in ("true", "1", "yes")
    if not use_cached:
        pytest.skip("USE_CACHED_MODEL=false disables tests that need the tiny Whisper model")

    from huggingface_hub import snapshot_download

    try:
        LOGGER.info("Fetching tiny Whisper model for tests (one-time download if not cached)...")
        snapshot_download(TINY_MODEL_REPO)
    except Exception as exc:  # noqa: BLE001 - any download failure should fail loudly
        pytest.fail(f"Failed to fetch {TINY_MODEL_REPO}: {exc}", pytrace=True)
    return "tiny"


@pytest.fixture
def cli_test_db(tmp_path: Path) -> Path:
    """Create a temporary database path for CLI testing."""
    return tmp_path / "test_cli.duckdb"
