"""On-device transcription with faster-whisper.

Audio is extracted to a 16 kHz mono WAV with ffmpeg first, so any container
the scanner accepts can be transcribed. Model weights come from the Hugging
Face cache; only models already downloaded are offered for transcription.
The engine can also download and delete the offered models.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
import tempfile
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Final

import ffmpeg  # type: ignore[import-untyped]
from huggingface_hub import scan_cache_dir, snapshot_download
from huggingface_hub.utils import CacheNotFound, HfHubHTTPError

from clipflow.exceptions import ModelDownloadError, NoAudioStreamError, TranscriptionFailedError
from clipflow.models import TranscriptSegment
from clipflow.services.interfaces import ProgressCallback, ProgressStage, TranscriptionOutput

if TYPE_CHECKING:
    from faster_whisper import WhisperModel

LOGGER = logging.getLogger(__name__)

TARGET_SAMPLE_RATE: Final = 16_000

# Model ids offered to the user, mapped to their CTranslate2 repositories
MODEL_REPOS: Final[dict[str, str]] = {
    "tiny": "Systran/faster-whisper-tiny",
    "base": "Systran/faster-whisper-base",
    "small": "Systran/faster-whisper-small",
    "medium": "Systran/faster-whisper-medium",
    "large-v2": "Systran/faster-whisper-large-v2",
    "large-v3": "Systran/faster-whisper-large-v3",
    "distil-large-v3": "Systran/faster-distil-whisper-large-v3",
}

COMPUTE_TYPES: Final = frozenset(
    {"default", "auto", "int8", "int8_float16", "int8_float32", "int16", "float16", "float32", "bfloat16"}
)

ModelFactory = Callable[[str, str, str], "WhisperModel"]
Reporter = Callable[[ProgressStage, float], None]


@dataclass(frozen=True, slots=True)
class ModelStatus:
    """Install state of one offered model."""

    id: str
    repo_id: str
    installed: bool
    size_on_disk: int = 0
    path: str | None = None


def _repo_for(model: str) -> str:
    try:
        return MODEL_REPOS[model]
    except KeyError:
        raise ValueError(f"Unknown model {model!r}; expected one of {', '.join(MODEL_REPOS)}") from None


def _default_model_factory(repo_id: str, device: str, compute_type: str) -> "WhisperModel":
    from faster_whisper import WhisperModel

    return WhisperModel(repo_id, device=device, compute_type=compute_type, local_files_only=True)


def _device_from_env(device: str, compute_type: str) -> tuple[str, str]:
    """Apply the STT_DEVICE override, written as device[/compute_type] (e.g. cuda/float16)."""
    raw_env = os.getenv("STT_DEVICE", "").strip()
    if not raw_env:
        return device, compute_type

    env_device, _, env_compute = raw_env.lower().partition("/")
    if env_device not in ("cpu", "cuda", "auto"):
        LOGGER.warning("Ignoring STT_DEVICE=%s because '%s' is not a supported device", raw_env, env_device)
        return device, compute_type
    if env_compute and env_compute not in COMPUTE_TYPES:
        LOGGER.warning("Ignoring unsupported compute type from STT_DEVICE (%s)", env_compute)
        env_compute = ""
    LOGGER.info("Using device from STT_DEVICE env: %s (compute=%s)", env_device, env_compute or compute_type)
    return env_device, env_compute or compute_type


def has_audio_stream(path: str | Path) -> bool:
    """Whether ffprobe finds at least one audio stream in the file."""
    try:
        info: dict[str, Any] = ffmpeg.probe(str(path), select_streams="a")  # type: ignore[reportUnknownMemberType]
    except ffmpeg.Error as exc:  # type: ignore[misc]
        stderr = exc.stderr.decode(errors="replace") if exc.stderr else "unknown error"  # type: ignore[union-attr]
        raise TranscriptionFailedError(f"ffprobe failed for {path}: {stderr.strip()}") from exc
    return bool(info.get("streams"))


def extract_audio(input_path: str | Path, output_path: Path) -> Path:
    """Decode the audio track to mono 16-bit PCM at the rate Whisper expects."""
    try:
        stream = ffmpeg.input(str(input_path))  # type: ignore[reportUnknownMemberType]
        stream = ffmpeg.output(  # type: ignore[reportUnknownMemberType,reportUnknownArgumentType]
            stream,  # type: ignore[reportUnknownArgumentType]
            str(output_path),
            vn=None,
            ac=1,
            ar=TARGET_SAMPLE_RATE,
            acodec="pcm_s16le",
        )
        ffmpeg.run(  # type: ignore[reportUnknownMemberType]
            stream,  # type: ignore[reportUnknownArgumentType]
            overwrite_output=True,
            quiet=True,
            capture_stdout=True,
            capture_stderr=True,
        )
    except ffmpeg.Error as exc:  # type: ignore[misc]
        stderr = exc.stderr.decode(errors="replace") if exc.stderr else "unknown error"  # type: ignore[union-attr]
        raise TranscriptionFailedError(f"ffmpeg audio extraction failed: {stderr.strip()}") from exc
    return output_path


class WhisperEngine:
    """LocalTranscriber backed by faster-whisper.

    Loaded models are cached per id, so consecutive files reuse the same weights.
    """

    def __init__(
        self,
        *,
        device: str = "auto",
        compute_type: str = "default",
        model_factory: ModelFactory | None = None,
        cache_dir: str | Path | None = None,
    ) -> None:
        """Create the engine. Nothing is loaded until the first transcription.

        Args:
            device: faster-whisper device ("auto", "cpu" or "cuda")
            compute_type: CTranslate2 quantization, "default" picks per device
            model_factory: Builds a WhisperModel from (repo_id, device, compute_type)
            cache_dir: Hugging Face cache to scan for installed models; None uses the default
        """
        self.device, self.compute_type = _device_from_env(device, compute_type)
        self._model_factory = model_factory or _default_model_factory
        self._cache_dir = cache_dir
        self._models: dict[str, "WhisperModel"] = {}
        self._lock = threading.Lock()

    def is_available(self) -> bool:
        """faster-whisper ships with the package; ffmpeg must be on PATH."""
        available = shutil.which("ffmpeg") is not None and shutil.which("ffprobe") is not None
        if not available:
            LOGGER.warning("ffmpeg/ffprobe not found on PATH; local transcription disabled")
        return available

    def _scan_cache(self) -> tuple[Any, dict[str, Any]]:
        """The cache report and its model repositories by repo id; (None, {}) without a cache."""
        try:
            cache = scan_cache_dir(self._cache_dir)
        except CacheNotFound:
            return None, {}
        return cache, {repo.repo_id: repo for repo in cache.repos if repo.repo_type == "model"}

    def list_installed_models(self) -> list[str]:
        """Model ids whose weights are in the Hugging Face cache, in MODEL_REPOS order."""
        _, cached = self._scan_cache()
        return [model_id for model_id, repo_id in MODEL_REPOS.items() if repo_id in cached]

    def is_model_installed(self, model: str) -> bool:
        _, cached = self._scan_cache()
        return _repo_for(model) in cached

    def models_status(self) -> list[ModelStatus]:
        """Every offered model with its install state and size on disk."""
        _, cached = self._scan_cache()
        statuses: list[ModelStatus] = []
        for model_id, repo_id in MODEL_REPOS.items():
            repo = cached.get(repo_id)
            if repo is None:
                statuses.append(ModelStatus(id=model_id, repo_id=repo_id, installed=False))
            else:
                statuses.append(
                    ModelStatus(
                        id=model_id,
                        repo_id=repo_id,
                        installed=True,
                        size_on_disk=repo.size_on_disk,
                        path=str(repo.repo_path),
                    )
                )
        return statuses

    def download_model(self, model: str) -> str:
        """Fetch the weights of a model into the Hugging Face cache.

        Already cached files are not downloaded again.

        Returns:
            Path to the downloaded snapshot

        Raises:
            ValueError: If the model id is not offered
            ModelDownloadError: If the Hub cannot be reached or the files cannot be written
        """
        repo_id = _repo_for(model)
        LOGGER.info("Downloading %s from %s", model, repo_id)
        try:
            path = snapshot_download(repo_id, cache_dir=self._cache_dir)
        except (HfHubHTTPError, OSError) as exc:
            raise ModelDownloadError(f"Failed to download {model}: {exc}") from exc
        LOGGER.info("Model %s ready at %s", model, path)
        return str(path)

    def delete_model(self, model: str) -> int:
        """Remove every cached revision of a model.

        Returns:
            Bytes freed; 0 when the model was not installed
        """
        repo_id = _repo_for(model)
        cache, cached = self._scan_cache()
        repo = cached.get(repo_id)
        if repo is None:
            LOGGER.warning("Model %s is not installed; nothing to delete", model)
            return 0
        strategy = cache.delete_revisions(*[revision.commit_hash for revision in repo.revisions])
        strategy.execute()
        with self._lock:
            self._models.pop(repo_id, None)
        LOGGER.info("Deleted %s (%d bytes freed)", model, strategy.expected_freed_size)
        return int(strategy.expected_freed_size)

    async def transcribe(
        self,
        path: str,
        model: str,
        language: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> TranscriptionOutput:
        """Transcribe one file in a worker thread.

        Progress callbacks are delivered on the event loop thread, in order,
        before this coroutine returns.
        """
        loop = asyncio.get_running_loop()

        def report(stage: ProgressStage, percent: float) -> None:
            if on_progress is not None:
                loop.call_soon_threadsafe(on_progress, stage, percent)

        return await asyncio.to_thread(self._transcribe_sync, path, model, language, report)

    def _load_model(self, model: str) -> "WhisperModel":
        repo_id = MODEL_REPOS.get(model, model)
        with self._lock:
            cached = self._models.get(repo_id)
            if cached is not None:
                return cached
            start = time.time()
            loaded = self._model_factory(repo_id, self.device, self.compute_type)
            LOGGER.info("Loaded %s on %s in %.2f seconds", repo_id, self.device, time.time() - start)
            self._models[repo_id] = loaded
            return loaded

    def _transcribe_sync(self, path: str, model: str, language: str | None, report: Reporter) -> TranscriptionOutput:
        report("extracting", 0)
        if not has_audio_stream(path):
            raise NoAudioStreamError(f"{Path(path).name} does not contain an audio stream")

        with tempfile.TemporaryDirectory(prefix="clipflow_") as tmp:
            wav_path = extract_audio(path, Path(tmp) / "audio.wav")
            report("extracting", 100)

            whisper = self._load_model(model)
            report("transcribing", 0)
            try:
                segments, info = whisper.transcribe(str(wav_path), language=language, vad_filter=True)
                total = float(getattr(info, "duration", 0.0) or 0.0)
                collected: list[TranscriptSegment] = []
                for segment in segments:
                    collected.append(TranscriptSegment(start=segment.start, end=segment.end, text=segment.text.strip()))
                    if total > 0:
                        report("transcribing", min(99.0, segment.end / total * 100))
            except (RuntimeError, ValueError) as exc:
                raise TranscriptionFailedError(f"Whisper transcription failed: {exc}") from exc

        detected = getattr(info, "language", None)
        LOGGER.info("Transcribed %s: %d segments, language %s", Path(path).name, len(collected), detected)
        return TranscriptionOutput(
            segments=collected,
            full_text=" ".join(segment.text for segment in collected if segment.text),
            language=detected,
            duration=total or None,
        )
