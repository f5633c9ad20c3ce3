"""User settings for provider selection and job behaviour."""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass
from typing import Any, Final, Mapping

from clipflow.exceptions import StorageError
from clipflow.services.interfaces import KeyValueStore

LOGGER = logging.getLogger(__name__)

TRANSCRIPTION_PROVIDERS: Final = ("local", "openai")
LLM_PROVIDERS: Final = ("ollama", "openai", "claude")
AUTO_LANGUAGE: Final = "auto"
LAST_LANGUAGE_KEY: Final = "clipflow.last-transcription-language"

_TRANSCRIPTION_PROVIDER_ENV: Final = "CLIPFLOW_TRANSCRIPTION_PROVIDER"
_TRANSCRIPTION_LANGUAGE_ENV: Final = "CLIPFLOW_TRANSCRIPTION_LANGUAGE"
_WHISPER_MODEL_ENV: Final = "CLIPFLOW_WHISPER_MODEL"
_OPENAI_WHISPER_MODEL_ENV: Final = "CLIPFLOW_OPENAI_WHISPER_MODEL"
_LLM_PROVIDER_ENV: Final = "CLIPFLOW_LLM_PROVIDER"
_OLLAMA_MODEL_ENV: Final = "CLIPFLOW_OLLAMA_MODEL"
_OPENAI_MODEL_ENV: Final = "CLIPFLOW_OPENAI_MODEL"
_CLAUDE_MODEL_ENV: Final = "CLIPFLOW_CLAUDE_MODEL"
_SAVE_DELAY_ENV: Final = "CLIPFLOW_SAVE_DELAY"
_POLL_INTERVAL_ENV: Final = "CLIPFLOW_POLL_INTERVAL"
_JOB_TIMEOUT_ENV: Final = "CLIPFLOW_JOB_TIMEOUT"

_SAVE_DELAY_DEFAULT: Final = 1.0
_POLL_INTERVAL_DEFAULT: Final = 2.0


def _env_str(env: Mapping[str, str], name: str, default: str) -> str:
    value = env.get(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _parse_float(raw: str | None, default: float) -> float:
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _parse_positive_float(raw: str | None) -> float | None:
    if raw is None:
        return None
    try:
        value = float(raw)
    except ValueError:
        return None
    if value <= 0:
        return None
    return value


@dataclass(slots=True)
class Settings:
    """Provider and model choices, plus timing knobs for the runtime."""

    # Transcription settings
    transcription_provider: str = "local"
    transcription_language: str = AUTO_LANGUAGE  # Whisper language code, e.g. "en", "ko" or "auto"
    whisper_model: str = "base"
    openai_whisper_model: str = "whisper-1"

    # LLM settings
    llm_provider: str = "ollama"
    ollama_model: str = "llama3.2"
    openai_model: str = "gpt-4o"
    claude_model: str = "claude-3-5-sonnet-latest"

    # Runtime
    save_delay: float = _SAVE_DELAY_DEFAULT
    poll_interval: float = _POLL_INTERVAL_DEFAULT
    job_timeout: float | None = None

    def validate(self) -> None:
        if self.transcription_provider not in TRANSCRIPTION_PROVIDERS:
            raise ValueError(
                f"transcription_provider must be one of {TRANSCRIPTION_PROVIDERS}, got {self.transcription_provider!r}"
            )
        if self.llm_provider not in LLM_PROVIDERS:
            raise ValueError(f"llm_provider must be one of {LLM_PROVIDERS}, got {self.llm_provider!r}")
        if self.save_delay < 0:
            raise ValueError(f"save_delay must be >= 0, got {self.save_delay}")
        if self.poll_interval <= 0:
            raise ValueError(f"poll_interval must be positive, got {self.poll_interval}")

    def language_or_none(self) -> str | None:
        """Language to pass to a transcriber; None lets the engine auto-detect."""
        if self.transcription_language == AUTO_LANGUAGE:
            return None
        return self.transcription_language

    def summary_language(self) -> str:
        return self.transcription_language or AUTO_LANGUAGE

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "Settings":
        source = os.environ if env is None else env
        defaults = cls()
        settings = cls(
            transcription_provider=_env_str(
                source, _TRANSCRIPTION_PROVIDER_ENV, defaults.transcription_provider
            ).lower(),
            transcription_language=_env_str(source, _TRANSCRIPTION_LANGUAGE_ENV, defaults.transcription_language),
            whisper_model=_env_str(source, _WHISPER_MODEL_ENV, defaults.whisper_model),
            openai_whisper_model=_env_str(source, _OPENAI_WHISPER_MODEL_ENV, defaults.openai_whisper_model),
            llm_provider=_env_str(source, _LLM_PROVIDER_ENV, defaults.llm_provider).lower(),
            ollama_model=_env_str(source, _OLLAMA_MODEL_ENV, defaults.ollama_model),
            openai_model=_env_str(source, _OPENAI_MODEL_ENV, defaults.openai_model),
            claude_model=_env_str(source, _CLAUDE_MODEL_ENV, defaults.claude_model),
            save_delay=_parse_float(source.get(_SAVE_DELAY_ENV), defaults.save_delay),
            poll_interval=_parse_float(source.get(_POLL_INTERVAL_ENV), defaults.poll_interval),
            job_timeout=_parse_positive_float(source.get(_JOB_TIMEOUT_ENV)),
        )
        settings.validate()
        return settings


class LanguageMemory:
    """Remembers the transcription language of the previous run.

    Persisted in the same key-value storage as the status map so a language
    change between runs can be detected at startup.
    """

    def __init__(self, storage: KeyValueStore) -> None:
        self._storage = storage

    def last(self) -> str | None:
        try:
            return self._storage.get(LAST_LANGUAGE_KEY)
        except StorageError as error:
            LOGGER.error("Failed to read last transcription language: %s", error)
            return None

    def remember(self, language: str) -> None:
        try:
            self._storage.set(LAST_LANGUAGE_KEY, language)
        except StorageError as error:
            LOGGER.error("Failed to save transcription language: %s", error)

    def has_changed(self, language: str) -> bool:
        """True when a different language was used last time. A first run never counts as a change."""
        previous = self.last()
        return previous is not None and previous != language
