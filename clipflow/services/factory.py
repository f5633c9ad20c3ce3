"""Factory for creating service instances."""

from pathlib import Path

from clipflow.database import DuckDBKeyValueStore
from clipflow.scanner import FileSystemScanner, PollingWatcher
from clipflow.services.claude_client import ClaudeClient
from clipflow.services.credentials import EnvCredentials
from clipflow.services.interfaces import (
    DirectoryScanner,
    DirectoryWatcher,
    KeyValueStore,
    LocalTranscriber,
    Summarizer,
)
from clipflow.services.ollama_client import OllamaClient
from clipflow.services.openai_client import OpenAIClient
from clipflow.services.whisper_engine import WhisperEngine


class ServiceFactory:
    """Factory for creating service instances."""

    @staticmethod
    def create_storage(db_path: str | Path | None = None) -> KeyValueStore:
        """Create the key-value store with the default database path."""
        return DuckDBKeyValueStore(db_path)

    @staticmethod
    def create_scanner() -> DirectoryScanner:
        return FileSystemScanner()

    @staticmethod
    def create_watcher(poll_interval: float) -> DirectoryWatcher:
        return PollingWatcher(poll_interval)

    @staticmethod
    def create_credentials() -> EnvCredentials:
        return EnvCredentials()

    @staticmethod
    def create_local_transcriber() -> LocalTranscriber:
        return WhisperEngine()

    @staticmethod
    def create_openai(credentials: EnvCredentials) -> OpenAIClient | None:
        """Create the OpenAI client, or None when no key is configured."""
        key = credentials.openai_key
        return OpenAIClient(key) if key else None

    @staticmethod
    def create_ollama() -> OllamaClient:
        return OllamaClient()

    @staticmethod
    def create_summarizers(
        credentials: EnvCredentials, ollama: OllamaClient, openai: OpenAIClient | None
    ) -> dict[str, Summarizer]:
        """Summarizers keyed by provider name, limited to providers that can be reached."""
        summarizers: dict[str, Summarizer] = {"ollama": ollama}
        if openai is not None:
            summarizers["openai"] = openai
        if credentials.claude_key:
            summarizers["claude"] = ClaudeClient(credentials.claude_key)
        return summarizers
