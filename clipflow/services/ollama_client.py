"""Local Ollama daemon: reachability probe and summarization."""

from __future__ import annotations

import logging
from typing import Final

import httpx

from clipflow.exceptions import SummarizationFailedError
from clipflow.services.prompts import summary_prompt

LOGGER = logging.getLogger(__name__)

OLLAMA_BASE_URL: Final = "http://localhost:11434"


class OllamaClient:
    """Summarizer and DaemonProbe for an Ollama server."""

    def __init__(self, base_url: str = OLLAMA_BASE_URL, *, client: httpx.AsyncClient | None = None) -> None:
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=httpx.Timeout(5.0, read=300.0))

    async def is_running(self) -> bool:
        try:
            await self._client.get("/api/tags")
        except httpx.HTTPError as e:
            LOGGER.debug("Ollama not reachable: %s", e)
            return False
        return True

    async def list_models(self) -> list[str]:
        response = await self._client.get("/api/tags")
        response.raise_for_status()
        return sorted(model["name"] for model in response.json().get("models", []))

    async def summarize(self, text: str, language: str, model: str) -> str:
        response = await self._client.post(
            "/api/generate",
            json={"model": model, "prompt": summary_prompt(text, language), "stream": False},
        )
        if response.status_code == httpx.codes.NOT_FOUND:
            raise SummarizationFailedError(
                f"Model '{model}' not found. Please install it by running: ollama pull {model}"
            )
        response.raise_for_status()
        try:
            return str(response.json()["response"])
        except (ValueError, KeyError, TypeError) as e:
            raise SummarizationFailedError(f"Invalid response from Ollama: {e}") from e

    async def aclose(self) -> None:
        await self._client.aclose()
