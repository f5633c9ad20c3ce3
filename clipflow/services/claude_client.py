"""Anthropic Messages API summarization over httpx."""

from __future__ import annotations

import logging
from typing import Final

import httpx

from clipflow.exceptions import SummarizationFailedError
from clipflow.services.prompts import (
    SUMMARY_MAX_TOKENS,
    SUMMARY_TEMPERATURE,
    summary_instructions,
    summary_request,
)

LOGGER = logging.getLogger(__name__)

CLAUDE_API_BASE: Final = "https://api.anthropic.com/v1"
CLAUDE_API_VERSION: Final = "2023-06-01"


class ClaudeClient:
    """Summarizer backed by Claude."""

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = CLAUDE_API_BASE,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            headers={
                "x-api-key": api_key,
                "anthropic-version": CLAUDE_API_VERSION,
                "content-type": "application/json",
            },
            timeout=httpx.Timeout(30.0, read=120.0),
        )

    async def summarize(self, text: str, language: str, model: str) -> str:
        response = await self._client.post(
            "/messages",
            json={
                "model": model,
                "system": summary_instructions(language),
                "messages": [{"role": "user", "content": summary_request(text)}],
                "max_tokens": SUMMARY_MAX_TOKENS,
                "temperature": SUMMARY_TEMPERATURE,
            },
        )
        response.raise_for_status()
        try:
            blocks = response.json()["content"]
        except (ValueError, KeyError, TypeError) as e:
            raise SummarizationFailedError(f"Invalid response from Claude: {e}") from e
        # Only text blocks carry output; join them in order
        return "".join(block.get("text", "") for block in blocks if isinstance(block, dict))

    async def aclose(self) -> None:
        await self._client.aclose()
