"""OpenAI Whisper transcription and chat summarization over httpx."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Final

import httpx

from clipflow.exceptions import FileTooLargeError, SummarizationFailedError, TranscriptionFailedError
from clipflow.models import TranscriptSegment
from clipflow.services.interfaces import TranscriptionOutput
from clipflow.services.prompts import (
    SUMMARY_MAX_TOKENS,
    SUMMARY_TEMPERATURE,
    summary_instructions,
    summary_request,
)

LOGGER = logging.getLogger(__name__)

OPENAI_API_BASE: Final = "https://api.openai.com/v1"
MAX_UPLOAD_SIZE: Final = 25 * 1024 * 1024
DEFAULT_TIMEOUT: Final = httpx.Timeout(30.0, read=600.0)


def _parse_segments(payload: dict[str, Any]) -> list[TranscriptSegment]:
    segments: list[TranscriptSegment] = []
    for item in payload.get("segments") or []:
        segments.append(
            TranscriptSegment(start=float(item["start"]), end=float(item["end"]), text=str(item["text"]).strip())
        )
    return segments


class OpenAIClient:
    """CloudTranscriber and Summarizer for the OpenAI API."""

    max_file_size = MAX_UPLOAD_SIZE

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = OPENAI_API_BASE,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            headers={"Authorization": f"Bearer {api_key}"},
            timeout=DEFAULT_TIMEOUT,
        )

    async def transcribe(self, path: str, language: str | None = None, model: str = "whisper-1") -> TranscriptionOutput:
        """Upload a media file to /audio/transcriptions.

        Raises:
            FileTooLargeError: If the file is over the 25 MB upload limit
            TranscriptionFailedError: If the response cannot be parsed
            httpx.HTTPStatusError: If the API rejects the request
        """
        media = Path(path)
        size = media.stat().st_size
        if size > self.max_file_size:
            raise FileTooLargeError(
                f"File size ({size} bytes) exceeds 25MB. OpenAI Whisper API file size limit exceeded."
            )

        data: dict[str, str] = {"model": model, "response_format": "verbose_json"}
        if language:
            data["language"] = language

        LOGGER.debug("Uploading %s (%d bytes) to OpenAI %s", media.name, size, model)
        with media.open("rb") as handle:
            response = await self._client.post(
                "/audio/transcriptions",
                data=data,
                files={"file": (media.name, handle, "application/octet-stream")},
            )
        response.raise_for_status()

        try:
            payload = response.json()
            return TranscriptionOutput(
                segments=_parse_segments(payload),
                full_text=str(payload.get("text", "")).strip(),
                language=payload.get("language"),
                duration=payload.get("duration"),
            )
        except (ValueError, KeyError, TypeError) as e:
            raise TranscriptionFailedError(f"Invalid transcription response from OpenAI: {e}") from e

    async def summarize(self, text: str, language: str, model: str) -> str:
        response = await self._client.post(
            "/chat/completions",
            json={
                "model": model,
                "messages": [
                    {"role": "system", "content": summary_instructions(language)},
                    {"role": "user", "content": summary_request(text)},
                ],
                "temperature": SUMMARY_TEMPERATURE,
                "max_tokens": SUMMARY_MAX_TOKENS,
            },
        )
        response.raise_for_status()
        try:
            return str(response.json()["choices"][0]["message"]["content"] or "")
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise SummarizationFailedError(f"Invalid chat response from OpenAI: {e}") from e

    async def aclose(self) -> None:
        await self._client.aclose()
