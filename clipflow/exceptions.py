"""Custom exceptions for the media orchestration core.

This module defines one hierarchy for every failure the core can surface:
directory scanning, durable storage, provider selection and the per-file
transcription and summarization jobs, and local model downloads.

All exceptions inherit from ClipflowError for consistent error handling.
"""

from __future__ import annotations

import httpx


class ClipflowError(Exception):
    """Base exception for all clipflow errors.

    Callers can catch every error raised by the core with a single except clause.
    """


# Directory exceptions


class ScanError(ClipflowError, OSError):
    """Raised when a directory cannot be scanned.

    This can occur due to:
    - The directory no longer existing
    - Permission issues
    - The path pointing at a regular file

    Inherits from OSError so callers handling filesystem errors still catch it.
    """


# Storage exceptions


class StorageError(ClipflowError, RuntimeError):
    """Raised when the durable key-value store cannot be read or written."""


# Provider exceptions


class ProviderError(ClipflowError):
    """Base class for failures of an external transcription or summarization provider."""


class ProviderUnavailableError(ProviderError):
    """Raised when provider selection resolves to no usable provider."""


class NoModelsInstalledError(ProviderError):
    """Raised when the local engine is selected but no model has been downloaded."""


class FileTooLargeError(ProviderError):
    """Raised before upload when a file exceeds a cloud provider's size limit."""


class NoAudioStreamError(ProviderError):
    """Raised when a media file has no audio stream to transcribe."""


class TranscriptionFailedError(ProviderError):
    """Raised when a transcription engine or API call fails."""


class SummarizationFailedError(ProviderError):
    """Raised when a summarization call fails or returns no text."""


# Model exceptions


class ModelDownloadError(ClipflowError):
    """Raised when Whisper model weights cannot be fetched from the Hugging Face Hub."""


# Job exceptions


class JobFailedError(ClipflowError):
    """Raised by a job body after its failure has been written to the status store.

    The queue records the job as an error; the message is already user-facing.
    """


class JobTimeoutError(ClipflowError, TimeoutError):
    """Raised when a queued job exceeds the configured job timeout."""


NO_AUDIO_STREAM_MESSAGE = "This video does not contain an audio stream"
FILE_TOO_LARGE_MESSAGE = "File size exceeds 25MB. OpenAI Whisper API only supports files up to 25MB."


def _request_host(error: httpx.HTTPError) -> str:
    try:
        return error.request.url.host
    except RuntimeError:
        # .request is unset on errors raised outside a client call
        return "the provider"


def describe_error(error: BaseException) -> str:
    """Map a job failure to a human-readable message for the file's error field."""
    message = str(error) or type(error).__name__

    if isinstance(error, NoAudioStreamError) or "does not contain an audio stream" in message:
        return NO_AUDIO_STREAM_MESSAGE

    if isinstance(error, FileTooLargeError):
        return message

    if "exceeds 25MB" in message or "file size limit" in message:
        return FILE_TOO_LARGE_MESSAGE

    if isinstance(error, httpx.HTTPStatusError):
        code = error.response.status_code
        host = _request_host(error)
        if code in (401, 403):
            return f"Invalid API key for {host} (HTTP {code})"
        if code == 429:
            return f"Rate limit reached for {host}. Please try again later."
        return f"Request to {host} failed with HTTP {code}"

    if isinstance(error, httpx.ConnectError):
        return f"Could not connect to {_request_host(error)}"

    if isinstance(error, httpx.TimeoutException):
        return "Request timed out"

    return message
