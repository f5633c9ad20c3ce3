"""Prompt text shared by every summarization provider."""

from typing import Final

LANGUAGE_NAMES: Final[dict[str, str]] = {
    "ko": "Korean",
    "en": "English",
    "ja": "Japanese",
    "zh": "Chinese",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "pt": "Portuguese",
    "ru": "Russian",
    "it": "Italian",
    "nl": "Dutch",
    "pl": "Polish",
    "tr": "Turkish",
    "vi": "Vietnamese",
    "th": "Thai",
    "id": "Indonesian",
    "ar": "Arabic",
    "hi": "Hindi",
    "et": "Estonian",
}

SUMMARY_TEMPERATURE: Final = 0.3
SUMMARY_MAX_TOKENS: Final = 1000


def language_code_to_name(code: str) -> str:
    """Language name for an LLM prompt. Unknown codes pass through unchanged."""
    normalized = code.lower()
    if normalized == "auto":
        return "the same language as the original transcription"
    return LANGUAGE_NAMES.get(normalized, code)


def summary_instructions(language: str) -> str:
    return (
        "You are an expert at summarizing transcribed audio/video content. "
        f"Create a clear, well-structured summary in {language_code_to_name(language)}.\n\n"
        "Guidelines:\n"
        "- Start with a one-sentence overview of the main topic\n"
        "- Highlight key points, decisions, or action items\n"
        "- Preserve important names, dates, and specific details\n"
        "- Use bullet points for multiple items when appropriate\n"
        "- Keep the summary concise but comprehensive (aim for 20-30% of original length)\n"
        "- Maintain the original tone and context\n\n"
        "IMPORTANT: Output ONLY the summary itself. Do NOT include any introductory phrases "
        'like "Here is a summary" or concluding notes like "Note:". '
        "Start directly with the summary content."
    )


def summary_request(text: str) -> str:
    return f"Summarize the following transcription:\n\n{text}"


def summary_prompt(text: str, language: str) -> str:
    """Single-string prompt for completion-style APIs such as Ollama's /api/generate."""
    return f"{summary_instructions(language)}\n\nTranscription:\n{text}\n\nSummary:"
