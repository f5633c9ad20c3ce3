"""API keys for the cloud providers, read from the environment."""

from __future__ import annotations

import os
from typing import Final, Mapping

OPENAI_API_KEY_ENV: Final = "OPENAI_API_KEY"
ANTHROPIC_API_KEY_ENV: Final = "ANTHROPIC_API_KEY"


class EnvCredentials:
    """CredentialProvider over environment variables (a .env file is loaded by clipflow.config)."""

    def __init__(self, env: Mapping[str, str] | None = None) -> None:
        self._env = os.environ if env is None else env

    def _key(self, name: str) -> str | None:
        value = self._env.get(name, "").strip()
        return value or None

    @property
    def openai_key(self) -> str | None:
        return self._key(OPENAI_API_KEY_ENV)

    @property
    def claude_key(self) -> str | None:
        return self._key(ANTHROPIC_API_KEY_ENV)

    def status(self) -> dict[str, bool]:
        return {"openai": self.openai_key is not None, "claude": self.claude_key is not None}
