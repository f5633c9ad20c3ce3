#!/usr/bin/env python3
"""Root-level pytest configuration and fixtures."""

from __future__ import annotations

import logging
import os
from pathlib import Path

import pytest

# Hugging Face deprecated HF_HUB_ENABLE_HF_TRANSFER; normalize early to avoid warnings
_legacy_hf_transfer = os.environ.pop("HF_HUB_ENABLE_HF_TRANSFER", None)
if _legacy_hf_transfer and "HF_XET_HIGH_PERFORMANCE" not in os.environ:
    os.environ["HF_XET_HIGH_PERFORMANCE"] = _legacy_hf_transfer

# Variables read by Settings, credentials and logging; a developer's .env must not leak into tests
_ISOLATED_ENV_PREFIXES = ("CLIPFLOW_",)
_ISOLATED_ENV_NAMES = ("OPENAI_API_KEY", "ANTHROPIC_API_KEY", "STT_DEVICE", "APP_LOG_DIR", "LOG_LEVEL")

logger = logging.getLogger(__name__)


@pytest.fixture(autouse=True)
def _isolate_clipflow_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove clipflow configuration variables for the duration of each test."""
    for name in list(os.environ):
        if name.startswith(_ISOLATED_ENV_PREFIXES) or name in _ISOLATED_ENV_NAMES:
            monkeypatch.delenv(name, raising=False)


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Provides the absolute path to the project root directory."""
    return Path(__file__).parent.parent
