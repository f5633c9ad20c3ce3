from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Iterator

import pytest
from fakes import MemoryKeyValueStore

from clipflow.database import DuckDBKeyValueStore
from clipflow.settings import Settings


@pytest.fixture(scope="session", autouse=True)
def _disable_network_for_unit_tests() -> None:
    """Block real sockets for unit tests; allow Unix sockets for pytest internals."""
    from pytest_socket import disable_socket

    disable_socket(allow_unix_socket=True)


@pytest.fixture
def temp_db() -> Iterator[DuckDBKeyValueStore]:
    """Create a temporary key-value database for testing."""
    with tempfile.NamedTemporaryFile(suffix=".duckdb", delete=False) as tmp:
        db_path = tmp.name

    # DuckDB requires the file to be a valid DB or not exist.
    Path(db_path).unlink(missing_ok=True)

    db = DuckDBKeyValueStore(db_path)
    yield db
    db.close()

    Path(db_path).unlink(missing_ok=True)


@pytest.fixture
def memory_storage() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def settings() -> Settings:
    return Settings(save_delay=0.01, poll_interval=0.05)
