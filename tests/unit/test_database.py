"""Unit tests for the DuckDB key-value store."""

from __future__ import annotations

from pathlib import Path

import pytest

from clipflow.database import DuckDBKeyValueStore, get_default_db_path
from clipflow.exceptions import StorageError


def test_set_and_get(temp_db: DuckDBKeyValueStore) -> None:
    """Test storing and reading a value."""
    temp_db.set("clipflow.media-root-path", "/media")
    assert temp_db.get("clipflow.media-root-path") == "/media"
    assert temp_db.get("missing") is None


def test_set_overwrites(temp_db: DuckDBKeyValueStore) -> None:
    """Test that a second write replaces the value instead of adding a row."""
    temp_db.set("k", "one")
    temp_db.set("k", "two")
    assert temp_db.get("k") == "two"
    assert temp_db.keys() == ["k"]


def test_delete(temp_db: DuckDBKeyValueStore) -> None:
    temp_db.set("a", "1")
    temp_db.set("b", "2")
    temp_db.delete("a")
    temp_db.delete("never-set")
    assert temp_db.keys() == ["b"]


def test_values_survive_reopen(tmp_path: Path) -> None:
    """Test that data is durable across connections."""
    db_path = tmp_path / "state.duckdb"
    with DuckDBKeyValueStore(db_path) as db:
        db.set("clipflow.media-file-statuses", '{"/m/a.mp4": {"status": "pending", "progress": 0}}')

    with DuckDBKeyValueStore(db_path) as db:
        assert db.get("clipflow.media-file-statuses") == '{"/m/a.mp4": {"status": "pending", "progress": 0}}'


def test_closed_store_raises_storage_error(tmp_path: Path) -> None:
    db = DuckDBKeyValueStore(tmp_path / "state.duckdb")
    db.close()
    with pytest.raises(StorageError):
        db.get("k")
    with pytest.raises(StorageError):
        db.set("k", "v")


def test_default_db_path_override(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Test the explicit CLIPFLOW_DB_PATH override."""
    monkeypatch.setenv("CLIPFLOW_DB_PATH", str(tmp_path / "custom.duckdb"))
    assert get_default_db_path() == tmp_path / "custom.duckdb"


def test_default_db_path_uses_xdg(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Test that the XDG data directory is used and created."""
    monkeypatch.delenv("CLIPFLOW_DB_PATH", raising=False)
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path))
    path = get_default_db_path()
    assert path == tmp_path / "clipflow" / "state.duckdb"
    assert path.parent.is_dir()
