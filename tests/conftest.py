"""
Pytest configuration for AgroFácil.

Provides fixtures for:
- Settings pointing local storage at a temporary directory
- An in-memory remote store with upsert semantics and failure injection
- A ready-to-use SyncStore wired to both
- A Postgres DSN for integration tests
"""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

import pytest

from agrofacil.config import Settings
from agrofacil.errors import RemoteUnavailable
from agrofacil.infrastructure.local_store import FileKeyValueStorage, LocalStore
from agrofacil.infrastructure.remote_store import TABLE_COLUMNS, RemoteResult
from agrofacil.sync.connectivity import ConnectivityMonitor
from agrofacil.sync.engine import SyncStore


class FakeRemoteStore:
    """
    In-memory stand-in for the remote backend.

    Tables map id -> row. `insert` is an upsert, like the Postgres adapter.
    Every call is appended to `calls` as (operation, table, id).

    Failure injection:
    - `fail_tables`: tables whose calls return ok=False
    - `raise_tables`: tables whose calls raise RemoteUnavailable
    - `delay`: seconds each call sleeps before answering
    - `select_overrides`: table -> rows returned by select_all instead of the table
    """

    def __init__(self) -> None:
        self.tables: Dict[str, Dict[int, Dict[str, Any]]] = {t: {} for t in TABLE_COLUMNS}
        self.calls: List[Tuple[str, str, Optional[int]]] = []
        self.fail_tables: set = set()
        self.raise_tables: set = set()
        self.delay: float = 0.0
        self.select_overrides: Dict[str, List[Dict[str, Any]]] = {}
        self.closed = False

    async def _enter(
        self, operation: str, table: str, record_id: Optional[int]
    ) -> Optional[RemoteResult]:
        self.calls.append((operation, table, record_id))
        if self.delay:
            await asyncio.sleep(self.delay)
        if table in self.raise_tables:
            raise RemoteUnavailable(f"{table} unreachable")
        if table in self.fail_tables:
            return RemoteResult(ok=False, error=f"{table} rejected {operation}")
        return None

    def writes(self, table: Optional[str] = None) -> List[Tuple[str, str, Optional[int]]]:
        return [
            c for c in self.calls
            if c[0] in ("insert", "update") and (table is None or c[1] == table)
        ]

    async def insert(self, table: str, row: Mapping[str, Any]) -> RemoteResult:
        failure = await self._enter("insert", table, row["id"])
        if failure is not None:
            return failure
        self.tables[table][row["id"]] = dict(row)
        return RemoteResult(ok=True, affected=1)

    async def select_all(self, table: str) -> RemoteResult:
        failure = await self._enter("select_all", table, None)
        if failure is not None:
            return failure
        if table in self.select_overrides:
            return RemoteResult(ok=True, rows=list(self.select_overrides[table]))
        rows = [dict(r) for _, r in sorted(self.tables[table].items())]
        return RemoteResult(ok=True, rows=rows)

    async def delete_by_id(self, table: str, record_id: int) -> RemoteResult:
        failure = await self._enter("delete", table, record_id)
        if failure is not None:
            return failure
        removed = self.tables[table].pop(record_id, None)
        return RemoteResult(ok=True, affected=0 if removed is None else 1)

    async def update_by_id(
        self, table: str, record_id: int, partial: Mapping[str, Any]
    ) -> RemoteResult:
        failure = await self._enter("update", table, record_id)
        if failure is not None:
            return failure
        row = self.tables[table].get(record_id)
        if row is None:
            return RemoteResult(ok=False, affected=0, error="no row")
        row.update(partial)
        return RemoteResult(ok=True, affected=1)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """
    Settings fixture with local storage in a temp dir and the remote disabled.
    """
    return Settings(
        storage_dir=tmp_path / "storage",
        remote_enabled=False,
        remote_timeout_seconds=0.5,
        log_level="DEBUG",
    )


@pytest.fixture
def storage_dir(tmp_path: Path) -> Path:
    return tmp_path / "storage"


@pytest.fixture
def local_store(storage_dir: Path) -> LocalStore:
    return LocalStore(FileKeyValueStorage(storage_dir))


@pytest.fixture
def remote() -> FakeRemoteStore:
    return FakeRemoteStore()


@pytest.fixture
def monitor() -> ConnectivityMonitor:
    return ConnectivityMonitor(online=False)


@pytest.fixture
def store(
    local_store: LocalStore, monitor: ConnectivityMonitor, remote: FakeRemoteStore
) -> SyncStore:
    """
    SyncStore starting offline, with a fake remote and a short call timeout.
    """
    return SyncStore(local_store, monitor, remote=remote, remote_timeout=0.5)


@pytest.fixture(scope="session")
def test_dsn() -> str:
    """
    Database connection string for integration tests.
    """
    return (
        f"postgresql://{os.getenv('DB_USER', 'postgres')}:{os.getenv('DB_PASSWORD', 'postgres')}"
        f"@{os.getenv('DB_HOST', 'localhost')}:{os.getenv('DB_PORT', '5432')}"
        f"/{os.getenv('DB_NAME', 'agrofacil')}"
    )
