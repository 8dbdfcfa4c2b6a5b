"""
Remote record store for AgroFácil.

The backend is one Postgres table per collection (`product`, `sale`, `cost`).
Every call returns a `RemoteResult` instead of raising: callers decide what to
do with a failure (usually: leave the record unsynced) without relying on
exception side effects.

`insert` is an upsert by id, so replaying the same record twice (an
overlapping mutation attempt and reconnect sweep) never creates a second row.
"""

from __future__ import annotations

import asyncio
from typing import (
    Any,
    Dict,
    List,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    TypedDict,
    runtime_checkable,
)

import asyncpg

from agrofacil.infrastructure.db_factory import create_async_pool
from agrofacil.utils.logging import get_logger

log = get_logger(__name__)

TABLE_COLUMNS: Dict[str, Sequence[str]] = {
    "product": ("id", "name", "price"),
    "sale": ("id", "product_id", "product_name", "quantity", "total_amount", "created_at"),
    "cost": ("id", "description", "amount", "category", "occurred_at"),
}


class RemoteResult(TypedDict, total=False):
    """
    Outcome of a remote call.

    `ok` is always present. `rows` is set by `select_all`, `affected` by the
    write operations, and `error` describes a failure.
    """

    ok: bool
    rows: List[Dict[str, Any]]
    affected: int
    error: Optional[str]


def remote_failure(error: str) -> RemoteResult:
    return RemoteResult(ok=False, error=error)


@runtime_checkable
class RemoteStore(Protocol):
    """
    CRUD contract of the remote backend, per table.
    """

    async def insert(self, table: str, row: Mapping[str, Any]) -> RemoteResult:
        """Insert `row`, or overwrite the existing row with the same id."""
        ...

    async def select_all(self, table: str) -> RemoteResult:
        ...

    async def delete_by_id(self, table: str, record_id: int) -> RemoteResult:
        ...

    async def update_by_id(
        self, table: str, record_id: int, partial: Mapping[str, Any]
    ) -> RemoteResult:
        ...

    async def close(self) -> None:
        ...


def _affected(status: str) -> int:
    """Parse asyncpg's command status tag (e.g. 'UPDATE 1')."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (ValueError, AttributeError):
        return 0


class PostgresRemoteStore:
    """
    asyncpg-backed implementation of `RemoteStore`.

    The pool is created lazily on first use so constructing the store never
    touches the network.
    """

    _errors = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError)

    def __init__(self, dsn: str, pool_min_size: int = 1, pool_max_size: int = 4) -> None:
        self._dsn = dsn
        self._pool_min_size = pool_min_size
        self._pool_max_size = pool_max_size
        self._pool: Optional[asyncpg.Pool] = None
        self._pool_lock = asyncio.Lock()

    async def _get_pool(self) -> asyncpg.Pool:
        if self._pool is not None:
            return self._pool
        async with self._pool_lock:
            # Overlapping first calls share the pool built by whichever got the lock.
            if self._pool is None:
                self._pool = await create_async_pool(
                    self._dsn, min_size=self._pool_min_size, max_size=self._pool_max_size
                )
        return self._pool

    @staticmethod
    def _columns(table: str, fields: Sequence[str]) -> List[str]:
        allowed = TABLE_COLUMNS.get(table)
        if allowed is None:
            raise KeyError(f"Unknown remote table {table!r}")
        unknown = [f for f in fields if f not in allowed]
        if unknown:
            raise KeyError(f"Unknown columns for {table!r}: {', '.join(unknown)}")
        return [c for c in allowed if c in fields]

    async def insert(self, table: str, row: Mapping[str, Any]) -> RemoteResult:
        try:
            columns = self._columns(table, list(row))
        except KeyError as exc:
            return remote_failure(str(exc))
        placeholders = ", ".join(f"${i}" for i in range(1, len(columns) + 1))
        updates = ", ".join(f"{c} = EXCLUDED.{c}" for c in columns if c != "id")
        sql = (
            f"INSERT INTO public.{table} ({', '.join(columns)}) VALUES ({placeholders}) "
            f"ON CONFLICT (id) DO UPDATE SET {updates}"
        )
        try:
            pool = await self._get_pool()
            status = await pool.execute(sql, *[row[c] for c in columns])
        except self._errors as exc:
            log.warning("Remote insert failed", extra={"table": table, "error": str(exc)})
            return remote_failure(str(exc))
        return RemoteResult(ok=True, affected=_affected(status))

    async def select_all(self, table: str) -> RemoteResult:
        try:
            columns = self._columns(table, TABLE_COLUMNS.get(table, ()))
        except KeyError as exc:
            return remote_failure(str(exc))
        sql = f"SELECT {', '.join(columns)} FROM public.{table} ORDER BY id"
        try:
            pool = await self._get_pool()
            records = await pool.fetch(sql)
        except self._errors as exc:
            log.warning("Remote select failed", extra={"table": table, "error": str(exc)})
            return remote_failure(str(exc))
        return RemoteResult(ok=True, rows=[dict(r) for r in records])

    async def delete_by_id(self, table: str, record_id: int) -> RemoteResult:
        if table not in TABLE_COLUMNS:
            return remote_failure(f"Unknown remote table {table!r}")
        try:
            pool = await self._get_pool()
            status = await pool.execute(f"DELETE FROM public.{table} WHERE id = $1", record_id)
        except self._errors as exc:
            log.warning(
                "Remote delete failed",
                extra={"table": table, "id": record_id, "error": str(exc)},
            )
            return remote_failure(str(exc))
        return RemoteResult(ok=True, affected=_affected(status))

    async def update_by_id(
        self, table: str, record_id: int, partial: Mapping[str, Any]
    ) -> RemoteResult:
        fields = [f for f in partial if f != "id"]
        if not fields:
            return RemoteResult(ok=True, affected=0)
        try:
            columns = self._columns(table, fields)
        except KeyError as exc:
            return remote_failure(str(exc))
        assignments = ", ".join(f"{c} = ${i}" for i, c in enumerate(columns, start=1))
        sql = f"UPDATE public.{table} SET {assignments} WHERE id = ${len(columns) + 1}"
        try:
            pool = await self._get_pool()
            status = await pool.execute(sql, *[partial[c] for c in columns], record_id)
        except self._errors as exc:
            log.warning(
                "Remote update failed",
                extra={"table": table, "id": record_id, "error": str(exc)},
            )
            return remote_failure(str(exc))
        affected = _affected(status)
        if affected == 0:
            return RemoteResult(ok=False, affected=0, error=f"No {table} row with id {record_id}")
        return RemoteResult(ok=True, affected=affected)

    async def close(self) -> None:
        if self._pool is not None:
            pool, self._pool = self._pool, None
            await pool.close()


__all__ = [
    "TABLE_COLUMNS",
    "RemoteResult",
    "RemoteStore",
    "PostgresRemoteStore",
    "remote_failure",
]
