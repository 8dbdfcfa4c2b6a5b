from __future__ import annotations

import asyncio

import pytest

from agrofacil.infrastructure import remote_store
from agrofacil.infrastructure.remote_store import PostgresRemoteStore


class _FakePool:
    def __init__(self) -> None:
        self.executed: list[str] = []
        self.closed = False

    async def execute(self, sql: str, *args) -> str:
        self.executed.append(sql)
        return "DELETE 1"

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def pool_factory(monkeypatch):
    created: list[_FakePool] = []

    async def _create(dsn: str, min_size: int = 1, max_size: int = 4) -> _FakePool:
        await asyncio.sleep(0.01)
        pool = _FakePool()
        created.append(pool)
        return pool

    monkeypatch.setattr(remote_store, "create_async_pool", _create)
    return created


@pytest.mark.asyncio
async def test_overlapping_first_calls_share_one_pool(pool_factory) -> None:
    store = PostgresRemoteStore("postgresql://unused")

    results = await asyncio.gather(
        store.delete_by_id("product", 1),
        store.delete_by_id("sale", 2),
    )

    assert [r["ok"] for r in results] == [True, True]
    assert len(pool_factory) == 1
    assert len(pool_factory[0].executed) == 2

    await store.close()
    assert pool_factory[0].closed is True


@pytest.mark.asyncio
async def test_unknown_table_fails_without_touching_the_pool(pool_factory) -> None:
    store = PostgresRemoteStore("postgresql://unused")

    result = await store.delete_by_id("invoice", 1)

    assert result["ok"] is False
    assert pool_factory == []


@pytest.mark.asyncio
async def test_empty_partial_update_is_a_no_op(pool_factory) -> None:
    store = PostgresRemoteStore("postgresql://unused")

    result = await store.update_by_id("product", 1, {"id": 1})

    assert result == {"ok": True, "affected": 0}
    assert pool_factory == []
