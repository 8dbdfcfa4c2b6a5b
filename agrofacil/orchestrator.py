"""
Wiring for AgroFácil sessions.

Builds the single `SyncStore` of a process from settings and drives its
lifecycle: probe connectivity on startup (which triggers the reconnect sweep
and remote load when the backend is reachable), hand the store to the caller,
then drain background work and release the remote pool.

Usage (example from CLI):
    from agrofacil.orchestrator import store_session

    async with store_session() as store:
        await store.create_product("Milho", "12,50")
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from agrofacil.config import Settings, get_settings
from agrofacil.infrastructure.db_factory import build_dsn
from agrofacil.infrastructure.local_store import FileKeyValueStorage, LocalStore
from agrofacil.infrastructure.remote_store import PostgresRemoteStore
from agrofacil.sync.connectivity import ConnectivityMonitor
from agrofacil.sync.engine import OnlineSyncOutcome, SyncStore
from agrofacil.utils.logging import get_logger

log = get_logger(__name__)


def build_store(settings: Optional[Settings] = None) -> SyncStore:
    """
    Construct the process-wide store. No I/O beyond reading local storage.
    """
    settings = settings or get_settings()
    local = LocalStore(
        FileKeyValueStorage(settings.storage_dir, quota_bytes=settings.storage_quota_bytes)
    )
    monitor = ConnectivityMonitor(online=False, probe_timeout=settings.connectivity_probe_timeout)

    remote: Optional[PostgresRemoteStore] = None
    if settings.remote_enabled:
        remote = PostgresRemoteStore(
            build_dsn(settings),
            pool_min_size=settings.remote_pool_min_size,
            pool_max_size=settings.remote_pool_max_size,
        )
        monitor.probe_host = settings.db_host
        monitor.probe_port = settings.db_port

    log.debug(
        "Store built",
        extra={"storage_dir": str(settings.storage_dir), "remote": settings.remote_enabled},
    )
    return SyncStore(local, monitor, remote=remote, remote_timeout=settings.remote_timeout_seconds)


@asynccontextmanager
async def store_session(
    settings: Optional[Settings] = None,
    probe: bool = True,
) -> AsyncIterator[SyncStore]:
    """
    Open a store for the duration of a block.

    Parameters
    ----------
    settings : Settings | None
        Defaults to the cached settings.
    probe : bool
        Check connectivity before yielding. A reachable backend fires the
        became-online edge, so pending records are pushed and the remote
        snapshot is loaded before the caller sees the collections.
    """
    store = build_store(settings)
    try:
        if probe:
            await store.monitor.probe()
            await store.drain()
        yield store
    finally:
        await store.close()


async def run_sync(settings: Optional[Settings] = None) -> Optional[OnlineSyncOutcome]:
    """
    One-shot synchronization. Returns None when the backend was unreachable.
    """
    async with store_session(settings, probe=True) as store:
        return store.last_online_sync


async def watch_connectivity(
    settings: Optional[Settings] = None,
    stop: Optional[asyncio.Event] = None,
) -> None:
    """
    Keep probing the backend; every offline -> online transition reconciles.
    """
    settings = settings or get_settings()
    async with store_session(settings, probe=False) as store:
        log.info(
            "Watching connectivity",
            extra={"interval": settings.connectivity_probe_interval},
        )
        await store.monitor.watch(settings.connectivity_probe_interval, stop=stop)


__all__ = [
    "build_store",
    "store_session",
    "run_sync",
    "watch_connectivity",
]
