from __future__ import annotations

import asyncio

import pytest

from agrofacil.sync.connectivity import ConnectivityMonitor


def test_subscribers_fire_only_on_the_offline_to_online_edge() -> None:
    monitor = ConnectivityMonitor(online=False)
    calls: list[str] = []
    monitor.subscribe(lambda: calls.append("online"))

    assert monitor.set_online(True) is True
    assert monitor.set_online(True) is False
    assert monitor.set_online(False) is False
    assert monitor.set_online(True) is True

    assert calls == ["online", "online"]
    assert monitor.is_online() is True


def test_unsubscribe_stops_notifications() -> None:
    monitor = ConnectivityMonitor()
    calls: list[int] = []
    unsubscribe = monitor.subscribe(lambda: calls.append(1))
    unsubscribe()
    unsubscribe()

    monitor.set_online(True)

    assert calls == []


def test_failing_subscriber_does_not_block_the_others() -> None:
    monitor = ConnectivityMonitor()
    calls: list[str] = []

    def boom() -> None:
        raise RuntimeError("subscriber bug")

    monitor.subscribe(boom)
    monitor.subscribe(lambda: calls.append("second"))

    assert monitor.set_online(True) is True
    assert calls == ["second"]


@pytest.mark.asyncio
async def test_probe_without_endpoint_keeps_level() -> None:
    monitor = ConnectivityMonitor(online=True)
    assert await monitor.probe() is True
    assert monitor.is_online() is True


@pytest.mark.asyncio
async def test_probe_reports_reachable_endpoint_and_fires_edge() -> None:
    server = await asyncio.start_server(lambda r, w: w.close(), "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    calls: list[int] = []
    try:
        monitor = ConnectivityMonitor(probe_host="127.0.0.1", probe_port=port, probe_timeout=1.0)
        monitor.subscribe(lambda: calls.append(1))

        assert await monitor.probe() is True
        assert monitor.is_online() is True
        assert calls == [1]
    finally:
        server.close()
        await server.wait_closed()


@pytest.mark.asyncio
async def test_probe_marks_unreachable_endpoint_offline() -> None:
    server = await asyncio.start_server(lambda r, w: w.close(), "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    server.close()
    await server.wait_closed()

    monitor = ConnectivityMonitor(
        online=True, probe_host="127.0.0.1", probe_port=port, probe_timeout=1.0
    )

    assert await monitor.probe() is False
    assert monitor.is_online() is False


@pytest.mark.asyncio
async def test_watch_returns_when_stopped() -> None:
    monitor = ConnectivityMonitor(online=True)
    stop = asyncio.Event()
    stop.set()
    await asyncio.wait_for(monitor.watch(interval=10, stop=stop), timeout=1)
