"""
Connectivity monitor.

Exposes the online/offline signal as a level (`is_online()`) and as an edge:
subscribers are called only when the state flips from offline to online.

The level is fed either by the host (`set_online`) or by `probe()`, a TCP
reachability check against the remote backend. `watch()` repeats the probe on
an interval; consumers of the edge never poll.
"""

from __future__ import annotations

import asyncio
from typing import Callable, List, Optional

from agrofacil.utils.logging import get_logger

log = get_logger(__name__)

OnlineCallback = Callable[[], None]


class ConnectivityMonitor:
    """
    Parameters
    ----------
    online : bool
        Initial level.
    probe_host, probe_port : str | None, int | None
        Endpoint checked by `probe()`. Without them `probe()` keeps the current
        level.
    probe_timeout : float
        Seconds allowed for one TCP connect attempt.
    """

    def __init__(
        self,
        online: bool = False,
        probe_host: Optional[str] = None,
        probe_port: Optional[int] = None,
        probe_timeout: float = 2.0,
    ) -> None:
        self._online = online
        self._subscribers: List[OnlineCallback] = []
        self.probe_host = probe_host
        self.probe_port = probe_port
        self.probe_timeout = probe_timeout

    def is_online(self) -> bool:
        return self._online

    def subscribe(self, callback: OnlineCallback) -> Callable[[], None]:
        """
        Register `callback` for the became-online edge. Returns an unsubscribe
        function.
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def set_online(self, online: bool) -> bool:
        """
        Update the level. Returns True when this call produced the
        offline -> online edge (and notified subscribers).
        """
        was_online, self._online = self._online, online
        if was_online == online:
            return False
        if not online:
            log.info("Connectivity lost")
            return False

        log.info("Connectivity restored", extra={"subscribers": len(self._subscribers)})
        for callback in list(self._subscribers):
            try:
                callback()
            except Exception:  # noqa: BLE001 - one subscriber must not starve the others
                log.exception("Became-online subscriber failed")
        return True

    async def probe(self) -> bool:
        """
        Check whether the remote endpoint accepts TCP connections and update
        the level accordingly. Returns the resulting level.
        """
        if not self.probe_host or not self.probe_port:
            return self._online

        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(self.probe_host, self.probe_port),
                timeout=self.probe_timeout,
            )
        except (OSError, asyncio.TimeoutError) as exc:
            log.debug(
                "Connectivity probe failed",
                extra={"host": self.probe_host, "port": self.probe_port, "error": str(exc)},
            )
            self.set_online(False)
            return False

        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass
        self.set_online(True)
        return True

    async def watch(self, interval: float, stop: Optional[asyncio.Event] = None) -> None:
        """
        Probe every `interval` seconds until `stop` is set.
        """
        stop = stop or asyncio.Event()
        while not stop.is_set():
            await self.probe()
            try:
                await asyncio.wait_for(stop.wait(), timeout=interval)
            except asyncio.TimeoutError:
                continue


__all__ = ["ConnectivityMonitor", "OnlineCallback"]
