"""
Sync engine: local-first persistence with best-effort remote mirroring.

`SyncStore` owns the three in-memory collections, the local store and the
remote store. Every mutation is applied in memory, tagged unsynced and
persisted locally before anything touches the network. When the connectivity
monitor reports online, exactly one remote write is attempted; on success the
record flips to synced and is persisted again.

On the became-online edge the engine replays every unsynced record
(products, then costs, then sales; insertion order within each collection) and
then reloads the remote snapshot with the anti-clobber rule: an empty remote
answer never overwrites local data.

There is no retry loop. A record whose write failed stays unsynced until the
next reconnect sweep.
"""

from __future__ import annotations

import asyncio
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    List,
    Optional,
    Set,
    Tuple,
    TypedDict,
    TypeVar,
    Union,
)

from pydantic import ValidationError as ModelValidationError

from agrofacil.domain.factories import (
    AmountInput,
    IdGenerator,
    edit_product,
    new_cost,
    new_product,
    new_sale,
)
from agrofacil.domain.models import Cost, CostCategory, Product, Sale, SyncRecord
from agrofacil.errors import RemoteUnavailable, ValidationError
from agrofacil.infrastructure.local_store import LocalStore
from agrofacil.infrastructure.remote_store import RemoteResult, RemoteStore, remote_failure
from agrofacil.sync.collections import (
    COLLECTIONS,
    COSTS,
    PRODUCTS,
    RECONCILE_ORDER,
    SALES,
    get_collection,
)
from agrofacil.sync.connectivity import ConnectivityMonitor
from agrofacil.utils.logging import get_logger

log = get_logger(__name__)

R = TypeVar("R", bound=SyncRecord)

LOAD_REMOTE = "remote"
LOAD_KEPT_EMPTY = "kept-local-empty"
LOAD_KEPT_ERROR = "kept-local-error"
LOAD_SKIPPED_OFFLINE = "skipped-offline"


class CollectionSyncStats(TypedDict):
    attempted: int
    synced: int
    failed: int
    skipped: int


class ReconcileReport(TypedDict):
    """
    Outcome of one reconciliation sweep.

    `skipped` counts records that were deleted or already confirmed before
    their turn came, and records whose write succeeded but that were edited
    or deleted locally while the write was in flight. Edited ones stay for
    the next sweep.
    """

    online: bool
    collections: Dict[str, CollectionSyncStats]
    attempted: int
    synced: int
    failed: int
    skipped: int


class OnlineSyncOutcome(TypedDict):
    reconcile: ReconcileReport
    load: Dict[str, str]


def _empty_report(online: bool) -> ReconcileReport:
    return ReconcileReport(
        online=online, collections={}, attempted=0, synced=0, failed=0, skipped=0
    )


class SyncStore:
    """
    Process-wide owner of the synchronized collections.

    Parameters
    ----------
    local : LocalStore
        Durable local storage; the collections are loaded from it on
        construction.
    monitor : ConnectivityMonitor
        Online level for mutation-time writes and became-online edge for
        reconciliation.
    remote : RemoteStore | None
        Remote backend. None keeps the store purely local.
    remote_timeout : float | None
        Seconds allowed per remote call; a timeout counts as the remote being
        unavailable. None disables the bound.
    ids : IdGenerator | None
        Identifier source, seeded with every stored id.
    """

    def __init__(
        self,
        local: LocalStore,
        monitor: ConnectivityMonitor,
        remote: Optional[RemoteStore] = None,
        remote_timeout: Optional[float] = 5.0,
        ids: Optional[IdGenerator] = None,
    ) -> None:
        self._local = local
        self._monitor = monitor
        self._remote = remote
        self._remote_timeout = remote_timeout
        self._ids = ids or IdGenerator()
        self._background: Set[asyncio.Task] = set()
        self.last_online_sync: Optional[OnlineSyncOutcome] = None

        self._collections: Dict[str, List[SyncRecord]] = {}
        for spec in COLLECTIONS.values():
            records = local.read(spec.storage_key, spec.model, [])
            self._collections[spec.name] = records
            self._ids.observe(r.id for r in records)

        self._unsubscribe = monitor.subscribe(self._on_online_edge)

    # ------------------------------------------------------------------ views

    @property
    def products(self) -> Tuple[Product, ...]:
        return tuple(self._collections[PRODUCTS])  # type: ignore[arg-type]

    @property
    def sales(self) -> Tuple[Sale, ...]:
        return tuple(self._collections[SALES])  # type: ignore[arg-type]

    @property
    def costs(self) -> Tuple[Cost, ...]:
        return tuple(self._collections[COSTS])  # type: ignore[arg-type]

    @property
    def monitor(self) -> ConnectivityMonitor:
        return self._monitor

    def records(self, collection: str) -> Tuple[SyncRecord, ...]:
        get_collection(collection)
        return tuple(self._collections[collection])

    def get(self, collection: str, record_id: int) -> Optional[SyncRecord]:
        index = self._index(collection, record_id)
        return None if index is None else self._collections[collection][index]

    def pending(self, collection: str) -> List[SyncRecord]:
        """Unsynced records of `collection`, in insertion order."""
        get_collection(collection)
        return [r for r in self._collections[collection] if not r.synced]

    # ---------------------------------------------------------------- helpers

    def _index(self, collection: str, record_id: int) -> Optional[int]:
        get_collection(collection)
        for position, record in enumerate(self._collections[collection]):
            if record.id == record_id:
                return position
        return None

    def _persist(self, collection: str) -> bool:
        spec = COLLECTIONS[collection]
        return self._local.write(spec.storage_key, self._collections[collection])

    async def _call_remote(
        self, operation: str, table: str, call: Awaitable[RemoteResult]
    ) -> RemoteResult:
        """
        Await one remote call under the configured timeout.

        Timeouts and transport errors that escape the adapter are turned into
        failed results, like any other unavailable-remote outcome.
        """
        try:
            result = await asyncio.wait_for(call, timeout=self._remote_timeout)
        except asyncio.TimeoutError:
            log.warning(
                "Remote call timed out",
                extra={"operation": operation, "table": table, "timeout": self._remote_timeout},
            )
            return remote_failure(f"{operation} on {table} timed out")
        except (RemoteUnavailable, OSError) as exc:
            log.warning(
                "Remote call failed",
                extra={"operation": operation, "table": table, "error": str(exc)},
            )
            return remote_failure(str(exc))
        except Exception as exc:  # noqa: BLE001 - sync failures never reach the caller
            log.exception(
                "Remote adapter raised unexpectedly",
                extra={"operation": operation, "table": table},
            )
            return remote_failure(f"{type(exc).__name__}: {exc}")
        if not result.get("ok"):
            log.warning(
                "Remote call unsuccessful",
                extra={"operation": operation, "table": table, "error": result.get("error")},
            )
        return result

    def _mark_synced(self, collection: str, sent: SyncRecord) -> bool:
        """
        Flip the flag of the record that was sent, if it is still the current
        version. Returns True when the current version is synced afterwards.
        """
        index = self._index(collection, sent.id)
        if index is None:
            return False
        current = self._collections[collection][index]
        if not current.same_content(sent):
            return False
        if not current.synced:
            self._collections[collection][index] = current.as_synced()
        return True

    def _schedule(self, factory: Callable[..., Awaitable[Any]], *args: Any) -> asyncio.Task:
        loop = asyncio.get_running_loop()
        task = loop.create_task(factory(*args))
        self._background.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if not task.cancelled() and task.exception() is not None:
            log.error("Background sync task failed", exc_info=task.exception())

    def _on_online_edge(self) -> None:
        try:
            self._schedule(self.on_became_online)
        except RuntimeError:
            log.warning("No running event loop; reconcile deferred to next reconnect")

    # -------------------------------------------------------------- mutations

    async def record_mutation(self, collection: str, record: R) -> R:
        """
        Apply `record` locally (append for a new id, replace in place for an
        existing one), persist it unsynced, then make a single remote attempt
        if online. Returns the record as it ends up in memory.
        """
        spec = get_collection(collection)
        if not isinstance(record, spec.model):
            raise TypeError(
                f"{collection} holds {spec.model.__name__}, got {type(record).__name__}"
            )

        record = record.as_unsynced()
        items = self._collections[collection]
        index = self._index(collection, record.id)
        previous: Optional[SyncRecord] = None
        if index is None:
            items.append(record)
        else:
            previous = items[index]
            items[index] = record
        self._ids.observe([record.id])
        self._persist(collection)

        remote = self._remote
        if remote is None or not self._monitor.is_online():
            log.debug(
                "Offline; mutation left for reconcile",
                extra={"collection": collection, "id": record.id},
            )
            return record

        if previous is not None and previous.synced:
            before = previous.remote_payload()
            changed = {k: v for k, v in record.remote_payload().items() if before.get(k) != v}
            result = await self._call_remote(
                "update", spec.table, remote.update_by_id(spec.table, record.id, changed)
            )
        else:
            result = await self._call_remote(
                "insert", spec.table, remote.insert(spec.table, record.remote_payload())
            )

        if result.get("ok") and self._mark_synced(collection, record):
            self._persist(collection)
            current = self.get(collection, record.id)
            return current if current is not None else record  # type: ignore[return-value]
        return record

    async def delete(self, collection: str, record_id: int) -> bool:
        """
        Remove a record locally and, when online, schedule a fire-and-forget
        remote delete. A failed remote delete does not restore the record.
        """
        spec = get_collection(collection)
        index = self._index(collection, record_id)
        if index is None:
            return False
        self._collections[collection].pop(index)
        self._persist(collection)

        remote = self._remote
        if remote is not None and self._monitor.is_online():
            self._schedule(self._remote_delete, remote, spec.table, record_id)
        return True

    async def _remote_delete(self, remote: RemoteStore, table: str, record_id: int) -> None:
        result = await self._call_remote("delete", table, remote.delete_by_id(table, record_id))
        if result.get("ok"):
            log.debug("Remote delete confirmed", extra={"table": table, "id": record_id})

    async def create_product(self, name: Optional[str], price: AmountInput) -> Product:
        return await self.record_mutation(PRODUCTS, new_product(self._ids, name, price))

    async def update_product(
        self,
        product_id: int,
        name: Optional[str] = None,
        price: Optional[AmountInput] = None,
    ) -> Product:
        current = self.get(PRODUCTS, product_id)
        if current is None:
            raise ValidationError(f"Product {product_id} not found")
        edited = edit_product(current, name=name, price=price)  # type: ignore[arg-type]
        return await self.record_mutation(PRODUCTS, edited)

    async def delete_product(self, product_id: int) -> bool:
        return await self.delete(PRODUCTS, product_id)

    async def create_sale(self, product_id: Union[int, str], quantity: Union[int, str]) -> Sale:
        try:
            key = int(str(product_id).strip())
        except ValueError as exc:
            raise ValidationError(f"Invalid product id {product_id!r}") from exc
        product = self.get(PRODUCTS, key)
        if product is None:
            raise ValidationError(f"Product {key} not found")
        sale = new_sale(self._ids, product, quantity)  # type: ignore[arg-type]
        return await self.record_mutation(SALES, sale)

    async def delete_sale(self, sale_id: int) -> bool:
        return await self.delete(SALES, sale_id)

    async def create_cost(
        self,
        description: Optional[str],
        amount: AmountInput,
        category: Union[str, CostCategory, None],
    ) -> Cost:
        return await self.record_mutation(COSTS, new_cost(self._ids, description, amount, category))

    async def delete_cost(self, cost_id: int) -> bool:
        return await self.delete(COSTS, cost_id)

    # ---------------------------------------------------------- reconciliation

    async def reconcile(self) -> ReconcileReport:
        """
        Replay every unsynced record to the remote store.

        Collections are swept products -> costs -> sales, each in insertion
        order. Each record gets one upsert of its current version; records
        deleted or already confirmed since the sweep started are skipped. The
        flag flips on success. The sweep stops early if connectivity is lost.
        """
        remote = self._remote
        if remote is None or not self._monitor.is_online():
            log.info("Reconcile skipped: offline")
            return _empty_report(online=False)

        report = _empty_report(online=True)
        log.info(
            "[RECONCILE START]",
            extra={"pending": {name: len(self.pending(name)) for name in RECONCILE_ORDER}},
        )

        for name in RECONCILE_ORDER:
            spec = COLLECTIONS[name]
            pending = self.pending(name)
            stats = CollectionSyncStats(attempted=0, synced=0, failed=0, skipped=0)
            changed = False
            for queued in pending:
                if not self._monitor.is_online():
                    stats["failed"] += 1
                    continue
                # Earlier sends may have yielded; a deleted record must not be pushed back.
                record = self.get(name, queued.id)
                if record is None or record.synced:
                    stats["skipped"] += 1
                    continue
                stats["attempted"] += 1
                result = await self._call_remote(
                    "insert", spec.table, remote.insert(spec.table, record.remote_payload())
                )
                if not result.get("ok"):
                    stats["failed"] += 1
                elif self._mark_synced(name, record):
                    stats["synced"] += 1
                    changed = True
                else:
                    stats["skipped"] += 1
            if changed:
                self._persist(name)
            report["collections"][name] = stats
            for key in ("attempted", "synced", "failed", "skipped"):
                report[key] += stats[key]  # type: ignore[literal-required]

        log.info(
            "[RECONCILE COMPLETE]",
            extra={
                "attempted": report["attempted"],
                "synced": report["synced"],
                "failed": report["failed"],
                "skipped": report["skipped"],
            },
        )
        return report

    def _merge_remote(self, collection: str, remote_records: List[SyncRecord]) -> List[SyncRecord]:
        # Unconfirmed local writes survive a remote reload.
        merged = list(remote_records)
        positions = {r.id: i for i, r in enumerate(merged)}
        for record in self._collections[collection]:
            if record.synced:
                continue
            if record.id in positions:
                merged[positions[record.id]] = record
            else:
                merged.append(record)
        return merged

    async def bootstrap_load(self) -> Dict[str, str]:
        """
        Load the remote snapshot of every collection.

        A non-empty answer replaces the local collection, so remote wins.
        Local records that are still unsynced are the one exception: they
        stay (overlaid by id or appended) so the next sweep can push them.
        That makes the result a superset of the remote rows rather than
        exactly those rows. An empty answer or an error keeps local state
        untouched.

        Returns
        -------
        dict
            Outcome per collection: "remote", "kept-local-empty",
            "kept-local-error" or "skipped-offline".
        """
        remote = self._remote
        if remote is None or not self._monitor.is_online():
            log.info("Remote load skipped: offline")
            return {name: LOAD_SKIPPED_OFFLINE for name in RECONCILE_ORDER}

        outcomes: Dict[str, str] = {}
        for name in RECONCILE_ORDER:
            spec = COLLECTIONS[name]
            result = await self._call_remote(
                "select_all", spec.table, remote.select_all(spec.table)
            )
            if not result.get("ok"):
                outcomes[name] = LOAD_KEPT_ERROR
                continue

            rows = result.get("rows") or []
            if not rows:
                # An empty answer may be a misconfigured backend rather than an
                # empty collection; local data is kept.
                log.info("Remote returned no rows; keeping local data", extra={"collection": name})
                outcomes[name] = LOAD_KEPT_EMPTY
                continue

            remote_records: List[SyncRecord] = []
            for row in rows:
                try:
                    remote_records.append(spec.model.from_remote_row(row))
                except ModelValidationError as exc:
                    log.warning(
                        "Skipping invalid remote row",
                        extra={
                            "collection": name,
                            "id": row.get("id"),
                            "errors": exc.error_count(),
                        },
                    )
            if not remote_records:
                outcomes[name] = LOAD_KEPT_ERROR
                continue

            self._collections[name] = self._merge_remote(name, remote_records)
            self._ids.observe(r.id for r in remote_records)
            self._persist(name)
            outcomes[name] = LOAD_REMOTE
            log.info(
                "Loaded remote snapshot",
                extra={"collection": name, "rows": len(remote_records)},
            )
        return outcomes

    async def on_became_online(self) -> OnlineSyncOutcome:
        """Reconnect handler: push pending records, then reload the snapshot."""
        report = await self.reconcile()
        load = await self.bootstrap_load()
        self.last_online_sync = OnlineSyncOutcome(reconcile=report, load=load)
        return self.last_online_sync

    # -------------------------------------------------------------- lifecycle

    async def drain(self) -> None:
        """Wait for scheduled background work (sweeps, remote deletes)."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def close(self) -> None:
        self._unsubscribe()
        await self.drain()
        if self._remote is not None:
            await self._remote.close()


__all__ = [
    "SyncStore",
    "ReconcileReport",
    "CollectionSyncStats",
    "OnlineSyncOutcome",
    "LOAD_REMOTE",
    "LOAD_KEPT_EMPTY",
    "LOAD_KEPT_ERROR",
    "LOAD_SKIPPED_OFFLINE",
]
