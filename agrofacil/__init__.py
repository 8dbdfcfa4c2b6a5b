"""
AgroFácil - offline-first record keeping for products, sales and costs.

Every change is written to durable local storage first and mirrored to a
remote Postgres backend when it is reachable:

- Local store with fault-tolerant reads/writes and a storage quota
- Remote record store with upsert-by-id writes and explicit result values
- Sync engine with a single mutation-time attempt and a reconcile sweep on
  every reconnect
- Connectivity monitor exposing an online level and a became-online edge
"""

from __future__ import annotations

__version__ = "1.0.0"
__license__ = "MIT"

# Public API exports
from agrofacil.config import Settings, get_settings
from agrofacil.domain.models import Cost, CostCategory, Product, Sale
from agrofacil.errors import RemoteUnavailable, StorageFault, ValidationError
from agrofacil.orchestrator import build_store, store_session
from agrofacil.sync.connectivity import ConnectivityMonitor
from agrofacil.sync.engine import ReconcileReport, SyncStore
from agrofacil.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Domain
    "Cost",
    "CostCategory",
    "Product",
    "Sale",
    # Errors
    "RemoteUnavailable",
    "StorageFault",
    "ValidationError",
    # Sync
    "ConnectivityMonitor",
    "ReconcileReport",
    "SyncStore",
    "build_store",
    "store_session",
    # Logging
    "configure_logging",
    "get_logger",
]
