"""
Synchronization core for AgroFácil.

Exports the sync engine, the connectivity monitor and the collection registry.
"""

from agrofacil.sync.collections import (
    COLLECTIONS,
    COSTS,
    PRODUCTS,
    RECONCILE_ORDER,
    SALES,
    CollectionSpec,
)
from agrofacil.sync.connectivity import ConnectivityMonitor
from agrofacil.sync.engine import ReconcileReport, SyncStore

__all__ = [
    "COLLECTIONS",
    "COSTS",
    "PRODUCTS",
    "RECONCILE_ORDER",
    "SALES",
    "CollectionSpec",
    "ConnectivityMonitor",
    "ReconcileReport",
    "SyncStore",
]
