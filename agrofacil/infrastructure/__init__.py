"""
Infrastructure package for AgroFácil.

Centralizes I/O concerns: durable local storage and the remote Postgres record
store. Keep this layer focused on I/O and resource management, decoupled from
sync policy.
"""

from agrofacil.infrastructure.db_factory import build_dsn, init_remote_schema
from agrofacil.infrastructure.local_store import FileKeyValueStorage, KeyValueStorage, LocalStore
from agrofacil.infrastructure.remote_store import (
    PostgresRemoteStore,
    RemoteResult,
    RemoteStore,
)

__all__ = [
    "build_dsn",
    "init_remote_schema",
    "FileKeyValueStorage",
    "KeyValueStorage",
    "LocalStore",
    "PostgresRemoteStore",
    "RemoteResult",
    "RemoteStore",
]
