"""
Database connection factory utilities for AgroFácil.

Builds the remote DSN from settings, creates the asyncpg pool used by the
remote record store, and bootstraps the remote schema over a plain psycopg
connection.

The admin connection retries transient failures using tenacity. The sync path
never retries: a failed remote call leaves the record unsynced until the next
reconnect sweep.
"""

from __future__ import annotations

from typing import Optional

import asyncpg
import psycopg
from psycopg import Connection
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from agrofacil.config import Settings, get_settings
from agrofacil.utils.logging import get_logger

log = get_logger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS public.product (
    id BIGINT PRIMARY KEY,
    name TEXT NOT NULL,
    price NUMERIC(12, 2) NOT NULL CHECK (price >= 0)
);

CREATE TABLE IF NOT EXISTS public.sale (
    id BIGINT PRIMARY KEY,
    product_id BIGINT NOT NULL,
    product_name TEXT NOT NULL,
    quantity INTEGER NOT NULL CHECK (quantity > 0),
    total_amount NUMERIC(12, 2) NOT NULL,
    created_at TIMESTAMPTZ NOT NULL
);

CREATE TABLE IF NOT EXISTS public.cost (
    id BIGINT PRIMARY KEY,
    description TEXT NOT NULL,
    amount NUMERIC(12, 2) NOT NULL CHECK (amount >= 0),
    category TEXT NOT NULL CHECK (category IN ('supply', 'transport', 'other')),
    occurred_at TIMESTAMPTZ NOT NULL
);
"""


def build_dsn(settings: Optional[Settings] = None) -> str:
    """Compose a DSN string from settings."""
    settings = settings or get_settings()
    return (
        f"postgresql://{settings.db_user}:{settings.db_password}"
        f"@{settings.db_host}:{settings.db_port}/{settings.db_name}"
    )


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((psycopg.OperationalError, psycopg.InterfaceError)),
    reraise=True,
)
def get_sync_connection(dsn: Optional[str] = None) -> Connection:
    """
    Acquire a dedicated synchronous connection with automatic retry.

    Retries up to 3 times with exponential backoff for transient connection errors.
    Only used for administrative tasks such as schema bootstrap.

    Raises
    ------
    psycopg.OperationalError
        If connection fails after all retry attempts.
    """
    return psycopg.connect(dsn or build_dsn())


def init_remote_schema(dsn: Optional[str] = None) -> None:
    """
    Create the product/sale/cost tables if they do not exist yet.
    """
    with get_sync_connection(dsn) as conn:
        with conn.cursor() as cur:
            cur.execute(SCHEMA_SQL)
        conn.commit()
    log.info("Remote schema ready", extra={"tables": ["product", "sale", "cost"]})


async def create_async_pool(dsn: str, min_size: int = 1, max_size: int = 4) -> asyncpg.Pool:
    """
    Create an asyncpg pool for the remote record store.

    Parameters
    ----------
    dsn : str
        Postgres connection string.
    min_size : int
        Minimum number of idle connections to keep.
    max_size : int
        Maximum total connections in the pool.
    """
    return await asyncpg.create_pool(dsn=dsn, min_size=min_size, max_size=max_size)


__all__ = [
    "SCHEMA_SQL",
    "build_dsn",
    "get_sync_connection",
    "init_remote_schema",
    "create_async_pool",
]
