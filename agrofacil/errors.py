"""
Error taxonomy for AgroFácil.

- StorageFault: local read/write failure. Recovered inside the local store.
- RemoteUnavailable: network/backend failure. Recovered inside the sync engine;
  the affected record simply stays unsynced.
- ValidationError: malformed user input. Raised to the caller before any record
  is constructed.
"""

from __future__ import annotations


class AgroFacilError(Exception):
    """Base class for all application errors."""


class StorageFault(AgroFacilError):
    """Durable local storage could not be read or written."""


class RemoteUnavailable(AgroFacilError):
    """The remote backend could not complete a call."""


class ValidationError(AgroFacilError, ValueError):
    """User input was rejected before a record was built."""


__all__ = [
    "AgroFacilError",
    "StorageFault",
    "RemoteUnavailable",
    "ValidationError",
]
