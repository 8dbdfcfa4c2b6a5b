"""
Durable local storage for AgroFácil.

Two layers:

- `KeyValueStorage`: the host's persistent string store (`get`/`set`).
  `FileKeyValueStorage` keeps one JSON file per key under a directory and
  enforces a byte quota, mirroring a browser's storage quota.
- `LocalStore`: the fault-tolerant record layer on top. Read faults degrade to
  the caller's fallback and write faults are logged and swallowed, so the
  in-memory state stays authoritative for the session even if persistence
  fails.
"""

from __future__ import annotations

import json
import os
import re
import tempfile
from pathlib import Path
from typing import List, Optional, Protocol, Sequence, Type, TypeVar, runtime_checkable

from pydantic import ValidationError as ModelValidationError

from agrofacil.domain.models import SyncRecord
from agrofacil.errors import StorageFault
from agrofacil.utils.logging import get_logger

log = get_logger(__name__)

R = TypeVar("R", bound=SyncRecord)

_SAFE_KEY = re.compile(r"^[A-Za-z0-9_.-]+$")


@runtime_checkable
class KeyValueStorage(Protocol):
    """Persistent key-value storage of serialized payloads."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...


class FileKeyValueStorage:
    """
    Directory-backed key-value storage.

    Parameters
    ----------
    directory : Path | str
        Where `<key>.json` files live. Created on first write.
    quota_bytes : int | None
        Maximum total size of all stored values. None disables the check.
    """

    def __init__(self, directory: Path | str, quota_bytes: Optional[int] = None) -> None:
        self.directory = Path(directory)
        self.quota_bytes = quota_bytes

    def _path(self, key: str) -> Path:
        if not _SAFE_KEY.match(key):
            raise StorageFault(f"Invalid storage key {key!r}")
        return self.directory / f"{key}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            raise StorageFault(f"Cannot read {path}: {exc}") from exc

    def _used_bytes(self, exclude: Path) -> int:
        if not self.directory.exists():
            return 0
        return sum(
            p.stat().st_size for p in self.directory.glob("*.json") if p != exclude
        )

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        encoded = value.encode("utf-8")
        try:
            if self.quota_bytes is not None:
                used = self._used_bytes(exclude=path)
                if used + len(encoded) > self.quota_bytes:
                    raise StorageFault(
                        f"Storage quota exceeded writing {key!r} "
                        f"({used + len(encoded)} > {self.quota_bytes} bytes)"
                    )
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{key}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(encoded)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise StorageFault(f"Cannot write {path}: {exc}") from exc


class LocalStore:
    """
    Record-level, fault-tolerant access to a `KeyValueStorage`.
    """

    def __init__(self, storage: KeyValueStorage) -> None:
        self._storage = storage

    def read(self, key: str, model: Type[R], fallback: Sequence[R] = ()) -> List[R]:
        """
        Load the ordered records stored under `key`.

        Missing keys, corrupt payloads and storage faults return a copy of
        `fallback`. Individual records that fail validation are skipped.
        """
        try:
            raw = self._storage.get(key)
        except Exception:  # noqa: BLE001 - any backend read fault degrades to the fallback
            log.warning("Local read failed; using fallback", exc_info=True, extra={"key": key})
            return list(fallback)
        if raw is None:
            return list(fallback)

        try:
            payload = json.loads(raw)
        except ValueError:
            log.warning("Corrupt local payload; using fallback", extra={"key": key})
            return list(fallback)
        if not isinstance(payload, list):
            log.warning(
                "Local payload is not a list; using fallback",
                extra={"key": key, "type": type(payload).__name__},
            )
            return list(fallback)

        records: List[R] = []
        for position, item in enumerate(payload):
            try:
                records.append(model.model_validate(item))
            except ModelValidationError as exc:
                log.warning(
                    "Skipping invalid local record",
                    extra={"key": key, "position": position, "errors": exc.error_count()},
                )
        return records

    def write(self, key: str, records: Sequence[SyncRecord]) -> bool:
        """
        Persist `records` under `key`. Returns False when persistence failed.
        """
        try:
            raw = json.dumps([r.model_dump(mode="json") for r in records])
            self._storage.set(key, raw)
        except (StorageFault, TypeError, ValueError):
            log.error(
                "Local write failed; keeping in-memory state",
                exc_info=True,
                extra={"key": key, "records": len(records)},
            )
            return False
        return True


__all__ = ["KeyValueStorage", "FileKeyValueStorage", "LocalStore"]
