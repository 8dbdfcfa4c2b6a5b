from __future__ import annotations

import json
import logging
from decimal import Decimal
from pathlib import Path

import pytest

from agrofacil.domain.models import Product
from agrofacil.errors import StorageFault
from agrofacil.infrastructure.local_store import FileKeyValueStorage, LocalStore

KEY = "agrofacil_produtos"


def _products(count: int) -> list[Product]:
    return [Product(id=i, name=f"P{i}", price=Decimal("1.50")) for i in range(1, count + 1)]


def test_records_survive_a_fresh_store_instance(tmp_path: Path) -> None:
    LocalStore(FileKeyValueStorage(tmp_path)).write(KEY, _products(3))

    reopened = LocalStore(FileKeyValueStorage(tmp_path))
    loaded = reopened.read(KEY, Product, [])

    assert [p.id for p in loaded] == [1, 2, 3]
    assert loaded[0].price == Decimal("1.50")
    assert all(p.synced is False for p in loaded)


def test_missing_key_returns_fallback_copy(local_store: LocalStore) -> None:
    fallback = _products(1)
    loaded = local_store.read(KEY, Product, fallback)
    assert loaded == fallback
    assert loaded is not fallback


def test_corrupt_payload_degrades_to_fallback(storage_dir: Path, caplog) -> None:
    storage_dir.mkdir(parents=True)
    (storage_dir / f"{KEY}.json").write_text("{not json", encoding="utf-8")
    store = LocalStore(FileKeyValueStorage(storage_dir))

    with caplog.at_level(logging.WARNING):
        loaded = store.read(KEY, Product, [])

    assert loaded == []
    assert "Corrupt local payload" in caplog.text


def test_non_list_payload_degrades_to_fallback(storage_dir: Path) -> None:
    storage_dir.mkdir(parents=True)
    (storage_dir / f"{KEY}.json").write_text(json.dumps({"id": 1}), encoding="utf-8")
    assert LocalStore(FileKeyValueStorage(storage_dir)).read(KEY, Product, []) == []


def test_invalid_records_are_skipped_individually(storage_dir: Path) -> None:
    storage_dir.mkdir(parents=True)
    payload = [
        {"id": 1, "name": "Milho", "price": "2.00", "synced": True},
        {"id": 2, "name": "Sem preço"},
        {"id": 3, "nome": "Feijão", "preco": 7},
    ]
    (storage_dir / f"{KEY}.json").write_text(json.dumps(payload), encoding="utf-8")

    loaded = LocalStore(FileKeyValueStorage(storage_dir)).read(KEY, Product, [])

    assert [p.id for p in loaded] == [1, 3]
    assert loaded[0].synced is True
    assert loaded[1].synced is False


def test_quota_exceeded_write_is_swallowed(tmp_path: Path, caplog) -> None:
    store = LocalStore(FileKeyValueStorage(tmp_path, quota_bytes=64))

    with caplog.at_level(logging.ERROR):
        ok = store.write(KEY, _products(10))

    assert ok is False
    assert "Local write failed" in caplog.text
    assert not (tmp_path / f"{KEY}.json").exists()


def test_quota_counts_other_keys_but_not_the_value_being_replaced(tmp_path: Path) -> None:
    storage = FileKeyValueStorage(tmp_path, quota_bytes=20)
    storage.set("a", "x" * 10)
    storage.set("a", "y" * 15)
    with pytest.raises(StorageFault):
        storage.set("b", "z" * 10)
    assert storage.get("a") == "y" * 15


def test_read_fault_from_storage_degrades_to_fallback() -> None:
    class _BrokenStorage:
        def get(self, key: str):
            raise StorageFault("disk unplugged")

        def set(self, key: str, value: str) -> None:
            raise StorageFault("disk unplugged")

    store = LocalStore(_BrokenStorage())
    fallback = _products(2)

    assert store.read(KEY, Product, fallback) == fallback
    assert store.write(KEY, fallback) is False


def test_storage_rejects_path_like_keys(tmp_path: Path) -> None:
    storage = FileKeyValueStorage(tmp_path)
    with pytest.raises(StorageFault):
        storage.set("../escape", "[]")


def test_undecodable_payload_degrades_to_fallback(storage_dir: Path) -> None:
    storage_dir.mkdir(parents=True)
    (storage_dir / f"{KEY}.json").write_bytes(b"[\xff\xfe garbage")
    storage = FileKeyValueStorage(storage_dir)

    with pytest.raises(StorageFault):
        storage.get(KEY)
    assert LocalStore(storage).read(KEY, Product, []) == []


def test_unexpected_backend_read_error_degrades_to_fallback() -> None:
    class _FlakyStorage:
        def get(self, key: str):
            raise RuntimeError("backend bug")

        def set(self, key: str, value: str) -> None:
            pass

    fallback = _products(1)
    assert LocalStore(_FlakyStorage()).read(KEY, Product, fallback) == fallback
