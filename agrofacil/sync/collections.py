"""
Registry of the synchronized collections.

The three collections share one sync protocol and differ only in payload
shape, local storage key and remote table.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Tuple, Type

from agrofacil.domain.models import Cost, Product, Sale, SyncRecord

PRODUCTS = "products"
SALES = "sales"
COSTS = "costs"


@dataclass(frozen=True)
class CollectionSpec:
    name: str
    storage_key: str
    table: str
    model: Type[SyncRecord]


COLLECTIONS: Dict[str, CollectionSpec] = {
    PRODUCTS: CollectionSpec(PRODUCTS, "agrofacil_produtos", "product", Product),
    SALES: CollectionSpec(SALES, "agrofacil_vendas", "sale", Sale),
    COSTS: CollectionSpec(COSTS, "agrofacil_custos", "cost", Cost),
}

# Products go first: sales and costs may point at product ids.
RECONCILE_ORDER: Tuple[str, ...] = (PRODUCTS, COSTS, SALES)


def get_collection(name: str) -> CollectionSpec:
    try:
        return COLLECTIONS[name]
    except KeyError:
        raise ValueError(
            f"Unknown collection '{name}'. Available: {', '.join(COLLECTIONS)}"
        ) from None


__all__ = [
    "PRODUCTS",
    "SALES",
    "COSTS",
    "CollectionSpec",
    "COLLECTIONS",
    "RECONCILE_ORDER",
    "get_collection",
]
