"""
Domain models for AgroFácil.

Every record shares the `SyncRecord` base: a client-generated integer id plus
the local-only `synced` flag. Models are frozen; a mutation is a
`model_copy(update=...)` that yields a new record.

Field aliases accept the payloads written by the legacy web front end
(Portuguese field names and cost categories) so existing local data loads
without a migration step.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Mapping, Type, TypeVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

R = TypeVar("R", bound="SyncRecord")

_LEGACY_CATEGORIES = {
    "insumo": "supply",
    "transporte": "transport",
    "outro": "other",
}


class CostCategory(str, Enum):
    SUPPLY = "supply"
    TRANSPORT = "transport"
    OTHER = "other"


class SyncRecord(BaseModel):
    """
    Base for records that are mirrored to the remote backend.
    """

    id: int = Field(..., description="Client-generated identifier, never reused.")
    synced: bool = Field(False, description="True once the remote write was confirmed.")

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        use_enum_values=True,
    )

    def remote_payload(self) -> Dict[str, Any]:
        """Row shape sent to the remote table (no local-only flag)."""
        return self.model_dump(exclude={"synced"})

    def as_synced(self: R) -> R:
        return self.model_copy(update={"synced": True})

    def as_unsynced(self: R) -> R:
        return self.model_copy(update={"synced": False})

    def same_content(self, other: "SyncRecord") -> bool:
        """Compare records ignoring the sync flag."""
        return type(self) is type(other) and self.remote_payload() == other.remote_payload()

    @classmethod
    def from_remote_row(cls: Type[R], row: Mapping[str, Any]) -> R:
        """Build a synced record from a remote row."""
        data = dict(row)
        data["synced"] = True
        return cls.model_validate(data)


class Product(SyncRecord):
    name: str = Field(..., min_length=1, validation_alias=AliasChoices("name", "nome"))
    price: Decimal = Field(..., ge=0, validation_alias=AliasChoices("price", "preco"))


class Sale(SyncRecord):
    """
    A sale keeps a snapshot of the product it was made from. Neither
    `product_name` nor `total_amount` follow later product edits.
    """

    product_id: int = Field(
        ..., validation_alias=AliasChoices("product_id", "productId", "produtoId")
    )
    product_name: str = Field(
        ..., validation_alias=AliasChoices("product_name", "productName", "produtoNome")
    )
    quantity: int = Field(..., gt=0, validation_alias=AliasChoices("quantity", "quantidade"))
    total_amount: Decimal = Field(
        ..., ge=0, validation_alias=AliasChoices("total_amount", "totalAmount", "total_venda")
    )
    created_at: datetime = Field(
        ..., validation_alias=AliasChoices("created_at", "createdAt")
    )


class Cost(SyncRecord):
    description: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("description", "descricao")
    )
    amount: Decimal = Field(..., ge=0, validation_alias=AliasChoices("amount", "valor"))
    category: CostCategory = Field(
        ..., validation_alias=AliasChoices("category", "tipo")
    )
    occurred_at: datetime = Field(
        ..., validation_alias=AliasChoices("occurred_at", "occurredAt", "data")
    )

    @field_validator("category", mode="before")
    @classmethod
    def _normalize_category(cls, value: Any) -> Any:
        if isinstance(value, str):
            lowered = value.strip().lower()
            return _LEGACY_CATEGORIES.get(lowered, lowered)
        return value


__all__ = [
    "CostCategory",
    "SyncRecord",
    "Product",
    "Sale",
    "Cost",
]
