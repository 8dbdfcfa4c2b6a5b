"""
Domain package for AgroFácil.

Exports the record models and the validated constructors used by the sync
engine. Keep this package focused on data definitions and validation concerns.
"""

from agrofacil.domain.factories import (
    IdGenerator,
    edit_product,
    new_cost,
    new_product,
    new_sale,
    parse_amount,
)
from agrofacil.domain.models import Cost, CostCategory, Product, Sale, SyncRecord

__all__ = [
    "Cost",
    "CostCategory",
    "Product",
    "Sale",
    "SyncRecord",
    "IdGenerator",
    "edit_product",
    "new_cost",
    "new_product",
    "new_sale",
    "parse_amount",
]
