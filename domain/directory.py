"""
Domain: Collaborator records read by the engine.

Counterparties (customers and suppliers) and catalog products are managed by
CRUD screens elsewhere. The engine only reads them: names and the active flag
for counterparties; code, category, supplier and purchase price for products.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from .account import AccountSide


@dataclass(frozen=True, slots=True)
class Counterparty:
    counterparty_id: str
    side: AccountSide
    name: str
    active: bool = True


@dataclass(frozen=True, slots=True)
class Product:
    product_id: str
    product_code: str
    name: str
    category: str
    supplier_id: Optional[str] = None
    purchase_price: Optional[Decimal] = None
