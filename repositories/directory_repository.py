"""
Counterparty directory and product catalog (persistence).

Both are maintained by CRUD screens outside this service. The engine reads
them; the save_* helpers exist for seeding and tests. The one write the engine
performs is the purchase-price write-back during purchase settlement.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional

from domain.account import AccountSide
from domain.directory import Counterparty, Product
from repositories.document_store import DocumentStore, Transaction
from repositories.serialization import decimal_to_str, to_decimal

_COUNTERPARTIES: str = "counterparties"
_PRODUCTS: str = "products"


def _counterparty_doc_id(side: AccountSide, counterparty_id: str) -> str:
    return f"{side.value}:{counterparty_id}"


def _row_to_counterparty(row: Mapping[str, Any]) -> Counterparty:
    return Counterparty(
        counterparty_id=str(row["counterparty_id"]),
        side=AccountSide(str(row["side"])),
        name=str(row.get("name") or ""),
        active=bool(row.get("active", True)),
    )


def _row_to_product(row: Mapping[str, Any]) -> Product:
    purchase_price = row.get("purchase_price")
    return Product(
        product_id=str(row["product_id"]),
        product_code=str(row["product_code"]),
        name=str(row.get("name") or ""),
        category=str(row.get("category") or ""),
        supplier_id=row.get("supplier_id"),
        purchase_price=to_decimal(purchase_price) if purchase_price is not None else None,
    )


def read_counterparty(txn: Transaction, side: AccountSide, counterparty_id: str) -> Optional[Counterparty]:
    row = txn.get(_COUNTERPARTIES, _counterparty_doc_id(side, counterparty_id))
    if row is None:
        return None
    return _row_to_counterparty(row)


def get_counterparty(store: DocumentStore, side: AccountSide, counterparty_id: str) -> Optional[Counterparty]:
    row = store.get(_COUNTERPARTIES, _counterparty_doc_id(side, counterparty_id))
    if row is None:
        return None
    return _row_to_counterparty(row)


def list_counterparties(store: DocumentStore, side: AccountSide) -> List[Counterparty]:
    rows = store.query(_COUNTERPARTIES, [("side", "==", side.value)], order_by="name")
    return [_row_to_counterparty(row) for row in rows]


def save_counterparty(store: DocumentStore, counterparty: Counterparty) -> None:
    store.put(
        _COUNTERPARTIES,
        _counterparty_doc_id(counterparty.side, counterparty.counterparty_id),
        {
            "counterparty_id": counterparty.counterparty_id,
            "side": counterparty.side.value,
            "name": counterparty.name,
            "active": counterparty.active,
        },
    )


def read_product(txn: Transaction, product_id: str) -> Optional[Product]:
    row = txn.get(_PRODUCTS, product_id)
    if row is None:
        return None
    return _row_to_product(row)


def get_product(store: DocumentStore, product_id: str) -> Optional[Product]:
    row = store.get(_PRODUCTS, product_id)
    if row is None:
        return None
    return _row_to_product(row)


def product_catalog(store: DocumentStore) -> Dict[str, Product]:
    """Snapshot of the whole catalog keyed by product id (reporting use)."""

    return {product.product_id: product for product in map(_row_to_product, store.query(_PRODUCTS))}


def save_product(store: DocumentStore, product: Product) -> None:
    store.put(
        _PRODUCTS,
        product.product_id,
        {
            "product_id": product.product_id,
            "product_code": product.product_code,
            "name": product.name,
            "category": product.category,
            "supplier_id": product.supplier_id,
            "purchase_price": decimal_to_str(product.purchase_price) if product.purchase_price is not None else None,
        },
    )


def update_purchase_price(txn: Transaction, product_id: str, purchase_price: Decimal) -> None:
    txn.update(_PRODUCTS, product_id, {"purchase_price": decimal_to_str(purchase_price)})


__all__ = [
    "read_counterparty",
    "get_counterparty",
    "list_counterparties",
    "save_counterparty",
    "read_product",
    "get_product",
    "product_catalog",
    "save_product",
    "update_purchase_price",
]
