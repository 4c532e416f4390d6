"""
Cutoff window repository (persistence).

The window is a singleton document: `cutoff/current`.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from domain.cutoff import CutoffWindow
from repositories.document_store import DocumentStore, Transaction
from repositories.serialization import (
    optional_iso_utc,
    optional_utc_datetime,
    parse_utc_datetime,
    to_iso_utc,
)

_CUTOFF: str = "cutoff"
_CURRENT: str = "current"


def _row_to_window(row: Mapping[str, Any]) -> CutoffWindow:
    return CutoffWindow(
        window_start=parse_utc_datetime(row["window_start_utc"]),
        is_closed=bool(row.get("is_closed", False)),
        closed_at=optional_utc_datetime(row.get("closed_at_utc")),
        closed_by=row.get("closed_by"),
        closed_by_name=row.get("closed_by_name"),
    )


def _window_to_row(window: CutoffWindow) -> dict[str, Any]:
    return {
        "window_start_utc": to_iso_utc(window.window_start, name="window_start"),
        "is_closed": window.is_closed,
        "closed_at_utc": optional_iso_utc(window.closed_at, name="closed_at"),
        "closed_by": window.closed_by,
        "closed_by_name": window.closed_by_name,
    }


def read_window(txn: Transaction) -> Optional[CutoffWindow]:
    row = txn.get(_CUTOFF, _CURRENT)
    if row is None:
        return None
    return _row_to_window(row)


def write_window(txn: Transaction, window: CutoffWindow) -> None:
    txn.set(_CUTOFF, _CURRENT, _window_to_row(window))


def get_window(store: DocumentStore) -> Optional[CutoffWindow]:
    row = store.get(_CUTOFF, _CURRENT)
    if row is None:
        return None
    return _row_to_window(row)


__all__ = ["read_window", "write_window", "get_window"]
