"""
Domain: error taxonomy for the settlement engine.

Every failed operation surfaces exactly one of these to the caller:
- NotFound: a referenced order, counterparty or account does not exist.
- Conflict: double settlement, or contention on a counter/balance document.
- InvalidState: the record is not in a state that allows the operation.
- InvalidInput: negative amounts or quantities, malformed dates.
"""

from __future__ import annotations


class SettlementError(Exception):
    """Base class for business-rule failures raised by the engine."""

    code: str = "SETTLEMENT_ERROR"


class NotFound(SettlementError):
    code = "NOT_FOUND"


class Conflict(SettlementError):
    code = "CONFLICT"


class InvalidState(SettlementError):
    code = "INVALID_STATE"


class InvalidInput(SettlementError):
    code = "INVALID_INPUT"


__all__ = [
    "SettlementError",
    "NotFound",
    "Conflict",
    "InvalidState",
    "InvalidInput",
]
