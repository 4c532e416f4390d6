"""
Cutoff window service.

The operator closes the window when the regular ordering period ends; orders
placed afterwards are classified `additional`. Resetting opens a new cycle.

A window that was never stored counts as OPEN from 00:00 of the current
business day.
"""

from __future__ import annotations

import logging
from datetime import datetime, tzinfo
from typing import Optional

from domain.actor import Actor, SYSTEM_ACTOR
from domain.cutoff import CutoffWindow
from domain.time import start_of_business_day, utc_now
from repositories import cutoff_repository
from repositories.client import get_store
from repositories.document_store import DocumentStore, Transaction
from services.config import EngineSettings, get_settings

logger = logging.getLogger(__name__)


def default_window(now: datetime, tz: tzinfo) -> CutoffWindow:
    return CutoffWindow.opened(start_of_business_day(now, tz))


def read_window_or_default(txn: Transaction, *, now: datetime, tz: tzinfo) -> CutoffWindow:
    """Transactional read used by order placement."""

    return cutoff_repository.read_window(txn) or default_window(now, tz)


def current_window(
    *,
    store: Optional[DocumentStore] = None,
    now: Optional[datetime] = None,
    settings: Optional[EngineSettings] = None,
) -> CutoffWindow:
    store = store or get_store()
    settings = settings or get_settings()
    moment = now or utc_now()
    return cutoff_repository.get_window(store) or default_window(moment, settings.business_timezone)


def _write_window(store: DocumentStore, settings: EngineSettings, label: str, change) -> CutoffWindow:
    def _work(txn: Transaction) -> CutoffWindow:
        window = change(cutoff_repository.read_window(txn))
        cutoff_repository.write_window(txn, window)
        return window

    return store.run_transaction(_work, max_attempts=settings.transaction_max_attempts, label=label)


def open_window(
    actor: Actor = SYSTEM_ACTOR,
    *,
    store: Optional[DocumentStore] = None,
    now: Optional[datetime] = None,
    settings: Optional[EngineSettings] = None,
) -> CutoffWindow:
    """Initialize the window: window_start = now, open."""

    store = store or get_store()
    settings = settings or get_settings()
    moment = now or utc_now()

    window = _write_window(store, settings, "open_window", lambda _current: CutoffWindow.opened(moment))
    logger.info(f"Cutoff window opened by {actor.user_id}", extra={"window_start": window.window_start.isoformat()})
    return window


def close_window(
    actor: Actor,
    *,
    store: Optional[DocumentStore] = None,
    now: Optional[datetime] = None,
    settings: Optional[EngineSettings] = None,
) -> CutoffWindow:
    """
    Close the current window.

    Raises:
        InvalidState: the window is already closed.
    """

    store = store or get_store()
    settings = settings or get_settings()
    moment = now or utc_now()

    def _close(current: Optional[CutoffWindow]) -> CutoffWindow:
        window = current or default_window(moment, settings.business_timezone)
        return window.close(actor, moment)

    window = _write_window(store, settings, "close_window", _close)
    logger.info(
        f"Cutoff window closed by {actor.user_id}",
        extra={"window_start": window.window_start.isoformat(), "closed_at": moment.isoformat()},
    )
    return window


def reset_window(
    actor: Actor = SYSTEM_ACTOR,
    *,
    store: Optional[DocumentStore] = None,
    now: Optional[datetime] = None,
    settings: Optional[EngineSettings] = None,
) -> CutoffWindow:
    """Start a new cycle from any state."""

    store = store or get_store()
    settings = settings or get_settings()
    moment = now or utc_now()

    def _reset(current: Optional[CutoffWindow]) -> CutoffWindow:
        window = current or default_window(moment, settings.business_timezone)
        return window.reset(moment)

    window = _write_window(store, settings, "reset_window", _reset)
    logger.info(f"Cutoff window reset by {actor.user_id}", extra={"window_start": window.window_start.isoformat()})
    return window


def is_within_cutoff(
    *,
    store: Optional[DocumentStore] = None,
    now: Optional[datetime] = None,
    settings: Optional[EngineSettings] = None,
) -> bool:
    """True while new orders are still classified as regular."""

    return current_window(store=store, now=now, settings=settings).is_open


def current_range_start(
    *,
    store: Optional[DocumentStore] = None,
    now: Optional[datetime] = None,
    settings: Optional[EngineSettings] = None,
) -> datetime:
    """Default start of the active reporting range."""

    return current_window(store=store, now=now, settings=settings).window_start


__all__ = [
    "current_window",
    "open_window",
    "close_window",
    "reset_window",
    "is_within_cutoff",
    "current_range_start",
    "read_window_or_default",
    "default_window",
]
