"""
Store and Supabase client initialization.

This module owns the database connection setup. Repository and service
modules call `get_store()` and never construct backends themselves.

STORE_BACKEND selects the backend:
- memory (default): a process-local InMemoryDocumentStore
- supabase: SupabaseDocumentStore, which needs
    - SUPABASE_URL: Your Supabase project URL
    - SUPABASE_KEY: Your Supabase API key (use a server-side key only on the backend)
"""

from __future__ import annotations

import logging
import os
import threading
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from repositories.document_store import DocumentStore, InMemoryDocumentStore
from services.config import get_settings

logger = logging.getLogger(__name__)

# Load environment variables from the .env file at the project root
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

_lock = threading.RLock()
_supabase_client = None
_store: Optional[DocumentStore] = None


def get_supabase_client():
    """Return the shared Supabase client, creating it on first use."""

    global _supabase_client
    with _lock:
        if _supabase_client is not None:
            return _supabase_client

        # The dependency is `supabase` (supabase-py).
        from supabase import create_client  # type: ignore[import-not-found]

        # Read credentials from the environment to avoid hard-coding secrets in code.
        supabase_url: str | None = os.getenv("SUPABASE_URL")
        supabase_key: str | None = os.getenv("SUPABASE_KEY")

        if not supabase_url:
            raise RuntimeError(
                "Missing environment variable: SUPABASE_URL. "
                "Set SUPABASE_URL to your Supabase project URL."
            )

        if not supabase_key:
            raise RuntimeError(
                "Missing environment variable: SUPABASE_KEY. "
                "Set SUPABASE_KEY to your Supabase API key."
            )

        _supabase_client = create_client(supabase_url, supabase_key)
        return _supabase_client


def get_store() -> DocumentStore:
    """Return the process-wide document store for the configured backend."""

    global _store
    with _lock:
        if _store is None:
            backend = get_settings().store_backend
            if backend == "supabase":
                from repositories.supabase_store import SupabaseDocumentStore

                _store = SupabaseDocumentStore(get_supabase_client())
            else:
                _store = InMemoryDocumentStore()
            logger.info("Document store initialised (backend=%s)", backend)
        return _store


def set_store(store: Optional[DocumentStore]) -> None:
    """Install (or with None, forget) the process-wide store. Used by tests and scripts."""

    global _store
    with _lock:
        _store = store


__all__ = ["get_store", "set_store", "get_supabase_client"]
