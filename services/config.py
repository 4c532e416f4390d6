"""
Engine settings.

Values come from the process environment, with a `.env` file at the project
root loaded first (python-dotenv), the same way repositories/client.py picks up
the Supabase credentials.

Environment variables:
- STORE_BACKEND: "memory" (default) or "supabase"
- BUSINESS_TIMEZONE: IANA zone used for document-number dates and the cutoff
  day boundary (default Asia/Seoul)
- TRANSACTION_MAX_ATTEMPTS: optimistic transaction attempts before giving up
  with Conflict (default 3)
- ALLOW_NEGATIVE_BALANCE: "true" (default) lets a payment exceed the balance
  owed; "false" rejects such payments with InvalidInput
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

env_path = Path(__file__).parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DEFAULT_BUSINESS_TIMEZONE = "Asia/Seoul"
DEFAULT_MAX_ATTEMPTS = 3

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True, slots=True)
class EngineSettings:
    store_backend: str = "memory"
    business_timezone: ZoneInfo = ZoneInfo(DEFAULT_BUSINESS_TIMEZONE)
    transaction_max_attempts: int = DEFAULT_MAX_ATTEMPTS
    allow_negative_balance: bool = True

    def __post_init__(self) -> None:
        if self.store_backend not in ("memory", "supabase"):
            raise RuntimeError(
                f"Invalid STORE_BACKEND: {self.store_backend!r}. Use 'memory' or 'supabase'."
            )
        if self.transaction_max_attempts < 1:
            raise RuntimeError("TRANSACTION_MAX_ATTEMPTS must be >= 1")


def _parse_bool(name: str, raw: Optional[str], default: bool) -> bool:
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise RuntimeError(f"Invalid boolean for {name}: {raw!r}")


def _parse_timezone(raw: Optional[str]) -> ZoneInfo:
    name = (raw or "").strip() or DEFAULT_BUSINESS_TIMEZONE
    try:
        return ZoneInfo(name)
    except ZoneInfoNotFoundError as e:
        raise RuntimeError(f"Unknown BUSINESS_TIMEZONE: {name!r}") from e


def _parse_attempts(raw: Optional[str]) -> int:
    if raw is None or raw.strip() == "":
        return DEFAULT_MAX_ATTEMPTS
    try:
        return int(raw)
    except ValueError as e:
        raise RuntimeError(f"Invalid TRANSACTION_MAX_ATTEMPTS: {raw!r}") from e


def load_settings() -> EngineSettings:
    """Build settings from the current environment (uncached)."""

    return EngineSettings(
        store_backend=(os.getenv("STORE_BACKEND") or "memory").strip().lower(),
        business_timezone=_parse_timezone(os.getenv("BUSINESS_TIMEZONE")),
        transaction_max_attempts=_parse_attempts(os.getenv("TRANSACTION_MAX_ATTEMPTS")),
        allow_negative_balance=_parse_bool(
            "ALLOW_NEGATIVE_BALANCE", os.getenv("ALLOW_NEGATIVE_BALANCE"), default=True
        ),
    )


@lru_cache(maxsize=1)
def get_settings() -> EngineSettings:
    return load_settings()


__all__ = ["EngineSettings", "get_settings", "load_settings", "DEFAULT_BUSINESS_TIMEZONE"]
