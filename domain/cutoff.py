"""
Domain: Cutoff window.

Contract excerpts implemented here:
- The window cycles OPEN -> CLOSED -> OPEN (via reset); it is not a one-shot
  transition.
- open/initialize and reset both start a new cycle: window_start = now,
  is_closed = False, closed_at cleared.
- close requires OPEN; it stamps closed_at and the closing actor and leaves
  window_start alone (it still marks the start of the regular sub-period).

Transitions return new instances; nothing here touches storage.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .actor import Actor
from .errors import InvalidState
from .time import require_utc_timestamp


@dataclass(frozen=True, slots=True)
class CutoffWindow:
    window_start: datetime
    is_closed: bool = False
    closed_at: Optional[datetime] = None
    closed_by: Optional[str] = None
    closed_by_name: Optional[str] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("window_start", self.window_start)
        if self.closed_at is not None:
            require_utc_timestamp("closed_at", self.closed_at)
        if self.is_closed and self.closed_at is None:
            raise ValueError("a closed window must carry closed_at")

    @staticmethod
    def opened(now: datetime) -> "CutoffWindow":
        return CutoffWindow(window_start=now)

    @property
    def is_open(self) -> bool:
        return not self.is_closed

    def close(self, actor: Actor, now: datetime) -> "CutoffWindow":
        if self.is_closed:
            raise InvalidState("Cutoff window is already closed")
        require_utc_timestamp("now", now)
        return CutoffWindow(
            window_start=self.window_start,
            is_closed=True,
            closed_at=now,
            closed_by=actor.user_id,
            closed_by_name=actor.display_name,
        )

    def reset(self, now: datetime) -> "CutoffWindow":
        """Start a brand-new cycle regardless of the current state."""

        return CutoffWindow.opened(now)
