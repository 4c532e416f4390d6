"""
Domain: Actor identity.

The authentication collaborator hands the engine an id and a display name for
whoever triggered an operation. Both are recorded as snapshots on the
documents the operation writes.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Actor:
    user_id: str
    display_name: str

    def __post_init__(self) -> None:
        if not self.user_id:
            raise ValueError("user_id is required")


SYSTEM_ACTOR = Actor(user_id="system", display_name="System")
