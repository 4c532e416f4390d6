"""
Shared API plumbing: actor identity and error mapping.

The authentication layer in front of this service forwards the caller as
X-Actor-Id / X-Actor-Name headers.
"""

from typing import Optional

from fastapi import Header, HTTPException

from domain.actor import Actor
from domain.errors import Conflict, InvalidInput, InvalidState, NotFound, SettlementError

_STATUS_BY_ERROR = (
    (NotFound, 404),
    (Conflict, 409),
    (InvalidState, 409),
    (InvalidInput, 422),
)


def get_actor(
    x_actor_id: Optional[str] = Header(default=None),
    x_actor_name: Optional[str] = Header(default=None),
) -> Actor:
    if not x_actor_id:
        raise HTTPException(status_code=401, detail="Missing X-Actor-Id header")
    return Actor(user_id=x_actor_id, display_name=x_actor_name or x_actor_id)


def http_error(error: Exception, action: str) -> HTTPException:
    """Translate a service error into the HTTPException the route raises."""

    if isinstance(error, SettlementError):
        for error_type, status_code in _STATUS_BY_ERROR:
            if isinstance(error, error_type):
                return HTTPException(
                    status_code=status_code,
                    detail={"code": error.code, "message": str(error)},
                )
    return HTTPException(status_code=500, detail=f"Failed to {action}: {str(error)}")
