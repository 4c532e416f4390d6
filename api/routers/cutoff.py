"""
Cutoff API Endpoints.

Endpoints for reading and driving the order cutoff window.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from api.dependencies import get_actor, http_error
from api.models import ConfirmRegularOrdersResponse, CutoffWindowResponse
from domain.actor import Actor
from domain.cutoff import CutoffWindow
from domain.order import OrderKind
from services.cutoff_service import close_window, current_window, open_window, reset_window
from services.order_service import confirm_regular_orders

router = APIRouter()


def _window_response(window: CutoffWindow) -> CutoffWindowResponse:
    return CutoffWindowResponse(
        window_start=window.window_start,
        is_closed=window.is_closed,
        closed_at=window.closed_at,
        closed_by=window.closed_by,
        closed_by_name=window.closed_by_name,
    )


@router.get(
    "/cutoff",
    response_model=CutoffWindowResponse,
    summary="Get Cutoff Window",
    description="Current cutoff window. Defaults to open from the start of the business day."
)
def get_cutoff_window():
    try:
        return _window_response(current_window())
    except Exception as e:
        raise http_error(e, "get cutoff window")


@router.post(
    "/cutoff",
    response_model=CutoffWindowResponse,
    summary="Open Cutoff Window",
    description="Initialize the window: start now, open."
)
def open_cutoff_window(actor: Actor = Depends(get_actor)):
    try:
        return _window_response(open_window(actor))
    except Exception as e:
        raise http_error(e, "open cutoff window")


@router.post(
    "/cutoff/close",
    response_model=CutoffWindowResponse,
    summary="Close Cutoff Window",
    description="Close the regular ordering period. Orders placed afterwards are additional."
)
def close_cutoff_window(actor: Actor = Depends(get_actor)):
    try:
        return _window_response(close_window(actor))
    except Exception as e:
        raise http_error(e, "close cutoff window")


@router.post(
    "/cutoff/reset",
    response_model=CutoffWindowResponse,
    summary="Reset Cutoff Window",
    description="Start a new ordering cycle from any state."
)
def reset_cutoff_window(actor: Actor = Depends(get_actor)):
    try:
        return _window_response(reset_window(actor))
    except Exception as e:
        raise http_error(e, "reset cutoff window")


@router.post(
    "/cutoff/confirm-regular-orders",
    response_model=ConfirmRegularOrdersResponse,
    summary="Confirm Regular Orders",
    description="Confirm every placed regular order since the window start."
)
def confirm_regular(kind: Optional[OrderKind] = None, actor: Actor = Depends(get_actor)):
    try:
        confirmed = confirm_regular_orders(actor, kind=kind)
    except Exception as e:
        raise http_error(e, "confirm regular orders")
    return ConfirmRegularOrdersResponse(
        confirmed_order_numbers=confirmed,
        confirmed_count=len(confirmed),
    )
