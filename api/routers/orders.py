"""
Orders API Endpoints.

Endpoints for placing orders, moving them through their statuses and
settling confirmed orders into ledgers.
"""

from fastapi import APIRouter, Depends

from api.dependencies import get_actor, http_error
from api.models import (
    OrderLineResponse,
    OrderResponse,
    PlaceOrderRequest as APIPlaceOrderRequest,
    SettleRequest,
    SettlementResponse,
    TransitionRequest,
)
from domain.actor import Actor
from domain.order import Order
from services.order_service import (
    OrderLineRequest,
    PlaceOrderRequest,
    get_order,
    place_order,
    transition_order,
)
from services.settlement_service import ShippedLine, settle_order

router = APIRouter()


def _order_response(order: Order) -> OrderResponse:
    return OrderResponse(
        order_number=order.order_number,
        kind=order.kind,
        status=order.status,
        phase=order.phase,
        counterparty_id=order.counterparty_id,
        counterparty_name=order.counterparty_name,
        lines=[
            OrderLineResponse(
                product_id=line.product_id,
                product_name=line.product_name,
                quantity=line.quantity,
                unit_price=line.unit_price,
                line_total=line.line_total,
            )
            for line in order.lines
        ],
        total_amount=order.total_amount,
        placed_at=order.placed_at,
        placed_by=order.placed_by,
        confirmed_at=order.confirmed_at,
        completed_at=order.completed_at,
        ledger_number=order.ledger_number,
        ledger_id=order.ledger_id,
    )


@router.post(
    "/orders",
    response_model=OrderResponse,
    status_code=201,
    summary="Place Order",
    description="Place a sale or purchase order. Phase is stamped from the cutoff window."
)
def create_order(request: APIPlaceOrderRequest, actor: Actor = Depends(get_actor)):
    """
    Place an order.

    **Phase stamping:**
    - Window open: `regular`, status `placed`
    - Window closed: `additional`, status `confirmed`
    """
    try:
        service_request = PlaceOrderRequest(
            kind=request.kind,
            counterparty_id=request.counterparty_id,
            lines=[
                OrderLineRequest(
                    product_id=line.product_id,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    product_name=line.product_name,
                )
                for line in request.lines
            ],
        )
        order = place_order(service_request, actor)
    except Exception as e:
        raise http_error(e, "place order")
    return _order_response(order)


@router.get(
    "/orders/{order_number}",
    response_model=OrderResponse,
    summary="Get Order"
)
def read_order(order_number: str):
    try:
        return _order_response(get_order(order_number))
    except Exception as e:
        raise http_error(e, "get order")


@router.post(
    "/orders/{order_number}/transition",
    response_model=OrderResponse,
    summary="Transition Order",
    description="Move an order to another status. Completion happens only through settlement."
)
def change_order_status(order_number: str, request: TransitionRequest, actor: Actor = Depends(get_actor)):
    try:
        return _order_response(transition_order(order_number, request.status, actor))
    except Exception as e:
        raise http_error(e, "transition order")


@router.post(
    "/orders/{order_number}/settle",
    response_model=SettlementResponse,
    summary="Settle Order",
    description="Create the ledger for a confirmed order and raise the counterparty balance."
)
def settle(order_number: str, request: SettleRequest, actor: Actor = Depends(get_actor)):
    """
    Settle a confirmed order.

    Returns the ledger id used by the print/notify workflow. Settling an
    already completed order returns 409.
    """
    try:
        result = settle_order(
            order_number,
            [
                ShippedLine(
                    product_id=line.product_id,
                    shipped_qty=line.shipped_qty,
                    unit_price=line.unit_price,
                    product_name=line.product_name,
                )
                for line in request.lines
            ],
            actor,
            notes=request.notes,
        )
    except Exception as e:
        raise http_error(e, "settle order")
    return SettlementResponse(
        ledger_number=result.ledger_number,
        ledger_id=result.ledger_id,
        total_amount=result.total_amount,
    )
