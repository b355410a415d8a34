from fastapi import APIRouter, Depends, Query

from orderdesk.auth.dependencies import AuthContext, require_backoffice, require_order_writer
from orderdesk.dependencies import get_order_service
from orderdesk.models.order import OrderStatus
from orderdesk.schemas.order import (
    OrderCancelRequest,
    OrderCreate,
    OrderEventListResponse,
    OrderEventResponse,
    OrderListResponse,
    OrderResponse,
)
from orderdesk.services.orders_service import OrderService

router = APIRouter(prefix="/api/v1/orders", tags=["orders"])


# Order ids contain "/", so suffixed routes are declared before the bare detail route


@router.post("", response_model=OrderResponse, summary="Create order", status_code=201)
def create_order_endpoint(
    payload: OrderCreate,
    service: OrderService = Depends(get_order_service),
    auth: AuthContext = Depends(require_order_writer),
) -> OrderResponse:
    return OrderResponse.model_validate(service.create_order(payload, actor_id=auth.actor_id))


@router.get("", response_model=OrderListResponse, summary="List orders")
def list_orders_endpoint(
    status: OrderStatus | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=1000),
    service: OrderService = Depends(get_order_service),
    _auth: AuthContext = Depends(require_order_writer),
) -> OrderListResponse:
    orders = service.list_orders(status_filter=status, limit=limit)
    return OrderListResponse(items=[OrderResponse.model_validate(order) for order in orders])


@router.get(
    "/{order_id:path}/events",
    response_model=OrderEventListResponse,
    summary="Get order timeline",
)
def list_order_events_endpoint(
    order_id: str,
    service: OrderService = Depends(get_order_service),
    _auth: AuthContext = Depends(require_backoffice),
) -> OrderEventListResponse:
    events = service.list_order_events(order_id)
    return OrderEventListResponse(items=[OrderEventResponse.model_validate(e) for e in events])


@router.post("/{order_id:path}/confirm", response_model=OrderResponse, summary="Confirm order")
def confirm_order_endpoint(
    order_id: str,
    service: OrderService = Depends(get_order_service),
    auth: AuthContext = Depends(require_order_writer),
) -> OrderResponse:
    return OrderResponse.model_validate(service.confirm_order(order_id, actor_id=auth.actor_id))


@router.post("/{order_id:path}/cancel", response_model=OrderResponse, summary="Cancel order")
def cancel_order_endpoint(
    order_id: str,
    payload: OrderCancelRequest | None = None,
    service: OrderService = Depends(get_order_service),
    auth: AuthContext = Depends(require_order_writer),
) -> OrderResponse:
    reason = (payload or OrderCancelRequest()).reason
    order = service.cancel_order(order_id, reason, actor_id=auth.actor_id)
    return OrderResponse.model_validate(order)


@router.post("/{order_id:path}/complete", response_model=OrderResponse, summary="Complete order")
def complete_order_endpoint(
    order_id: str,
    service: OrderService = Depends(get_order_service),
    auth: AuthContext = Depends(require_backoffice),
) -> OrderResponse:
    return OrderResponse.model_validate(service.complete_order(order_id, actor_id=auth.actor_id))


@router.get("/{order_id:path}", response_model=OrderResponse, summary="Get order detail")
def get_order_endpoint(
    order_id: str,
    service: OrderService = Depends(get_order_service),
    _auth: AuthContext = Depends(require_order_writer),
) -> OrderResponse:
    return OrderResponse.model_validate(service.get_order(order_id))
