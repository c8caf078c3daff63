# order_lifecycle/api/routes/orders.py
from typing import Any, Dict
from fastapi import APIRouter, Depends, HTTPException, Query, status

from order_lifecycle.api.deps import get_current_user, get_db, get_status_service, is_owner_or_admin, require_admin
from order_lifecycle.api.errors import http_error
from order_lifecycle.api.schemas.order import OrderCreate, OrderListResponse, OrderResponse
from order_lifecycle.core.errors import OrderLifecycleError
from order_lifecycle.core.timeutil import utcnow
from order_lifecycle.core.transitions import OrderStatus
from order_lifecycle.database import FileBackedDB
from order_lifecycle.models.order import Order, OrderItem
from order_lifecycle.services.order_status import OrderStatusService

router = APIRouter(prefix="/api/orders", tags=["orders"])


@router.post("", status_code=201, response_model=OrderResponse)
def create_order(
    payload: OrderCreate,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: FileBackedDB = Depends(get_db),
):
    """
    Create an order for the current user. New orders always start in `pending`;
    every later status change goes through the status-updates endpoints.
    """
    order = Order(
        user_id=str(current_user.get("id") or current_user.get("username")),
        items=[OrderItem.from_dict(it.model_dump()) for it in payload.items],
        status=OrderStatus.PENDING.value,
        created_at=utcnow(),
        version=0,
    )
    order.total_amount = order.total()
    saved = db.create_record("orders", order.to_dict(), id_field="id")
    return {"data": Order.from_dict(saved).to_public(), "meta": {}}


@router.get("", response_model=OrderListResponse, dependencies=[Depends(require_admin)])
def list_orders_by_status(
    status_filter: OrderStatus = Query(..., alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(25, ge=1, le=100),
    service: OrderStatusService = Depends(get_status_service),
):
    """
    Admin-only: orders currently in `status`, newest first.
    """
    try:
        orders, total = service.get_orders_by_status(status_filter.value, page=page, page_size=page_size)
    except OrderLifecycleError as e:
        raise http_error(e)
    return {
        "data": [o.to_public() for o in orders],
        "meta": {"pagination": {"page": page, "page_size": page_size, "total": total}},
    }


@router.get("/{order_id}", response_model=OrderResponse)
def get_order(
    order_id: str,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: FileBackedDB = Depends(get_db),
):
    row = db.get_record("orders", "id", order_id)
    if not row:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    if not is_owner_or_admin(current_user, row):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized to view this order")
    return {"data": Order.from_dict(row).to_public(), "meta": {}}
