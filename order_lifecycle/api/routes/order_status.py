# order_lifecycle/api/routes/order_status.py
from typing import Any, Dict
from fastapi import APIRouter, Depends, HTTPException, status

from order_lifecycle.api.deps import (
    get_current_user,
    get_db,
    get_status_service,
    is_admin,
    is_owner_or_admin,
    require_admin,
)
from order_lifecycle.api.errors import http_error
from order_lifecycle.api.schemas.order_status import (
    BulkStatusUpdateRequest,
    StatusUpdateCreate,
    StatusUpdateListResponse,
    StatusUpdateResponse,
    TransitionCheck,
    TransitionVerdict,
)
from order_lifecycle.core.errors import OrderLifecycleError
from order_lifecycle.core.transitions import TriggeredBy, customer_may_request, validate_transition
from order_lifecycle.database import FileBackedDB
from order_lifecycle.services.order_status import OrderStatusService

router = APIRouter(tags=["order-status"])


def _load_order_for(order_id: str, current_user: Dict[str, Any], db: FileBackedDB) -> Dict[str, Any]:
    row = db.get_record("orders", "id", order_id)
    if not row:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    if not is_owner_or_admin(current_user, row):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed to access this order")
    return row


def _actor(current_user: Dict[str, Any]) -> str:
    return str(current_user.get("id") or current_user.get("username") or "")


@router.post("/api/transitions/validate", response_model=Dict[str, Any])
def check_transition(payload: TransitionCheck):
    """
    Dry-run a status change for an order, payment or checkout session.
    Always 200: the verdict itself says whether the transition is allowed.
    """
    verdict = validate_transition(payload.previous_status, payload.new_status, payload.entity)
    return {"data": TransitionVerdict(**verdict.to_dict()).model_dump(), "meta": {"entity": payload.entity.value}}


@router.post("/api/orders/{order_id}/status-updates", status_code=201, response_model=StatusUpdateResponse)
def create_status_update(
    order_id: str,
    payload: StatusUpdateCreate,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: FileBackedDB = Depends(get_db),
    service: OrderStatusService = Depends(get_status_service),
):
    """
    Record a status change and move the order's live status.

    Admins may use any trigger. Order owners may only file `customer_request`
    updates cancelling a pending or payment_pending order.
    """
    _load_order_for(order_id, current_user, db)
    if not is_admin(current_user):
        if payload.triggered_by is not TriggeredBy.CUSTOMER_REQUEST:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Customers may only submit customer_request status updates",
            )
        # previous_status is enforced by the compare-and-swap in record()
        if not customer_may_request(payload.previous_status.value, payload.new_status.value):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Customers may only cancel orders that are pending or awaiting payment",
            )
    try:
        transition = service.record(
            order_id=order_id,
            previous_status=payload.previous_status.value,
            new_status=payload.new_status.value,
            triggered_by=payload.triggered_by.value,
            updated_by_id=_actor(current_user),
            notes=payload.notes,
            reason=payload.reason,
            metadata=payload.metadata,
            payment_confirmation_id=payload.payment_confirmation_id,
            expected_version=payload.expected_version,
        )
    except OrderLifecycleError as e:
        raise http_error(e)
    return {"data": transition.to_public(), "meta": {"warnings": list(transition.warnings)}}


@router.get("/api/orders/{order_id}/status-updates", response_model=StatusUpdateListResponse)
def list_status_updates(
    order_id: str,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: FileBackedDB = Depends(get_db),
    service: OrderStatusService = Depends(get_status_service),
):
    _load_order_for(order_id, current_user, db)
    updates = service.get_status_updates_by_order(order_id)
    return {"data": [u.to_public() for u in updates], "meta": {"total": len(updates)}}


@router.get("/api/orders/{order_id}/status-history")
def status_history(
    order_id: str,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: FileBackedDB = Depends(get_db),
    service: OrderStatusService = Depends(get_status_service),
):
    """Timeline of status changes, oldest first."""
    _load_order_for(order_id, current_user, db)
    history = service.get_order_status_history(order_id)
    return {"data": history, "meta": {"total": history["total_updates"]}}


@router.get("/api/status-updates/stats", dependencies=[Depends(require_admin)])
def status_update_stats(service: OrderStatusService = Depends(get_status_service)):
    return {"data": service.get_status_update_stats(), "meta": {}}


@router.post("/api/status-updates/bulk")
def bulk_status_updates(
    payload: BulkStatusUpdateRequest,
    current_user: Dict[str, Any] = Depends(require_admin),
    service: OrderStatusService = Depends(get_status_service),
):
    """
    Admin-only: record many updates in one call. Items fail independently;
    the response lists what was recorded and what was rejected.
    """
    actor = _actor(current_user)
    updates = []
    for item in payload.updates:
        update = item.model_dump(mode="json")
        update["updated_by_id"] = actor
        updates.append(update)
    result = service.bulk_update_order_statuses(updates)
    return {
        "data": {
            "updated": [t.to_public() for t in result["updated"]],
            "errors": result["errors"],
        },
        "meta": {"updated": len(result["updated"]), "failed": len(result["errors"])},
    }


@router.post("/api/status-updates/automation", dependencies=[Depends(require_admin)])
def run_status_automation(service: OrderStatusService = Depends(get_status_service)):
    """Admin-only: run the confirmed -> processing rule now."""
    result = service.process_automated_status_updates()
    return {
        "data": {
            "processed": [t.to_public() for t in result["processed"]],
            "errors": result["errors"],
        },
        "meta": {"processed": len(result["processed"]), "failed": len(result["errors"])},
    }


@router.get(
    "/api/status-updates/{update_id}",
    response_model=StatusUpdateResponse,
    dependencies=[Depends(require_admin)],
)
def get_status_update(update_id: str, service: OrderStatusService = Depends(get_status_service)):
    try:
        transition = service.get_status_update(update_id)
    except OrderLifecycleError as e:
        raise http_error(e)
    return {"data": transition.to_public(), "meta": {}}
