from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from order_lifecycle.core.transitions import EntityType, OrderStatus, TriggeredBy


class TransitionCheck(BaseModel):
    entity: EntityType = Field(EntityType.ORDER, description="Which status table to check against")
    previous_status: str = Field(..., min_length=1)
    new_status: str = Field(..., min_length=1)


class TransitionVerdict(BaseModel):
    is_valid: bool
    errors: List[str] = []
    warnings: List[str] = []


class StatusUpdateCreate(BaseModel):
    previous_status: OrderStatus = Field(..., description="Status the caller believes the order is in")
    new_status: OrderStatus
    triggered_by: TriggeredBy = TriggeredBy.MANUAL_UPDATE
    notes: Optional[str] = Field(None, max_length=2000)
    reason: Optional[str] = Field(None, max_length=500)
    metadata: Optional[Dict[str, Any]] = None
    payment_confirmation_id: Optional[str] = None
    expected_version: Optional[int] = Field(None, ge=0, description="Optimistic-lock expected order version")


class BulkStatusUpdate(StatusUpdateCreate):
    order_id: str = Field(..., min_length=1)


class BulkStatusUpdateRequest(BaseModel):
    updates: List[BulkStatusUpdate] = Field(..., min_length=1, max_length=500)


class StatusUpdateOut(BaseModel):
    id: str
    order_id: str
    previous_status: str
    new_status: str
    triggered_by: str
    updated_by: str
    timestamp: str
    notes: Optional[str] = None
    reason: Optional[str] = None
    automation_rule: Optional[str] = None
    payment_confirmation_id: Optional[str] = None
    metadata: Dict[str, Any] = {}
    warnings: List[str] = []


class StatusUpdateResponse(BaseModel):
    data: StatusUpdateOut
    meta: Dict[str, Any] = {}


class StatusUpdateListResponse(BaseModel):
    data: List[StatusUpdateOut]
    meta: Dict[str, Any] = {}
