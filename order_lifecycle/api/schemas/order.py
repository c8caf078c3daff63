from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class OrderItemIn(BaseModel):
    product_id: str = Field(..., min_length=1, description="Product identifier")
    unit_price: float = Field(..., ge=0.0, description="Unit price at time of ordering")
    quantity: int = Field(..., ge=1, description="Quantity ordered")
    title: Optional[str] = Field(None, description="Optional product title snapshot")


class OrderCreate(BaseModel):
    items: List[OrderItemIn] = Field(..., min_length=1)


class OrderOut(BaseModel):
    id: Optional[str] = None
    user_id: Optional[str] = None
    items: List[Any] = []
    total_amount: float = 0.0
    status: str
    created_at: Optional[str] = None
    last_status_update: Optional[str] = None
    version: int = 0


class OrderResponse(BaseModel):
    data: OrderOut
    meta: Dict[str, Any] = {}


class OrderListResponse(BaseModel):
    data: List[OrderOut]
    meta: Dict[str, Any] = {}
