# order_lifecycle/models/order.py
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List
from datetime import datetime
import json

from order_lifecycle.core.timeutil import format_datetime, parse_datetime
from order_lifecycle.core.transitions import OrderStatus


@dataclass
class OrderItem:
    product_id: str
    title: Optional[str] = None
    unit_price: float = 0.0
    quantity: int = 1

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "OrderItem":
        return cls(
            product_id=str(d.get("product_id") or d.get("id") or ""),
            title=d.get("title") or None,
            unit_price=float(d.get("unit_price") or d.get("price") or 0.0),
            quantity=int(float(d.get("quantity") or 1)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "product_id": self.product_id,
            "title": self.title or "",
            "unit_price": float(self.unit_price),
            "quantity": int(self.quantity),
        }


@dataclass
class Order:
    """
    Order record as kept in the content store. The live `status` only changes
    through OrderStatusService.record, which bumps `version` on every change.
    """
    id: Optional[str] = None
    user_id: Optional[str] = None
    items: List[OrderItem] = field(default_factory=list)
    total_amount: float = 0.0
    status: str = OrderStatus.PENDING.value
    created_at: Optional[datetime] = None
    last_status_update: Optional[datetime] = None
    version: int = 0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Order":
        if d is None:
            raise ValueError("Cannot construct Order from None")
        raw_items = d.get("items") or []
        # items are stored as a JSON string in CSV cells
        if isinstance(raw_items, str):
            try:
                raw_items = json.loads(raw_items)
            except ValueError:
                raw_items = []
        items = [OrderItem.from_dict(it) for it in raw_items if isinstance(it, dict)]

        try:
            total_amount = float(d.get("total_amount") or 0.0)
        except (TypeError, ValueError):
            total_amount = 0.0
        try:
            version = int(float(d.get("version") or 0))
        except (TypeError, ValueError):
            version = 0

        return cls(
            id=d.get("id") or None,
            user_id=d.get("user_id") or None,
            items=items,
            total_amount=total_amount,
            status=d.get("status") or OrderStatus.PENDING.value,
            created_at=parse_datetime(d.get("created_at")),
            last_status_update=parse_datetime(d.get("last_status_update")),
            version=version,
        )

    def to_dict(self) -> Dict[str, Any]:
        """
        Flatten for CSV writing; `items` is serialized as a JSON string.
        """
        out: Dict[str, Any] = {
            "user_id": self.user_id or "",
            "items": json.dumps([it.to_dict() for it in self.items], ensure_ascii=False),
            "total_amount": float(self.total_amount),
            "status": self.status,
            "created_at": format_datetime(self.created_at),
            "last_status_update": format_datetime(self.last_status_update),
            "version": int(self.version or 0),
        }
        if self.id:
            out["id"] = self.id
        return out

    def to_public(self) -> Dict[str, Any]:
        out = self.to_dict()
        out["id"] = self.id
        out["items"] = [it.to_dict() for it in self.items]
        return out

    def total(self) -> float:
        return float(sum(float(it.unit_price) * int(it.quantity) for it in self.items))
