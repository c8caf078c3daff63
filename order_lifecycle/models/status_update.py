# order_lifecycle/models/status_update.py
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Tuple
import json

from order_lifecycle.core.timeutil import format_datetime, parse_datetime


def _load_json(raw: Any, default):
    if raw in (None, ""):
        return default
    if not isinstance(raw, str):
        return raw
    try:
        return json.loads(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class StatusTransition:
    """
    One recorded order status change. Rows are append-only: once written a
    transition is never edited, corrections are new transitions.
    """
    order_id: str
    previous_status: str
    new_status: str
    triggered_by: str
    updated_by: str
    timestamp: datetime
    id: Optional[str] = None
    notes: Optional[str] = None
    reason: Optional[str] = None
    automation_rule: Optional[str] = None
    payment_confirmation_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    warnings: Tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "StatusTransition":
        if d is None:
            raise ValueError("Cannot construct StatusTransition from None")
        return cls(
            id=d.get("id") or None,
            order_id=str(d.get("order_id") or ""),
            previous_status=str(d.get("previous_status") or ""),
            new_status=str(d.get("new_status") or ""),
            triggered_by=str(d.get("triggered_by") or ""),
            updated_by=str(d.get("updated_by") or ""),
            timestamp=parse_datetime(d.get("timestamp")),
            notes=d.get("notes") or None,
            reason=d.get("reason") or None,
            automation_rule=d.get("automation_rule") or None,
            payment_confirmation_id=d.get("payment_confirmation_id") or None,
            metadata=_load_json(d.get("metadata"), {}) or {},
            warnings=tuple(_load_json(d.get("warnings"), []) or ()),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Row shape for the store: metadata and warnings become JSON strings."""
        out = self.to_public()
        out["metadata"] = json.dumps(self.metadata or {}, ensure_ascii=False)
        out["warnings"] = json.dumps(list(self.warnings), ensure_ascii=False)
        return out

    def to_public(self) -> Dict[str, Any]:
        return {
            "id": self.id or "",
            "order_id": self.order_id,
            "previous_status": self.previous_status,
            "new_status": self.new_status,
            "triggered_by": self.triggered_by,
            "updated_by": self.updated_by,
            "timestamp": format_datetime(self.timestamp),
            "notes": self.notes or "",
            "reason": self.reason or "",
            "automation_rule": self.automation_rule or "",
            "payment_confirmation_id": self.payment_confirmation_id or "",
            "metadata": dict(self.metadata or {}),
            "warnings": list(self.warnings),
        }

    def timeline_entry(self) -> Dict[str, Any]:
        return {
            "timestamp": format_datetime(self.timestamp),
            "previous_status": self.previous_status,
            "new_status": self.new_status,
            "triggered_by": self.triggered_by,
            "updated_by": self.updated_by,
            "notes": self.notes,
            "reason": self.reason,
        }
