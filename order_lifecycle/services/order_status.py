"""
Order status updates: validated transitions, the append-only history table
and the reports built on top of it.

The live `status` of an order is moved with a compare-and-swap on the order
row (current status, and version) so two requests holding the same stale
`previous_status` cannot both succeed.
"""
import logging
from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from order_lifecycle.config import settings
from order_lifecycle.core.errors import (
    InvalidTransition,
    NotFound,
    OptimisticLockError,
    OrderLifecycleError,
    ValidationFailed,
)
from order_lifecycle.core.timeutil import format_datetime, parse_datetime, utcnow
from order_lifecycle.core.transitions import OrderStatus, StatusTransitionValidator, TriggeredBy
from order_lifecycle.database import FileBackedDB, StaleRecord
from order_lifecycle.models.order import Order
from order_lifecycle.models.status_update import StatusTransition
from order_lifecycle.services.notifications import StatusNotifier

logger = logging.getLogger(__name__)

ORDERS = "orders"
STATUS_UPDATES = "order_status_updates"

AUTO_PROCESS_RULE = "auto_process_confirmed_orders"

_RECORD_FIELDS = (
    "order_id",
    "previous_status",
    "new_status",
    "triggered_by",
    "updated_by_id",
    "notes",
    "reason",
    "automation_rule",
    "metadata",
    "payment_confirmation_id",
    "expected_version",
)


def _value(v: Any) -> str:
    return str(getattr(v, "value", v) or "").strip()


class OrderStatusService:
    def __init__(
        self,
        db: FileBackedDB,
        notifier: Optional[StatusNotifier] = None,
        validator: Optional[StatusTransitionValidator] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.notifier = notifier
        self.validator = validator or StatusTransitionValidator()
        self.clock = clock

    # --- recording ---

    def record(
        self,
        order_id: str,
        previous_status: str,
        new_status: str,
        triggered_by: str,
        updated_by_id: str,
        notes: Optional[str] = None,
        reason: Optional[str] = None,
        automation_rule: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        payment_confirmation_id: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> StatusTransition:
        """
        Validate and record one order status change, then move the order's live status.

        Raises ValidationFailed (missing fields, unknown trigger), NotFound,
        InvalidTransition (not in the allow-list) or OptimisticLockError (the
        order is no longer in `previous_status` / at `expected_version`).
        """
        previous = _value(previous_status)
        new = _value(new_status)
        updated_by = _value(updated_by_id)
        if not order_id or not previous or not new or not updated_by:
            raise ValidationFailed("Order ID, previous status, new status, and updated by ID are required")
        try:
            trigger = TriggeredBy(_value(triggered_by))
        except ValueError:
            raise ValidationFailed(
                f"Unknown trigger: {_value(triggered_by)}", details=[t.value for t in TriggeredBy]
            ) from None

        row = self.db.get_record(ORDERS, "id", order_id)
        if not row:
            raise NotFound("Order not found")

        verdict = self.validator.validate(previous, new)
        if not verdict.is_valid:
            raise InvalidTransition(verdict.errors)

        order = Order.from_dict(row)
        version = int(expected_version) if expected_version is not None else order.version
        timestamp = self._next_timestamp(order_id)
        expected: Dict[str, Any] = {"status": previous}
        if expected_version is not None or row.get("version") not in (None, ""):
            expected["version"] = version

        try:
            updated = self.db.compare_and_update(
                ORDERS,
                "id",
                order_id,
                expected=expected,
                updates={
                    "status": new,
                    "version": version + 1,
                    "last_status_update": format_datetime(timestamp),
                },
            )
        except StaleRecord as stale:
            current = Order.from_dict(stale.current)
            raise OptimisticLockError(
                f"Order {order_id} was modified: expected status {previous} at version {version}, "
                f"found {current.status} at version {current.version}",
                details=[{"field": k, "current": v} for k, v in sorted(stale.mismatched.items())],
            ) from None
        if updated is None:
            raise NotFound("Order not found")

        transition = StatusTransition(
            order_id=str(order_id),
            previous_status=previous,
            new_status=new,
            triggered_by=trigger.value,
            updated_by=updated_by,
            timestamp=timestamp,
            notes=notes,
            reason=reason,
            automation_rule=automation_rule,
            payment_confirmation_id=payment_confirmation_id,
            metadata=dict(metadata or {}),
            warnings=tuple(verdict.warnings),
        )
        try:
            saved = self.db.create_record(STATUS_UPDATES, transition.to_dict(), id_field="id")
        except Exception:
            # put the order back so live status and history stay in step
            logger.exception("Failed to append status history for order %s; reverting status", order_id)
            try:
                self.db.compare_and_update(
                    ORDERS,
                    "id",
                    order_id,
                    expected={"status": new, "version": version + 1},
                    updates={"status": previous, "version": version + 2},
                )
            except Exception:
                logger.exception(
                    "Could not revert order %s to %s; status is %s without a history row", order_id, previous, new
                )
            raise
        transition = StatusTransition.from_dict(saved)

        logger.info(
            "Order %s status %s -> %s (%s by %s)", order_id, previous, new, trigger.value, updated_by
        )
        for warning in transition.warnings:
            logger.warning("Order %s: %s", order_id, warning)

        if trigger is not TriggeredBy.SYSTEM:
            self._notify(transition, updated)
        return transition

    def _next_timestamp(self, order_id: str) -> datetime:
        now = self.clock()
        last = self.db.find_records(
            STATUS_UPDATES, {"order_id": order_id}, sort="timestamp", descending=True, limit=1
        )
        if last:
            last_ts = parse_datetime(last[0].get("timestamp"))
            if last_ts is not None and last_ts >= now:
                now = last_ts + timedelta(microseconds=1)
        return now

    def _notify(self, transition: StatusTransition, order_row: Dict[str, Any]) -> None:
        if self.notifier is None:
            return
        try:
            user = None
            if order_row.get("user_id"):
                user = self.db.get_record("users", "id", order_row["user_id"]) or self.db.get_record(
                    "users", "username", order_row["user_id"]
                )
            self.notifier.dispatch(
                {
                    "order_id": transition.order_id,
                    "previous_status": transition.previous_status,
                    "new_status": transition.new_status,
                    "update_reason": transition.reason,
                    "update_notes": transition.notes,
                    "customer_email": (user or {}).get("email") or None,
                }
            )
        except Exception:
            logger.exception("Failed to dispatch status notification for order %s", transition.order_id)

    # --- lookups ---

    def _transitions_for(self, order_id: str, descending: bool) -> List[StatusTransition]:
        rows = self.db.find_records(STATUS_UPDATES, {"order_id": order_id}, sort="timestamp", descending=descending)
        return [StatusTransition.from_dict(r) for r in rows]

    def get_status_updates_by_order(self, order_id: str) -> List[StatusTransition]:
        """Recorded updates for one order, newest first."""
        return self._transitions_for(order_id, descending=True)

    def get_status_update(self, update_id: str) -> StatusTransition:
        row = self.db.get_record(STATUS_UPDATES, "id", update_id)
        if not row:
            raise NotFound("Order status update not found")
        return StatusTransition.from_dict(row)

    def get_order_status_history(self, order_id: str) -> Dict[str, Any]:
        updates = self._transitions_for(order_id, descending=False)
        return {
            "order_id": order_id,
            "timeline": [u.timeline_entry() for u in updates],
            "total_updates": len(updates),
        }

    def get_status_update_stats(self, top: int = 5) -> Dict[str, Any]:
        rows = self.db.list_records(STATUS_UPDATES)
        triggers = Counter(str(r.get("triggered_by") or "") for r in rows)
        transitions = Counter(f"{r.get('previous_status')} -> {r.get('new_status')}" for r in rows)
        return {
            "total": len(rows),
            "by_trigger": {t.value: triggers.get(t.value, 0) for t in TriggeredBy},
            "most_common_transitions": [
                {"transition": name, "count": count} for name, count in transitions.most_common(top)
            ],
        }

    def get_orders_by_status(self, status: str, page: int = 1, page_size: int = 25) -> Tuple[List[Order], int]:
        """Orders currently in `status`, newest first. Returns (page of orders, total matches)."""
        try:
            status = OrderStatus(_value(status)).value
        except ValueError:
            raise ValidationFailed(
                f"Unknown order status: {_value(status)}", details=[s.value for s in OrderStatus]
            ) from None
        if page < 1 or page_size < 1:
            raise ValidationFailed("page and page_size must be positive")
        rows = self.db.find_records(
            ORDERS,
            {"status": status},
            sort="created_at",
            descending=True,
            offset=(page - 1) * page_size,
            limit=page_size,
        )
        total = self.db.count_records(ORDERS, {"status": status})
        return [Order.from_dict(r) for r in rows], total

    # --- batch operations ---

    def bulk_update_order_statuses(self, updates: List[Mapping[str, Any]]) -> Dict[str, Any]:
        """
        Record each update independently. A failing item is reported in `errors`
        and does not stop the rest.
        """
        recorded: List[StatusTransition] = []
        errors: List[Dict[str, Any]] = []
        for update in updates:
            order_id = update.get("order_id")
            try:
                kwargs = {k: update.get(k) for k in _RECORD_FIELDS}
                recorded.append(self.record(**kwargs))
            except OrderLifecycleError as e:
                errors.append({"order_id": order_id, "error": e.message})
            except Exception:
                logger.exception("Bulk status update failed for order %s", order_id)
                errors.append({"order_id": order_id, "error": "Failed to update order status"})
        return {"updated": recorded, "errors": errors}

    def process_automated_status_updates(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Move confirmed orders older than AUTO_PROCESS_AFTER_HOURS to processing.
        """
        now = now or self.clock()
        hours = settings.AUTO_PROCESS_AFTER_HOURS
        cutoff = now - timedelta(hours=hours)
        processed: List[StatusTransition] = []
        errors: List[Dict[str, Any]] = []

        for row in self.db.find_records(ORDERS, {"status": OrderStatus.CONFIRMED.value}):
            created_at = parse_datetime(row.get("created_at"))
            if created_at is None or created_at >= cutoff:
                continue
            order_id = row.get("id")
            try:
                processed.append(
                    self.record(
                        order_id=order_id,
                        previous_status=OrderStatus.CONFIRMED.value,
                        new_status=OrderStatus.PROCESSING.value,
                        triggered_by=TriggeredBy.AUTOMATED_RULE.value,
                        updated_by_id="system",
                        reason="system_automation",
                        automation_rule=AUTO_PROCESS_RULE,
                        notes=f"Automatically moved to processing after {hours} hours",
                    )
                )
            except OrderLifecycleError as e:
                errors.append({"order_id": order_id, "error": e.message})
            except Exception:
                logger.exception("Automated status update failed for order %s", order_id)
                errors.append({"order_id": order_id, "error": "Failed to process automated update"})

        if processed or errors:
            logger.info("Automated status run: %d processed, %d failed", len(processed), len(errors))
        return {"processed": processed, "errors": errors}
