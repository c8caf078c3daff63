from datetime import datetime

import pytest

from order_lifecycle.core.errors import InvalidTransition, NotFound, OptimisticLockError, ValidationFailed
from order_lifecycle.database import StaleRecord
from order_lifecycle.models.order import Order
from order_lifecycle.services.order_status import OrderStatusService


def _order(file_db, oid):
    return Order.from_dict(file_db.get_record("orders", "id", oid))


def test_cancel_confirmed_order_records_history_and_moves_status(service, file_db, make_order):
    row = make_order(status="confirmed")

    t = service.record(row["id"], "confirmed", "cancelled", "admin_action", "admin-1", notes="customer called")

    assert t.id
    assert t.previous_status == "confirmed"
    assert t.new_status == "cancelled"
    assert t.warnings == ("Cancelling an order in progress may require inventory adjustments",)
    history = file_db.find_records("order_status_updates", {"order_id": row["id"]})
    assert len(history) == 1
    assert history[0]["notes"] == "customer called"

    order = _order(file_db, row["id"])
    assert order.status == "cancelled"
    assert order.version == 1
    assert order.last_status_update == t.timestamp


def test_timestamps_strictly_increase_even_with_a_frozen_clock(file_db, notifier, make_order):
    frozen = datetime(2026, 1, 1, 12, 0, 0)
    service = OrderStatusService(file_db, notifier=notifier, clock=lambda: frozen)
    row = make_order(status="pending")

    steps = [("pending", "confirmed"), ("confirmed", "processing"), ("processing", "shipped")]
    stamps = [service.record(row["id"], a, b, "manual_update", "admin-1").timestamp for a, b in steps]

    assert stamps[0] == frozen
    assert stamps == sorted(stamps)
    assert len(set(stamps)) == 3
    assert _order(file_db, row["id"]).version == 3


def test_missing_order_is_not_found(service):
    with pytest.raises(NotFound):
        service.record("nope", "pending", "confirmed", "manual_update", "admin-1")


def test_invalid_transition_carries_validator_errors(service, file_db, make_order):
    row = make_order(status="cancelled")

    with pytest.raises(InvalidTransition) as exc:
        service.record(row["id"], "cancelled", "processing", "manual_update", "admin-1")

    assert exc.value.errors == ["Invalid transition from cancelled to processing"]
    assert file_db.count_records("order_status_updates") == 0
    assert _order(file_db, row["id"]).status == "cancelled"


@pytest.mark.parametrize("field", ["order_id", "previous_status", "new_status", "updated_by_id"])
def test_required_fields(service, make_order, field):
    row = make_order()
    kwargs = dict(order_id=row["id"], previous_status="pending", new_status="confirmed",
                  triggered_by="manual_update", updated_by_id="admin-1")
    kwargs[field] = ""
    with pytest.raises(ValidationFailed):
        service.record(**kwargs)


def test_unknown_trigger_is_rejected(service, make_order):
    row = make_order()
    with pytest.raises(ValidationFailed) as exc:
        service.record(row["id"], "pending", "confirmed", "carrier_webhook", "admin-1")
    assert "system" in exc.value.details


def test_stale_previous_status_is_a_conflict(service, file_db, make_order):
    row = make_order(status="pending")
    service.record(row["id"], "pending", "confirmed", "manual_update", "admin-1")

    # a second caller still believes the order is pending
    with pytest.raises(OptimisticLockError):
        service.record(row["id"], "pending", "cancelled", "manual_update", "admin-2")

    assert _order(file_db, row["id"]).status == "confirmed"
    assert file_db.count_records("order_status_updates", {"order_id": row["id"]}) == 1


def test_expected_version_mismatch_is_a_conflict(service, file_db, make_order):
    row = make_order(status="pending", version=4)

    with pytest.raises(OptimisticLockError) as exc:
        service.record(row["id"], "pending", "confirmed", "manual_update", "admin-1", expected_version=3)
    assert exc.value.details == [{"field": "version", "current": "4"}]

    t = service.record(row["id"], "pending", "confirmed", "manual_update", "admin-1", expected_version=4)
    assert t.new_status == "confirmed"
    assert _order(file_db, row["id"]).version == 5


def test_order_rows_without_version_column_still_update(service, file_db):
    file_db.create_record("orders", {"id": "legacy-1", "user_id": "u1", "status": "pending"})

    service.record("legacy-1", "pending", "confirmed", "system", "system")

    assert _order(file_db, "legacy-1").status == "confirmed"


def test_notification_sent_with_customer_email(service, notifier, create_user, make_order):
    user = create_user("dana")
    row = make_order(user_id=user["id"], status="shipped")

    service.record(row["id"], "shipped", "delivered", "admin_action", "admin-1", reason="carrier scan")

    assert notifier.sent == [{
        "order_id": row["id"],
        "previous_status": "shipped",
        "new_status": "delivered",
        "update_reason": "carrier scan",
        "update_notes": None,
        "customer_email": "dana@example.com",
    }]


def test_system_updates_do_not_notify(service, notifier, make_order):
    row = make_order()
    service.record(row["id"], "pending", "payment_pending", "system", "system")
    assert notifier.sent == []


def test_notifier_failure_does_not_fail_the_transition(file_db, make_order):
    class BrokenNotifier:
        def dispatch(self, payload):
            raise RuntimeError("smtp down")

    service = OrderStatusService(file_db, notifier=BrokenNotifier())
    row = make_order()

    t = service.record(row["id"], "pending", "confirmed", "payment_confirmation", "gateway")

    assert t.new_status == "confirmed"
    assert _order(file_db, row["id"]).status == "confirmed"


def test_history_write_failure_reverts_order_status(service, file_db, make_order, monkeypatch):
    row = make_order(status="pending")
    orig_create = file_db.create_record

    def failing_create(table, data, id_field="id"):
        if table == "order_status_updates":
            raise OSError("disk full")
        return orig_create(table, data, id_field=id_field)

    monkeypatch.setattr(file_db, "create_record", failing_create)

    with pytest.raises(OSError):
        service.record(row["id"], "pending", "confirmed", "manual_update", "admin-1")

    assert _order(file_db, row["id"]).status == "pending"


def test_revert_failure_does_not_mask_the_history_error(service, file_db, make_order, monkeypatch):
    row = make_order(status="pending")
    orig_cas = file_db.compare_and_update
    calls = []

    def failing_create(table, data, id_field="id"):
        raise OSError("disk full")

    def cas_then_fail(*args, **kwargs):
        calls.append(kwargs.get("updates"))
        if len(calls) > 1:
            raise StaleRecord({"status": "shipped"}, {"status": "shipped"})
        return orig_cas(*args, **kwargs)

    monkeypatch.setattr(file_db, "create_record", failing_create)
    monkeypatch.setattr(file_db, "compare_and_update", cas_then_fail)

    with pytest.raises(OSError, match="disk full"):
        service.record(row["id"], "pending", "confirmed", "manual_update", "admin-1")

    assert len(calls) == 2
    assert _order(file_db, row["id"]).status == "confirmed"


def test_recorded_fields_are_stored_as_text(service, file_db, make_order):
    row = make_order()
    service.record(row["id"], "pending", "confirmed", "manual_update", "admin-1", metadata={"attempt": 1})
    service.record(row["id"], "confirmed", "processing", "manual_update", "admin-1")

    stored = file_db.get_record("orders", "id", row["id"])
    assert stored["version"] == "2"
    assert stored["status"] == "processing"
    assert stored["total_amount"] == "50.0"

    history = file_db.find_records("order_status_updates", {"order_id": row["id"]}, sort="timestamp")
    assert [h["new_status"] for h in history] == ["confirmed", "processing"]
    assert history[0]["metadata"] == '{"attempt": 1}'
