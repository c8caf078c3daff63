import itertools

import pytest

from order_lifecycle.core.transitions import (
    CheckoutStatus,
    EntityType,
    ORDER_TRANSITIONS,
    OrderStatus,
    PaymentStatus,
    StatusTransitionValidator,
    allowed_transitions,
    customer_may_request,
    is_terminal,
    validate_transition,
)

ORDER_STATUSES = [s.value for s in OrderStatus]


def test_every_order_status_has_a_table_entry():
    assert set(ORDER_TRANSITIONS) == set(ORDER_STATUSES)


@pytest.mark.parametrize("prev,new", list(itertools.product(ORDER_STATUSES, repeat=2)))
def test_verdict_matches_allow_list(prev, new):
    verdict = validate_transition(prev, new)
    if new in ORDER_TRANSITIONS[prev]:
        assert verdict.is_valid
        assert verdict.errors == []
    else:
        assert not verdict.is_valid
        assert verdict.errors == [f"Invalid transition from {prev} to {new}"]


@pytest.mark.parametrize("status", ["cancelled", "refunded"])
def test_terminal_statuses_accept_nothing(status):
    assert allowed_transitions(status) == frozenset()
    assert is_terminal(status)
    assert all(not validate_transition(status, s).is_valid for s in ORDER_STATUSES)


def test_returned_only_goes_to_refunded():
    assert allowed_transitions("returned") == frozenset({"refunded"})
    assert not is_terminal("returned")


def test_pending_to_confirmed_has_no_warnings():
    verdict = validate_transition("pending", "confirmed")
    assert verdict.is_valid
    assert verdict.errors == []
    assert verdict.warnings == []


def test_delivered_to_returned_warns_about_processing():
    verdict = validate_transition("delivered", "returned")
    assert verdict.is_valid
    assert any("additional processing" in w for w in verdict.warnings)


def test_completed_to_refunded_warns_about_special_handling():
    verdict = validate_transition("completed", "refunded")
    assert verdict.is_valid
    assert verdict.warnings == ["Refunding a completed order requires special handling"]


@pytest.mark.parametrize("prev", ["confirmed", "processing"])
def test_cancelling_in_progress_order_warns_about_inventory(prev):
    verdict = validate_transition(prev, "cancelled")
    assert verdict.is_valid
    assert verdict.warnings == ["Cancelling an order in progress may require inventory adjustments"]


def test_shipped_to_cancelled_is_rejected_but_still_warned():
    # shipped orders cannot be cancelled; the warning is informational only
    verdict = validate_transition("shipped", "cancelled")
    assert not verdict.is_valid
    assert verdict.warnings


def test_cancelled_to_processing_is_invalid():
    verdict = validate_transition("cancelled", "processing")
    assert not verdict.is_valid
    assert verdict.errors == ["Invalid transition from cancelled to processing"]


def test_unknown_previous_status_is_invalid():
    verdict = validate_transition("lost_in_mail", "delivered")
    assert not verdict.is_valid
    assert verdict.errors == ["Invalid transition from lost_in_mail to delivered"]


def test_enum_members_are_accepted():
    assert validate_transition(OrderStatus.SHIPPED, OrderStatus.DELIVERED).is_valid


def test_tables_are_read_only():
    with pytest.raises(TypeError):
        ORDER_TRANSITIONS["cancelled"] = frozenset({"pending"})


def test_payment_table_and_warnings():
    v = StatusTransitionValidator(EntityType.PAYMENT)
    assert v.validate(PaymentStatus.REJECTED, PaymentStatus.PENDING).is_valid
    assert not v.validate("cancelled", "paid").is_valid
    refund = v.validate("paid", "refunded")
    assert refund.is_valid
    assert refund.warnings == ["Refunding a paid order requires additional verification"]
    assert v.validate("confirmed", "cancelled").warnings == [
        "Cancelling a confirmed payment may require refund processing"
    ]


def test_checkout_session_table():
    v = StatusTransitionValidator("checkout")
    assert v.validate(CheckoutStatus.ACTIVE, CheckoutStatus.LOCKED).is_valid
    assert v.validate("locked", "completed").is_valid
    assert v.validate("locked", "active").is_valid
    assert not v.validate("completed", "active").is_valid
    assert is_terminal("expired", EntityType.CHECKOUT)
    assert v.allowed("pending") == frozenset({"active", "expired", "abandoned"})


def test_unknown_entity_is_a_programming_error():
    with pytest.raises(ValueError):
        validate_transition("pending", "confirmed", "invoice")
    with pytest.raises(ValueError):
        StatusTransitionValidator("invoice")


@pytest.mark.parametrize("prev,new,allowed", [
    ("pending", "cancelled", True),
    ("payment_pending", "cancelled", True),
    ("pending", "confirmed", False),
    ("confirmed", "cancelled", False),
    ("confirmed", "refunded", False),
    ("delivered", "returned", False),
])
def test_customer_requests_are_early_cancellations_only(prev, new, allowed):
    assert customer_may_request(prev, new) is allowed
