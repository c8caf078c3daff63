from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, List, Mapping, Tuple


class OrderStatus(str, Enum):
    PENDING = "pending"
    PAYMENT_PENDING = "payment_pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    RETURNED = "returned"
    PAYMENT_FAILED = "payment_failed"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PAID = "paid"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class CheckoutStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    LOCKED = "locked"
    COMPLETED = "completed"
    EXPIRED = "expired"
    ABANDONED = "abandoned"


class TriggeredBy(str, Enum):
    PAYMENT_CONFIRMATION = "payment_confirmation"
    MANUAL_UPDATE = "manual_update"
    SYSTEM = "system"
    CUSTOMER_REQUEST = "customer_request"
    ADMIN_ACTION = "admin_action"
    AUTOMATED_RULE = "automated_rule"


class EntityType(str, Enum):
    ORDER = "order"
    PAYMENT = "payment"
    CHECKOUT = "checkout"


def _freeze(table: Dict[Enum, Iterable[Enum]]) -> Mapping[str, FrozenSet[str]]:
    return MappingProxyType({src.value: frozenset(dst.value for dst in targets) for src, targets in table.items()})


_O = OrderStatus
ORDER_TRANSITIONS = _freeze({
    _O.PENDING: [_O.CONFIRMED, _O.CANCELLED, _O.PAYMENT_PENDING],
    _O.PAYMENT_PENDING: [_O.CONFIRMED, _O.CANCELLED, _O.PAYMENT_FAILED],
    _O.CONFIRMED: [_O.PROCESSING, _O.CANCELLED, _O.REFUNDED],
    _O.PROCESSING: [_O.SHIPPED, _O.CANCELLED, _O.REFUNDED],
    _O.SHIPPED: [_O.DELIVERED, _O.RETURNED, _O.REFUNDED],
    _O.DELIVERED: [_O.COMPLETED, _O.RETURNED, _O.REFUNDED],
    _O.COMPLETED: [_O.REFUNDED],
    _O.RETURNED: [_O.REFUNDED],
    _O.PAYMENT_FAILED: [_O.CANCELLED, _O.PAYMENT_PENDING],
    _O.CANCELLED: [],
    _O.REFUNDED: [],
})

_P = PaymentStatus
PAYMENT_TRANSITIONS = _freeze({
    _P.PENDING: [_P.CONFIRMED, _P.REJECTED, _P.CANCELLED],
    _P.CONFIRMED: [_P.PAID, _P.CANCELLED],
    _P.PAID: [_P.REFUNDED],
    _P.REJECTED: [_P.PENDING],  # retry
    _P.CANCELLED: [],
    _P.REFUNDED: [],
})

_C = CheckoutStatus
CHECKOUT_TRANSITIONS = _freeze({
    _C.PENDING: [_C.ACTIVE, _C.EXPIRED, _C.ABANDONED],
    _C.ACTIVE: [_C.LOCKED, _C.EXPIRED, _C.ABANDONED],
    # a locked session is released back to active when order creation fails
    _C.LOCKED: [_C.COMPLETED, _C.ACTIVE],
    _C.COMPLETED: [],
    _C.EXPIRED: [],
    _C.ABANDONED: [],
})

TRANSITIONS: Mapping[str, Mapping[str, FrozenSet[str]]] = MappingProxyType({
    EntityType.ORDER.value: ORDER_TRANSITIONS,
    EntityType.PAYMENT.value: PAYMENT_TRANSITIONS,
    EntityType.CHECKOUT.value: CHECKOUT_TRANSITIONS,
})

# the only change a customer may ask for on their own order
CUSTOMER_REQUESTS: Mapping[str, FrozenSet[str]] = _freeze({
    _O.PENDING: [_O.CANCELLED],
    _O.PAYMENT_PENDING: [_O.CANCELLED],
})


def customer_may_request(previous_status: str, new_status: str) -> bool:
    return new_status in CUSTOMER_REQUESTS.get(previous_status, frozenset())


# (source statuses, target status, warning text)
_WARNINGS: Mapping[str, Tuple[Tuple[FrozenSet[str], str, str], ...]] = MappingProxyType({
    EntityType.ORDER.value: (
        (frozenset({"delivered"}), "returned",
         "Returning a delivered order may require additional processing"),
        (frozenset({"completed"}), "refunded",
         "Refunding a completed order requires special handling"),
        (frozenset({"confirmed", "processing", "shipped"}), "cancelled",
         "Cancelling an order in progress may require inventory adjustments"),
    ),
    EntityType.PAYMENT.value: (
        (frozenset({"confirmed"}), "cancelled",
         "Cancelling a confirmed payment may require refund processing"),
        (frozenset({"paid"}), "refunded",
         "Refunding a paid order requires additional verification"),
    ),
    EntityType.CHECKOUT.value: (),
})


@dataclass
class TransitionValidation:
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        return {"is_valid": self.is_valid, "errors": list(self.errors), "warnings": list(self.warnings)}


def _value(v) -> str:
    return v.value if isinstance(v, Enum) else str(v or "")


def _table(entity) -> Mapping[str, FrozenSet[str]]:
    key = _value(entity)
    try:
        return TRANSITIONS[key]
    except KeyError:
        raise ValueError(f"Unknown entity type: {key!r}") from None


def allowed_transitions(status, entity=EntityType.ORDER) -> FrozenSet[str]:
    """Statuses reachable from `status` in one step (empty for unknown or terminal statuses)."""
    return _table(entity).get(_value(status), frozenset())


def is_terminal(status, entity=EntityType.ORDER) -> bool:
    table = _table(entity)
    key = _value(status)
    return key in table and not table[key]


def validate_transition(previous_status, new_status, entity=EntityType.ORDER) -> TransitionValidation:
    """
    Check a proposed status change against the allow-list for `entity`.
    Warnings flag transitions that need follow-up work but never make the
    verdict invalid. Holds no state between calls.
    """
    prev = _value(previous_status)
    new = _value(new_status)
    errors: List[str] = []
    warnings: List[str] = []

    if new not in allowed_transitions(prev, entity):
        errors.append(f"Invalid transition from {prev} to {new}")

    for sources, target, message in _WARNINGS[_value(entity)]:
        if new == target and prev in sources:
            warnings.append(message)

    return TransitionValidation(is_valid=not errors, errors=errors, warnings=warnings)


class StatusTransitionValidator:
    """
    Validator bound to one entity type.

    Usage:
      validator = StatusTransitionValidator()            # orders
      verdict = validator.validate("pending", "confirmed")
      if not verdict.is_valid: ...
    """

    def __init__(self, entity=EntityType.ORDER):
        _table(entity)
        self.entity = EntityType(_value(entity))

    def validate(self, previous_status, new_status) -> TransitionValidation:
        return validate_transition(previous_status, new_status, self.entity)

    def allowed(self, status) -> FrozenSet[str]:
        return allowed_transitions(status, self.entity)
