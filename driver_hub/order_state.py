"""
Order lifecycle state machine. The single source of truth for which status changes are legal.

    confirmed -> accepted -> on_way -> reached -> delivered
    any non-terminal status -> cancelled

picked_up only exists on rows written by older clients; it may continue to on_way.
"""
from dataclasses import dataclass
from enum import Enum


class OrderStatus(str, Enum):
    CONFIRMED = "confirmed"
    ACCEPTED = "accepted"
    PICKED_UP = "picked_up"
    ON_WAY = "on_way"
    REACHED = "reached"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})

# Current status -> allowed forward status (cancellation handled separately)
FORWARD_TRANSITIONS: dict[OrderStatus, OrderStatus] = {
    OrderStatus.CONFIRMED: OrderStatus.ACCEPTED,
    OrderStatus.ACCEPTED: OrderStatus.ON_WAY,
    OrderStatus.PICKED_UP: OrderStatus.ON_WAY,
    OrderStatus.ON_WAY: OrderStatus.REACHED,
    OrderStatus.REACHED: OrderStatus.DELIVERED,
}

ILLEGAL_TRANSITION = "illegal transition"
MISSING_PROOF = "missing proof"

OTHER_DELIVERY_METHOD = "other"


@dataclass(frozen=True)
class TransitionMetadata:
    delivery_method: str | None = None
    other_method: str | None = None
    photo_proof: str | None = None
    cancel_reason: str | None = None

    @property
    def delivery_remark(self) -> str | None:
        """Remark stored on delivery: the chosen method, or the free text for "other"."""
        if self.delivery_method == OTHER_DELIVERY_METHOD:
            return _clean(self.other_method)
        return _clean(self.delivery_method)


@dataclass(frozen=True)
class TransitionDecision:
    allowed: bool
    reason: str | None = None
    noop: bool = False


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def allowed_next(current: OrderStatus) -> list[OrderStatus]:
    """Statuses an order in `current` may move to."""
    if current in TERMINAL_STATUSES:
        return []
    nxt = [FORWARD_TRANSITIONS[current]] if current in FORWARD_TRANSITIONS else []
    return nxt + [OrderStatus.CANCELLED]


def is_valid_transition(current: OrderStatus, requested: OrderStatus) -> bool:
    """True if requested is a legal single step from current (same status excluded)."""
    return requested in allowed_next(current)


def check_transition(
    current: OrderStatus,
    requested: OrderStatus,
    metadata: TransitionMetadata | None = None,
) -> TransitionDecision:
    metadata = metadata or TransitionMetadata()
    if current in TERMINAL_STATUSES:
        return TransitionDecision(allowed=False, reason=ILLEGAL_TRANSITION)
    if current == requested:
        return TransitionDecision(allowed=True, noop=True)
    if not is_valid_transition(current, requested):
        return TransitionDecision(allowed=False, reason=ILLEGAL_TRANSITION)
    if requested == OrderStatus.DELIVERED:
        if not metadata.delivery_remark or not _clean(metadata.photo_proof):
            return TransitionDecision(allowed=False, reason=MISSING_PROOF)
    return TransitionDecision(allowed=True)
