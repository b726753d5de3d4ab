"""
Order store: per-driver reads and the only write path for orders.status.

update_status reads the order, validates the transition, and persists it with a conditional
UPDATE keyed on the status it read. If a concurrent request changed the order in between, the
UPDATE matches no row and the caller gets ConcurrentModificationError and should refetch.
"""
import logging
from datetime import date, datetime

from driver_hub.clock import day_bounds, utcnow
from driver_hub.db import connection
from driver_hub.errors import (
    ConcurrentModificationError,
    IllegalTransitionError,
    MissingRequiredDataError,
    OrderNotFoundError,
)
from driver_hub.metrics import order_transitions_rejected_total, order_transitions_total
from driver_hub.models import Order
from driver_hub.notifications import announce, insert_notification
from driver_hub.order_state import (
    MISSING_PROOF,
    OrderStatus,
    TERMINAL_STATUSES,
    TransitionDecision,
    TransitionMetadata,
    check_transition,
)

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = frozenset({
    OrderStatus.CONFIRMED,
    OrderStatus.ACCEPTED,
    OrderStatus.PICKED_UP,
    OrderStatus.ON_WAY,
    OrderStatus.REACHED,
})


async def get_order(pool, order_id: int, driver_id: int) -> Order:
    async with connection(pool) as conn:
        row = await conn.fetchrow(
            "SELECT * FROM orders WHERE id = $1 AND driver_id = $2;",
            order_id,
            driver_id,
        )
    if row is None:
        raise OrderNotFoundError(order_id)
    return Order.from_record(row)


async def list_orders(pool, driver_id: int, day: date) -> dict[str, list[Order]]:
    """Orders created on `day` (local time), grouped for the orders tab view."""
    start, end = day_bounds(day)
    async with connection(pool) as conn:
        rows = await conn.fetch(
            """
            SELECT * FROM orders
            WHERE driver_id = $1 AND created_at >= $2 AND created_at < $3
            ORDER BY created_at DESC;
            """,
            driver_id,
            start,
            end,
        )
    grouped: dict[str, list[Order]] = {"active": [], "completed": [], "cancelled": []}
    for row in rows:
        order = Order.from_record(row)
        if order.status in ACTIVE_STATUSES:
            grouped["active"].append(order)
        elif order.status == OrderStatus.DELIVERED:
            grouped["completed"].append(order)
        else:
            grouped["cancelled"].append(order)
    return grouped


async def recent_activity(pool, driver_id: int, limit: int = 3) -> list[Order]:
    async with connection(pool) as conn:
        rows = await conn.fetch(
            "SELECT * FROM orders WHERE driver_id = $1 ORDER BY created_at DESC LIMIT $2;",
            driver_id,
            limit,
        )
    return [Order.from_record(r) for r in rows]


def _reject(current: OrderStatus, requested: OrderStatus, reason: str) -> None:
    order_transitions_rejected_total.labels(
        current_status=current.value,
        requested_status=requested.value,
        reason=reason,
    ).inc()


def ensure_transition(
    order: Order,
    new_status: OrderStatus,
    metadata: TransitionMetadata | None = None,
) -> TransitionDecision:
    """Run the validator for `order`; raises the typed error for a denied transition."""
    decision = check_transition(order.status, new_status, metadata)
    if decision.allowed:
        return decision
    _reject(order.status, new_status, decision.reason)
    logger.info(
        "Rejected order_id=%s %s -> %s: %s",
        order.id, order.status.value, new_status.value, decision.reason,
    )
    if decision.reason == MISSING_PROOF:
        raise MissingRequiredDataError(
            "delivery method and photo proof are required to deliver",
            reason=MISSING_PROOF,
        )
    raise IllegalTransitionError(order.status.value, new_status.value)


async def update_status(
    pool,
    order_id: int,
    driver_id: int,
    new_status: OrderStatus,
    metadata: TransitionMetadata | None = None,
    now: datetime | None = None,
) -> Order:
    """
    Validate and persist one status change. Returns the updated order.
    - delivered: also sets completion_time, remark (delivery method) and photo_proof.
    - cancelled: also sets remark (cancel reason).
    - same status as current (non-terminal): no write, current order returned.
    Raises OrderNotFoundError, IllegalTransitionError, MissingRequiredDataError,
    ConcurrentModificationError.
    """
    metadata = metadata or TransitionMetadata()
    now = now or utcnow()
    notification = None

    async with connection(pool) as conn:
        async with conn.transaction():
            row = await conn.fetchrow(
                "SELECT * FROM orders WHERE id = $1 AND driver_id = $2;",
                order_id,
                driver_id,
            )
            if row is None:
                raise OrderNotFoundError(order_id)
            current = Order.from_record(row)

            decision = ensure_transition(current, new_status, metadata)
            if decision.noop:
                return current

            if new_status == OrderStatus.DELIVERED:
                updated = await conn.fetchrow(
                    """
                    UPDATE orders
                    SET status = $1, completion_time = $2, remark = $3, photo_proof = $4, updated_at = $2
                    WHERE id = $5 AND status = $6
                    RETURNING *;
                    """,
                    new_status.value,
                    now,
                    metadata.delivery_remark,
                    metadata.photo_proof.strip(),
                    order_id,
                    current.status.value,
                )
            elif new_status == OrderStatus.CANCELLED:
                updated = await conn.fetchrow(
                    """
                    UPDATE orders
                    SET status = $1, remark = $2, updated_at = $3
                    WHERE id = $4 AND status = $5
                    RETURNING *;
                    """,
                    new_status.value,
                    metadata.cancel_reason,
                    now,
                    order_id,
                    current.status.value,
                )
            else:
                updated = await conn.fetchrow(
                    """
                    UPDATE orders
                    SET status = $1, updated_at = $2
                    WHERE id = $3 AND status = $4
                    RETURNING *;
                    """,
                    new_status.value,
                    now,
                    order_id,
                    current.status.value,
                )
            if updated is None:
                _reject(current.status, new_status, ConcurrentModificationError.reason)
                logger.warning("Stale state on order_id=%s (expected %s)", order_id, current.status.value)
                raise ConcurrentModificationError(order_id, current.status.value)

            if new_status in TERMINAL_STATUSES:
                notification = await insert_notification(
                    conn,
                    driver_id,
                    "order",
                    f"Order #{order_id} {new_status.value}",
                    metadata.delivery_remark if new_status == OrderStatus.DELIVERED else metadata.cancel_reason,
                )

    if notification is not None:
        await announce(notification)
    order_transitions_total.labels(to_status=new_status.value).inc()
    logger.info("order_id=%s %s -> %s", order_id, current.status.value, new_status.value)
    return Order.from_record(updated)
