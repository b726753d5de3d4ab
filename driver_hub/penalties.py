"""
Penalties are created by the moderation back office. Drivers can only read them and appeal.
"""
import logging
from datetime import datetime

from pydantic import BaseModel

from driver_hub.clock import utcnow
from driver_hub.db import connection
from driver_hub.errors import AppealNotAllowedError, MissingRequiredDataError, PenaltyNotFoundError
from driver_hub.metrics import penalty_appeals_total
from driver_hub.models import Penalty
from driver_hub.notifications import announce, insert_notification

logger = logging.getLogger(__name__)

RESOLVED = "Resolved"


def display_status(status: str, appeal_status: str) -> str:
    if appeal_status == "pending":
        return "Under Review"
    if appeal_status == "approved":
        return "Appealed Successfully"
    if status in ("processed", "pending"):
        return "Active"
    if status == "cancelled":
        return RESOLVED
    return status


class PenaltyView(BaseModel):
    penalty: Penalty
    display_status: str


async def list_penalties(pool, driver_id: int) -> dict[str, list[PenaltyView]]:
    async with connection(pool) as conn:
        rows = await conn.fetch(
            "SELECT * FROM penalties WHERE driver_id = $1 ORDER BY created_at DESC;",
            driver_id,
        )
    grouped: dict[str, list[PenaltyView]] = {"active": [], "resolved": []}
    for row in rows:
        p = Penalty.from_record(row)
        view = PenaltyView(penalty=p, display_status=display_status(p.status, p.appeal_status))
        grouped["resolved" if view.display_status == RESOLVED else "active"].append(view)
    return grouped


async def submit_appeal(
    pool,
    penalty_id: int,
    driver_id: int,
    reason: str,
    now: datetime | None = None,
) -> Penalty:
    reason = (reason or "").strip()
    if not reason:
        raise MissingRequiredDataError("an appeal reason is required")
    now = now or utcnow()

    async with connection(pool) as conn:
        async with conn.transaction():
            row = await conn.fetchrow(
                "SELECT * FROM penalties WHERE id = $1 AND driver_id = $2 FOR UPDATE;",
                penalty_id,
                driver_id,
            )
            if row is None:
                raise PenaltyNotFoundError(penalty_id)
            penalty = Penalty.from_record(row)
            if not penalty.can_appeal or penalty.appeal_status != "none" or penalty.status == "cancelled":
                raise AppealNotAllowedError(f"penalty {penalty_id} cannot be appealed")
            updated = await conn.fetchrow(
                """
                UPDATE penalties
                SET appeal_status = 'pending', appeal_reason = $2, updated_at = $3
                WHERE id = $1
                RETURNING *;
                """,
                penalty_id,
                reason,
                now,
            )
            notification = await insert_notification(
                conn,
                driver_id,
                "penalty",
                f"Appeal submitted for penalty #{penalty_id}",
                reason,
            )

    await announce(notification)
    penalty_appeals_total.inc()
    logger.info("Appeal submitted for penalty_id=%s by driver_id=%s", penalty_id, driver_id)
    return Penalty.from_record(updated)
