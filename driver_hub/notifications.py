"""
Notification records for drivers. The service only writes and reads rows; delivery to the
device is done by an external dispatcher that consumes queue:notifications.
"""
import logging

from driver_hub.db import connection
from driver_hub.errors import NotificationNotFoundError
from driver_hub.metrics import notifications_created_total
from driver_hub.models import Notification
from driver_hub.queue import push_notification

logger = logging.getLogger(__name__)

NOTIFICATION_TYPES = ("order", "payment", "penalty", "system")


async def insert_notification(conn, driver_id: int, notification_type: str, title: str, message: str | None) -> Notification:
    """Insert on an already-acquired connection so callers can include it in their transaction."""
    if notification_type not in NOTIFICATION_TYPES:
        raise ValueError(f"unknown notification type: {notification_type}")
    row = await conn.fetchrow(
        """
        INSERT INTO notifications (recipient_id, recipient_type, type, title, message)
        VALUES ($1, 'driver', $2, $3, $4)
        RETURNING *;
        """,
        driver_id,
        notification_type,
        title,
        message,
    )
    notifications_created_total.labels(type=notification_type).inc()
    return Notification.from_record(row)


async def announce(notification: Notification) -> None:
    """Call after the inserting transaction has committed."""
    await push_notification(notification.id, notification.recipient_id, notification.type)


async def create_notification(pool, driver_id: int, notification_type: str, title: str, message: str | None = None) -> Notification:
    async with connection(pool) as conn:
        notification = await insert_notification(conn, driver_id, notification_type, title, message)
    await announce(notification)
    logger.info("Created %s notification_id=%s for driver_id=%s", notification_type, notification.id, driver_id)
    return notification


async def list_notifications(pool, driver_id: int, notification_type: str | None = None) -> list[Notification]:
    """Newest first, optionally restricted to one type."""
    async with connection(pool) as conn:
        if notification_type:
            rows = await conn.fetch(
                """
                SELECT * FROM notifications
                WHERE recipient_id = $1 AND recipient_type = 'driver' AND type = $2
                ORDER BY created_at DESC;
                """,
                driver_id,
                notification_type,
            )
        else:
            rows = await conn.fetch(
                """
                SELECT * FROM notifications
                WHERE recipient_id = $1 AND recipient_type = 'driver'
                ORDER BY created_at DESC;
                """,
                driver_id,
            )
    return [Notification.from_record(r) for r in rows]


async def mark_read(pool, notification_id: int, driver_id: int) -> Notification:
    async with connection(pool) as conn:
        row = await conn.fetchrow(
            """
            UPDATE notifications SET is_read = TRUE
            WHERE id = $1 AND recipient_id = $2 AND recipient_type = 'driver'
            RETURNING *;
            """,
            notification_id,
            driver_id,
        )
    if row is None:
        raise NotificationNotFoundError(notification_id)
    return Notification.from_record(row)
