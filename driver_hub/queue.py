"""
Hand notification records to the external push dispatcher: LPUSH a small JSON body onto a Redis list.
The dispatcher also polls the notifications table, so a failed push delays delivery but loses nothing.
"""
import json
import logging

import redis.asyncio as redis
from redis.exceptions import RedisError

from driver_hub.config import settings
from driver_hub.metrics import upstream_failures_total

logger = logging.getLogger(__name__)

_redis: redis.Redis | None = None


async def get_redis() -> redis.Redis:
    global _redis
    if _redis is None:
        _redis = redis.from_url(settings.redis_url, decode_responses=True)
    return _redis


async def close_redis() -> None:
    global _redis
    if _redis is not None:
        await _redis.aclose()
        _redis = None


def _make_body(notification_id: int, recipient_id: int, notification_type: str) -> dict:
    return {
        "notification_id": notification_id,
        "recipient_id": recipient_id,
        "recipient_type": "driver",
        "type": notification_type,
    }


async def push_notification(notification_id: int, recipient_id: int, notification_type: str) -> bool:
    """Returns False when Redis is unreachable (logged and counted, the row stays in the table)."""
    body = _make_body(notification_id, recipient_id, notification_type)
    try:
        r = await get_redis()
        await r.lpush(settings.notification_queue_key, json.dumps(body))
    except (RedisError, OSError) as e:
        upstream_failures_total.labels(service="redis").inc()
        logger.warning("Could not queue notification_id=%s for dispatch: %s", notification_id, e)
        return False
    return True
