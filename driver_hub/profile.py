"""
Driver profile and customer reviews.
"""
import logging

from pydantic import BaseModel

from driver_hub.db import connection
from driver_hub.errors import DriverNotFoundError
from driver_hub.models import Driver, Review

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("full_name", "phone", "vehicle_number", "vehicle_type")


class ReviewSummary(BaseModel):
    average_rating: float | None
    total_reviews: int
    reviews: list[Review]


async def get_profile(pool, driver_id: int) -> Driver:
    async with connection(pool) as conn:
        row = await conn.fetchrow("SELECT * FROM users WHERE id = $1;", driver_id)
    if row is None:
        raise DriverNotFoundError(f"driver {driver_id} not found")
    return Driver.from_record(row)


async def update_profile(pool, driver_id: int, changes: dict) -> Driver:
    """Update the editable subset of `changes`; other keys are ignored."""
    fields = [k for k in EDITABLE_FIELDS if k in changes]
    if not fields:
        return await get_profile(pool, driver_id)
    assignments = ", ".join(f"{name} = ${i}" for i, name in enumerate(fields, start=2))
    async with connection(pool) as conn:
        row = await conn.fetchrow(
            f"UPDATE users SET {assignments} WHERE id = $1 RETURNING *;",
            driver_id,
            *[changes[k] for k in fields],
        )
    if row is None:
        raise DriverNotFoundError(f"driver {driver_id} not found")
    logger.info("Updated profile of driver_id=%s (%s)", driver_id, ", ".join(fields))
    return Driver.from_record(row)


async def set_photo(pool, driver_id: int, key: str) -> Driver:
    async with connection(pool) as conn:
        row = await conn.fetchrow(
            "UPDATE users SET photo = $2 WHERE id = $1 RETURNING *;",
            driver_id,
            key,
        )
    if row is None:
        raise DriverNotFoundError(f"driver {driver_id} not found")
    return Driver.from_record(row)


def summarize_reviews(reviews: list[Review]) -> ReviewSummary:
    average = round(sum(r.rating for r in reviews) / len(reviews), 1) if reviews else None
    return ReviewSummary(average_rating=average, total_reviews=len(reviews), reviews=reviews)


async def list_reviews(pool, driver_id: int, rating: int | None = None) -> list[Review]:
    async with connection(pool) as conn:
        if rating is None:
            rows = await conn.fetch(
                "SELECT * FROM user_reviews WHERE user_id = $1 ORDER BY created_at DESC;",
                driver_id,
            )
        else:
            rows = await conn.fetch(
                "SELECT * FROM user_reviews WHERE user_id = $1 AND rating = $2 ORDER BY created_at DESC;",
                driver_id,
                rating,
            )
    return [Review.from_record(r) for r in rows]
