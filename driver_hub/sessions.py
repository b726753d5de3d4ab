"""
Driver mode (on/off duty) and time-on-duty aggregation.

A driver has at most one open session (end_time IS NULL), enforced by a partial unique index.
Open sessions may be closed at any time by the nightly driver-mode-off job, so nothing here
caches session rows: every aggregate is computed from rows the caller just fetched.
"""
import logging
from datetime import datetime, timedelta

from pydantic import BaseModel

from driver_hub.clock import local_tz, utcnow
from driver_hub.db import connection
from driver_hub.metrics import duty_toggles_total
from driver_hub.models import DriverSession

logger = logging.getLogger(__name__)

STATS_PERIODS = {
    "week": timedelta(days=7),
    "month": timedelta(days=30),
    "year": timedelta(days=365),
}


def active_minutes(
    sessions: list[DriverSession],
    window_start: datetime,
    window_end: datetime,
    now: datetime,
) -> float:
    """Minutes on duty inside [window_start, window_end). Open sessions count up to now."""
    total = timedelta()
    for s in sessions:
        end = min(s.end_time or now, window_end)
        start = max(s.start_time, window_start)
        if end > start:
            total += end - start
    return total.total_seconds() / 60


class DailyHours(BaseModel):
    date: str
    hours: float


class TimeStats(BaseModel):
    total_hours: float
    average_daily: float
    longest_session: float
    total_sessions: int
    today_hours: float
    today_sessions: int
    last_7_days: list[DailyHours]


def _hours(s: DriverSession) -> float:
    return (s.end_time - s.start_time).total_seconds() / 3600


def time_stats(sessions: list[DriverSession], now: datetime, tz=None) -> TimeStats:
    """Track-time summary over completed sessions, bucketed by local start date."""
    tz = tz or local_tz()
    completed = [s for s in sessions if s.end_time is not None]
    today = now.astimezone(tz).date()

    daily: dict = {}
    for s in completed:
        day = s.start_time.astimezone(tz).date()
        daily[day] = daily.get(day, 0.0) + _hours(s)

    total = sum(daily.values())
    today_sessions = [s for s in completed if s.start_time.astimezone(tz).date() == today]
    last_7 = [today - timedelta(days=i) for i in range(6, -1, -1)]
    return TimeStats(
        total_hours=round(total, 1),
        average_daily=round(total / len(daily), 1) if daily else 0.0,
        longest_session=round(max((_hours(s) for s in completed), default=0.0), 1),
        total_sessions=len(completed),
        today_hours=round(sum(_hours(s) for s in today_sessions), 1),
        today_sessions=len(today_sessions),
        last_7_days=[DailyHours(date=d.isoformat(), hours=round(daily.get(d, 0.0), 1)) for d in last_7],
    )


async def fetch_sessions(pool, driver_id: int, window_start: datetime, window_end: datetime) -> list[DriverSession]:
    """Sessions overlapping [window_start, window_end), oldest first."""
    async with connection(pool) as conn:
        rows = await conn.fetch(
            """
            SELECT * FROM driver_sessions
            WHERE user_id = $1
              AND start_time < $3
              AND (end_time IS NULL OR end_time > $2)
            ORDER BY start_time ASC;
            """,
            driver_id,
            window_start,
            window_end,
        )
    return [DriverSession.from_record(r) for r in rows]


async def get_open_session(pool, driver_id: int) -> DriverSession | None:
    async with connection(pool) as conn:
        row = await conn.fetchrow(
            "SELECT * FROM driver_sessions WHERE user_id = $1 AND end_time IS NULL;",
            driver_id,
        )
    return DriverSession.from_record(row) if row else None


async def go_on_duty(pool, driver_id: int, now: datetime | None = None) -> DriverSession:
    """Open a session unless one is already open; returns the open session either way."""
    now = now or utcnow()
    async with connection(pool) as conn:
        async with conn.transaction():
            row = await conn.fetchrow(
                """
                INSERT INTO driver_sessions (user_id, start_time)
                VALUES ($1, $2)
                ON CONFLICT (user_id) WHERE end_time IS NULL DO NOTHING
                RETURNING *;
                """,
                driver_id,
                now,
            )
            if row is None:
                row = await conn.fetchrow(
                    "SELECT * FROM driver_sessions WHERE user_id = $1 AND end_time IS NULL;",
                    driver_id,
                )
            else:
                duty_toggles_total.labels(direction="on").inc()
                logger.info("driver_id=%s on duty (session_id=%s)", driver_id, row["id"])
            await conn.execute("UPDATE users SET is_active = TRUE WHERE id = $1;", driver_id)
    return DriverSession.from_record(row)


async def go_off_duty(pool, driver_id: int, now: datetime | None = None) -> DriverSession | None:
    """Close the open session. Returns None if it was already closed (e.g. by the nightly job)."""
    now = now or utcnow()
    async with connection(pool) as conn:
        async with conn.transaction():
            row = await conn.fetchrow(
                """
                UPDATE driver_sessions SET end_time = $2
                WHERE user_id = $1 AND end_time IS NULL
                RETURNING *;
                """,
                driver_id,
                now,
            )
            await conn.execute("UPDATE users SET is_active = FALSE WHERE id = $1;", driver_id)
    if row is None:
        logger.info("driver_id=%s off duty: no open session", driver_id)
        return None
    duty_toggles_total.labels(direction="off").inc()
    logger.info("driver_id=%s off duty (session_id=%s)", driver_id, row["id"])
    return DriverSession.from_record(row)
