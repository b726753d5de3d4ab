from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from driver_hub.auth import current_driver_id
from driver_hub.clock import day_bounds, local_tz, localize, utcnow
from driver_hub.db import get_pool
from driver_hub.models import DriverSession
from driver_hub.sessions import (
    STATS_PERIODS,
    TimeStats,
    active_minutes,
    fetch_sessions,
    get_open_session,
    go_off_duty,
    go_on_duty,
    time_stats,
)

router = APIRouter(prefix="/duty", tags=["duty"])


class DutyState(BaseModel):
    on_duty: bool
    session: DriverSession | None = None


class ActiveTime(BaseModel):
    start: datetime
    end: datetime
    minutes: float


@router.get("")
async def duty_state(driver_id: int = Depends(current_driver_id), pool=Depends(get_pool)) -> DutyState:
    """Whether the driver has an open session, for the duty toggle."""
    session = await get_open_session(pool, driver_id)
    return DutyState(on_duty=session is not None, session=session)


@router.post("/on")
async def duty_on(driver_id: int = Depends(current_driver_id), pool=Depends(get_pool)) -> DutyState:
    session = await go_on_duty(pool, driver_id)
    return DutyState(on_duty=True, session=session)


@router.post("/off")
async def duty_off(driver_id: int = Depends(current_driver_id), pool=Depends(get_pool)) -> DutyState:
    session = await go_off_duty(pool, driver_id)
    return DutyState(on_duty=False, session=session)


@router.get("/active-time")
async def active_time(
    start: datetime | None = None,
    end: datetime | None = None,
    driver_id: int = Depends(current_driver_id),
    pool=Depends(get_pool),
) -> ActiveTime:
    """Minutes on duty in [start, end). Defaults to today in the configured timezone."""
    now = utcnow()
    if start is None or end is None:
        start, end = day_bounds(now.astimezone(local_tz()).date())
    start, end = localize(start), localize(end)
    if end <= start:
        raise HTTPException(status_code=422, detail="end must be after start")
    sessions = await fetch_sessions(pool, driver_id, start, end)
    return ActiveTime(start=start, end=end, minutes=active_minutes(sessions, start, end, now))


@router.get("/stats")
async def stats(
    period: Literal["week", "month", "year"] = "week",
    driver_id: int = Depends(current_driver_id),
    pool=Depends(get_pool),
) -> TimeStats:
    now = utcnow()
    sessions = await fetch_sessions(pool, driver_id, now - STATS_PERIODS[period], now)
    return time_stats(sessions, now)
