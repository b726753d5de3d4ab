from datetime import datetime
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from driver_hub.auth import current_driver_id
from driver_hub.clock import localize, utcnow
from driver_hub.db import get_pool
from driver_hub.earnings import (
    DEFAULT_EARNING_STATUSES,
    EarningEntry,
    EarningsSummary,
    earnings_summary,
    fetch_entries,
    summarize,
    truncate_amount,
)

router = APIRouter(prefix="/earnings", tags=["earnings"])


class EarningsCard(BaseModel):
    total: Decimal
    count: int
    display_total: str

    @classmethod
    def from_summary(cls, summary: EarningsSummary) -> "EarningsCard":
        return cls(total=summary.total, count=summary.count, display_total=truncate_amount(summary.total))


class EarningsRange(BaseModel):
    summary: EarningsCard
    orders: list[EarningEntry]


@router.get("/summary")
async def summary(
    driver_id: int = Depends(current_driver_id),
    pool=Depends(get_pool),
) -> dict[str, EarningsCard]:
    """today, week, month and last_month cards."""
    cards = await earnings_summary(pool, driver_id, utcnow())
    return {name: EarningsCard.from_summary(s) for name, s in cards.items()}


@router.get("")
async def earnings_for_range(
    start: datetime,
    end: datetime,
    status: list[str] = Query(default=list(DEFAULT_EARNING_STATUSES)),
    driver_id: int = Depends(current_driver_id),
    pool=Depends(get_pool),
) -> EarningsRange:
    start, end = localize(start), localize(end)
    if end <= start:
        raise HTTPException(status_code=422, detail="end must be after start")
    entries = await fetch_entries(pool, driver_id, status, start, end)
    return EarningsRange(
        summary=EarningsCard.from_summary(summarize(entries, status, start, end)),
        orders=entries,
    )
