"""
Earnings: exact Decimal sums of orders.total_amount by status set and created_at range.
The today/week/month/last-month cards all go through summarize(); only the range differs.
"""
from datetime import date, datetime, timedelta
from decimal import ROUND_DOWN, Decimal
from typing import Iterable

from pydantic import BaseModel

from driver_hub.clock import day_bounds, local_tz
from driver_hub.db import connection
from driver_hub.models import Record

# orders.status only admits lifecycle statuses. Legacy sets such as {"completed"} or
# {"paid"} from imported data are passed explicitly.
DEFAULT_EARNING_STATUSES = ("delivered",)
CENTS = Decimal("0.01")


class EarningEntry(Record):
    id: int
    status: str
    total_amount: Decimal
    payment_method: str | None = None
    created_at: datetime


class EarningsSummary(BaseModel):
    total: Decimal = Decimal("0")
    count: int = 0


def summarize(
    entries: Iterable[EarningEntry],
    statuses: Iterable[str],
    start: datetime,
    end: datetime,
) -> EarningsSummary:
    """Sum and count entries with status in `statuses` and start <= created_at < end."""
    wanted = set(statuses)
    total = Decimal("0")
    count = 0
    for e in entries:
        if e.status in wanted and start <= e.created_at < end:
            total += e.total_amount
            count += 1
    return EarningsSummary(total=total, count=count)


def truncate_amount(value: Decimal) -> str:
    """Presentation only: 349.759 -> "349.75"."""
    return str(Decimal(value).quantize(CENTS, rounding=ROUND_DOWN))


def _month_start(d: date) -> date:
    return d.replace(day=1)


def period_ranges(now: datetime, tz=None) -> dict[str, tuple[datetime, datetime]]:
    """Local-calendar windows: today, week (starting Sunday), month, last_month."""
    tz = tz or local_tz()
    today = now.astimezone(tz).date()
    week_start = today - timedelta(days=(today.weekday() + 1) % 7)
    month_start = _month_start(today)
    next_month = _month_start(month_start + timedelta(days=32))
    last_month = _month_start(month_start - timedelta(days=1))
    return {
        "today": day_bounds(today, tz),
        "week": (day_bounds(week_start, tz)[0], day_bounds(week_start + timedelta(days=7), tz)[0]),
        "month": (day_bounds(month_start, tz)[0], day_bounds(next_month, tz)[0]),
        "last_month": (day_bounds(last_month, tz)[0], day_bounds(month_start, tz)[0]),
    }


async def fetch_entries(
    pool,
    driver_id: int,
    statuses: Iterable[str],
    start: datetime,
    end: datetime,
) -> list[EarningEntry]:
    async with connection(pool) as conn:
        rows = await conn.fetch(
            """
            SELECT id, status, total_amount, payment_method, created_at FROM orders
            WHERE driver_id = $1 AND status = ANY($2::text[])
              AND created_at >= $3 AND created_at < $4
            ORDER BY created_at DESC;
            """,
            driver_id,
            list(statuses),
            start,
            end,
        )
    return [EarningEntry.from_record(r) for r in rows]


async def earnings_summary(
    pool,
    driver_id: int,
    now: datetime,
    statuses: Iterable[str] = DEFAULT_EARNING_STATUSES,
) -> dict[str, EarningsSummary]:
    """One query spanning last month through the end of this month, then one summarize() per card."""
    statuses = tuple(statuses)
    ranges = period_ranges(now)
    lo = min(start for start, _ in ranges.values())
    hi = max(end for _, end in ranges.values())
    entries = await fetch_entries(pool, driver_id, statuses, lo, hi)
    return {name: summarize(entries, statuses, start, end) for name, (start, end) in ranges.items()}
