from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from driver_hub.config import settings


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def local_tz() -> ZoneInfo:
    return ZoneInfo(settings.timezone)


def day_bounds(day: date, tz=None) -> tuple[datetime, datetime]:
    """[local midnight of day, local midnight of the next day) as aware datetimes."""
    tz = tz or local_tz()
    start = datetime.combine(day, time.min, tzinfo=tz)
    return start, datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)


def localize(value: datetime) -> datetime:
    """Naive datetimes from query strings are wall-clock times in the configured zone."""
    return value if value.tzinfo else value.replace(tzinfo=local_tz())
