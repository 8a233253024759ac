from datetime import date, datetime, timedelta, timezone, tzinfo

from ..config import get_settings


def local_zone() -> tzinfo:
    return get_settings().zone


def now_local(tz: tzinfo | None = None) -> datetime:
    return datetime.now(tz or local_zone())


def to_utc_naive(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        raise ValueError("datetime must be timezone-aware")
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def utc_naive_to_local(dt: datetime, tz: tzinfo | None = None) -> datetime:
    return dt.replace(tzinfo=timezone.utc).astimezone(tz or local_zone())


def school_week(anchor: date) -> list[date]:
    """Monday to Friday of the week containing ``anchor``."""
    monday = anchor - timedelta(days=anchor.weekday())
    return [monday + timedelta(days=i) for i in range(5)]


def shift_week(anchor: date, weeks: int) -> date:
    return anchor + timedelta(days=7 * weeks)
