from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Any, List, Optional

from bson import ObjectId
from bson.errors import InvalidId

DAYS_PER_YEAR = 365.25


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def to_utc(value: Any) -> Optional[datetime]:
    """Coerce a stored date value into a timezone-aware UTC datetime.

    Documents written by different modules carry naive datetimes, aware
    datetimes, plain dates or ISO strings; anything else yields None.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return None


def id_str(value: Any) -> str:
    """Stringify an ObjectId/str reference; empty string for missing refs."""
    if value is None:
        return ""
    if isinstance(value, dict):
        return id_str(value.get("_id"))
    return str(value)


def maybe_object_id(value: str) -> Any:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return value


def safe_rate(part: float, total: float) -> float:
    """part / total, 0 when the denominator is 0."""
    if not total:
        return 0.0
    return part / total


def percent(part: float, total: float) -> int:
    return round(safe_rate(part, total) * 100)


def round1(value: float) -> float:
    return round(value * 10) / 10


def months_between(start: datetime, end: datetime) -> int:
    """Calendar month difference, ignoring the day of month."""
    return (end.year - start.year) * 12 + (end.month - start.month)


def years_between(start: Optional[datetime], end: datetime) -> float:
    if start is None:
        return 0.0
    return (end - start).total_seconds() / (DAYS_PER_YEAR * 24 * 3600)


def age_on(birth: datetime, today: datetime) -> int:
    age = today.year - birth.year
    if (today.month, today.day) < (birth.month, birth.day):
        age -= 1
    return age


def month_start(dt: datetime, offset: int = 0) -> datetime:
    """First instant of the month `offset` months away from `dt`'s month."""
    index = dt.year * 12 + (dt.month - 1) + offset
    return datetime(index // 12, index % 12 + 1, 1, tzinfo=timezone.utc)


def month_end(dt: datetime) -> datetime:
    """Last microsecond of `dt`'s month."""
    return month_start(dt, 1) - timedelta(microseconds=1)


def full_name(doc: Optional[dict], default: str = "Unknown") -> str:
    if not doc:
        return default
    if doc.get("full_name"):
        return doc["full_name"]
    name = f"{doc.get('first_name') or ''} {doc.get('last_name') or ''}".strip()
    return name or default


def day_range(start: datetime, end: datetime) -> List[str]:
    """ISO dates of every calendar day touched by [start, end], oldest first."""
    first, last = start.date(), end.date()
    return [(first + timedelta(days=i)).isoformat() for i in range((last - first).days + 1)]
