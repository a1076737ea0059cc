"""Subscription domain rules."""
import calendar
from datetime import datetime, timezone
from enum import StrEnum


class SubscriptionStatus(StrEnum):
    """Subscription lifecycle status."""

    PENDING = "pending"
    ACTIVE = "active"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


# Statuses whose paid period still counts until end_date
ENTITLING_STATUSES = (SubscriptionStatus.ACTIVE, SubscriptionStatus.CANCELLED)


def ensure_aware(value: datetime) -> datetime:
    """Treat naive datetimes (as returned by SQLite) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def add_months(start: datetime, months: int) -> datetime:
    """Add calendar months, clamping the day to the end of the target month.

    >>> add_months(datetime(2026, 1, 31), 1)
    datetime.datetime(2026, 2, 28, 0, 0)
    """
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return start.replace(year=year, month=month, day=day)


def grants_access(status: str, end_date: datetime | None, now: datetime) -> bool:
    """Whether a subscription row entitles its owner at ``now``.

    A cancelled subscription keeps entitling until its untouched end_date.
    """
    if status not in ENTITLING_STATUSES or end_date is None:
        return False
    return ensure_aware(end_date) >= ensure_aware(now)


def effective_status(status: str, end_date: datetime | None, now: datetime) -> SubscriptionStatus:
    """Status as it should be reported at ``now``, regardless of sweep lag."""
    current = SubscriptionStatus(status)
    if (
        current == SubscriptionStatus.ACTIVE
        and end_date is not None
        and ensure_aware(end_date) < ensure_aware(now)
    ):
        return SubscriptionStatus.EXPIRED
    return current
