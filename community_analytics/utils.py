from datetime import datetime, timedelta, timezone
from typing import Optional

from dateutil.relativedelta import relativedelta


def utcnow() -> datetime:
    """Current time as a naive UTC datetime, the form stored in the database."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def period_start(time_period: str, end: Optional[datetime] = None) -> datetime:
    """
    Start of the reporting window ending at `end`.

    Months and years are calendar steps; unknown periods fall back to a week.
    """
    end = end or utcnow()
    if time_period == "day":
        return end - timedelta(days=1)
    if time_period == "month":
        return end - relativedelta(months=1)
    if time_period == "quarter":
        return end - relativedelta(months=3)
    if time_period == "year":
        return end - relativedelta(years=1)
    return end - timedelta(days=7)


def clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))
