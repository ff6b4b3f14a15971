"""Formatting utilities for display values and stored timestamps."""

import math
from datetime import date, datetime, timedelta

DB_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
SECONDS_PER_DAY = 86400


def format_currency(value: float) -> str:
    """Format a float as USD currency."""
    return f"${value:,.2f}"


def format_quantity(value: int, min_stock: int = 0,
                    unit: str = "") -> str:
    """Format a stock level, flagging empty and low stock."""
    text = f"{value} {unit}".strip()
    if value == 0:
        return f"{text} (OUT)"
    if min_stock > 0 and value <= min_stock:
        return f"{text} (LOW)"
    return text


def to_db_timestamp(value) -> str | None:
    """Normalize a date, datetime or ISO string to the stored format.

    Plain dates become midnight. Aware datetimes are converted to local
    time first so comparisons against ``datetime.now()`` line up.
    """
    if value is None or value == "":
        return None
    if isinstance(value, str):
        text = value.strip().replace("Z", "+00:00")
        try:
            value = datetime.fromisoformat(text)
        except ValueError:
            raise ValueError(f"Invalid date/time: {value!r}") from None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone().replace(tzinfo=None)
        return value.strftime(DB_TIMESTAMP_FORMAT)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day).strftime(
            DB_TIMESTAMP_FORMAT
        )
    raise ValueError(f"Invalid date/time: {value!r}")


def parse_db_timestamp(value: str | None) -> datetime | None:
    """Parse a stored timestamp back into a naive datetime."""
    if not value:
        return None
    return datetime.fromisoformat(str(value))


def now_timestamp(now: datetime | None = None) -> str:
    return to_db_timestamp(now or datetime.now())


def days_until(target: datetime, now: datetime) -> int:
    """Whole days until *target*, rounded up (partial days count)."""
    return math.ceil((target - now).total_seconds() / SECONDS_PER_DAY)


def add_days(value: str, days: int) -> str:
    """Shift a stored timestamp by *days* and return it in stored form."""
    return to_db_timestamp(parse_db_timestamp(value) + timedelta(days=days))
