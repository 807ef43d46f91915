from datetime import date, datetime, timedelta
from typing import Tuple, Union
from pytz import UTC


def utc_now() -> datetime:
    """
    Current UTC time as a naive datetime, the form pymongo stores and returns.
    Wrapped so tests can patch it.
    """
    return datetime.now(UTC).replace(tzinfo=None)


def as_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone(UTC).replace(tzinfo=None)
    return value


def start_of_day(value: Union[date, datetime]) -> datetime:
    if isinstance(value, datetime):
        value = as_naive_utc(value).date()
    return datetime(value.year, value.month, value.day)


def day_window(value: Union[date, datetime, None] = None) -> Tuple[datetime, datetime]:
    """Returns [00:00Z, next 00:00Z) for the given day, or for today when omitted."""
    start = start_of_day(value if value is not None else utc_now())
    return start, start + timedelta(days=1)


def start_of_week(value: datetime) -> datetime:
    """Sunday 00:00Z of the week containing value."""
    day = start_of_day(value)
    return day - timedelta(days=day.isoweekday() % 7)


def mongo_day_of_week(value: datetime) -> int:
    # 1 = Sunday ... 7 = Saturday, as MongoDB's $dayOfWeek
    return value.isoweekday() % 7 + 1
