# school_attendance/backend/modules/school_calendar.py

from datetime import date, datetime, time, tzinfo
from typing import Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..config.config import settings

END_OF_DAY = time(23, 59, 59, 999000)


class InvalidDateError(ValueError):
    """Raised when a query date cannot be parsed."""
    pass


def school_timezone() -> Optional[tzinfo]:
    """
    The zone calendar days are computed in. None means the server's local zone.
    An unknown zone name is a configuration error (ValueError), not a bad date.
    """
    if not settings.SCHOOL_TIMEZONE:
        return None
    try:
        return ZoneInfo(settings.SCHOOL_TIMEZONE)
    except ZoneInfoNotFoundError:
        raise ValueError(f"Unknown SCHOOL_TIMEZONE '{settings.SCHOOL_TIMEZONE}'.") from None


def to_local(moment: datetime, tz: Optional[tzinfo] = None) -> datetime:
    """
    Converts an instant to local wall-clock time. Naive datetimes are taken to
    already be local and only gain a zone.
    """
    tz = tz or school_timezone()
    if moment.tzinfo is None:
        return moment.replace(tzinfo=tz) if tz else moment.astimezone()
    return moment.astimezone(tz)


def local_day(moment: datetime, tz: Optional[tzinfo] = None) -> date:
    """Calendar day of an instant in local time (not UTC)."""
    return to_local(moment, tz).date()


def _localize(naive: datetime, tz: Optional[tzinfo]) -> datetime:
    # astimezone() on a naive value resolves the server's zone for that exact
    # wall-clock time, so DST changes are respected
    return naive.replace(tzinfo=tz) if tz else naive.astimezone()


def day_bounds(day: date, tz: Optional[tzinfo] = None) -> Tuple[datetime, datetime]:
    """
    First and last millisecond of a local calendar day: 00:00:00.000 and 23:59:59.999.
    """
    tz = tz or school_timezone()
    start = _localize(datetime.combine(day, time.min), tz)
    end = _localize(datetime.combine(day, END_OF_DAY), tz)
    return start, end


def range_bounds(start_day: date, end_day: date, tz: Optional[tzinfo] = None) -> Tuple[datetime, datetime]:
    """From the start of start_day to the end of end_day, both inclusive."""
    if end_day < start_day:
        raise InvalidDateError("End date must not be before start date.")
    start, _ = day_bounds(start_day, tz)
    _, end = day_bounds(end_day, tz)
    return start, end


def parse_query_date(value: str, tz: Optional[tzinfo] = None) -> date:
    """
    Turns a query parameter into a local calendar day.

    Accepts '2024-03-01' as well as full ISO datetimes such as the
    '2024-03-01T04:00:00.000Z' a browser sends; those are converted to local
    time before the day is taken.
    """
    if not value or not value.strip():
        raise InvalidDateError("Date is required.")
    text = value.strip()
    try:
        if "T" not in text and " " not in text:
            return date.fromisoformat(text)
        return local_day(datetime.fromisoformat(text.replace("Z", "+00:00")), tz)
    except ValueError:
        raise InvalidDateError(f"Invalid date format '{value}'. Please use ISO format.")


def query_bounds(
    day: Optional[str] = None,
    start_day: Optional[str] = None,
    end_day: Optional[str] = None,
    tz: Optional[tzinfo] = None,
) -> Optional[Tuple[datetime, datetime]]:
    """
    Resolves the optional 'date' or 'startDate'/'endDate' query parameters into
    an inclusive instant range. A single day wins over a range; no parameters
    give None. A range needs both ends.
    """
    if day:
        return day_bounds(parse_query_date(day, tz), tz)
    if start_day or end_day:
        if not (start_day and end_day):
            raise InvalidDateError("Both startDate and endDate are required for a date range.")
        return range_bounds(parse_query_date(start_day, tz), parse_query_date(end_day, tz), tz)
    return None
