import calendar
import datetime
import time
import zoneinfo
from typing import Optional

from prayer_gateway.services.helpers.constants import EARLIEST_TIMEZONE

API_DATE_FORMAT = "%d-%m-%Y"
_ACCEPTED_DATE_FORMATS = (API_DATE_FORMAT, "%Y-%m-%d")


def now_timestamp() -> float:
    """Current Unix time. Kept as a seam so cache expiry can be tested."""
    return time.time()


def parse_time_str(time_str: Optional[str]) -> Optional[datetime.time]:
    """
    Parses an upstream time string into a datetime.time object.
    Accepts "HH:MM", "HH:MM:SS" and a trailing timezone label such as "05:12 (EET)".
    Returns None if parsing fails.
    """
    if not time_str or time_str.lower() == "n/a":
        return None

    cleaned = time_str.strip().split(' ')[0]
    for fmt in ("%H:%M", "%H:%M:%S"):
        try:
            return datetime.datetime.strptime(cleaned, fmt).time()
        except ValueError:
            continue
    return None


def format_time_internal(time_obj: Optional[datetime.time]) -> str:
    """
    Formats a datetime.time object into a HH:MM string.
    Returns "N/A" if time_obj is None.
    """
    if not time_obj:
        return "N/A"
    return time_obj.strftime("%H:%M")


def parse_request_date(date_str: str) -> Optional[datetime.date]:
    """
    Parses a date from a request path. Both the upstream style (DD-MM-YYYY)
    and ISO (YYYY-MM-DD) are accepted. Returns None if neither matches.
    """
    if not date_str:
        return None
    for fmt in _ACCEPTED_DATE_FORMATS:
        try:
            return datetime.datetime.strptime(date_str.strip(), fmt).date()
        except ValueError:
            continue
    return None


def format_api_date(date_obj: datetime.date) -> str:
    return date_obj.strftime(API_DATE_FORMAT)


def resolve_timezone(timezone_name: Optional[str]) -> zoneinfo.ZoneInfo:
    """
    Returns the ZoneInfo for an IANA name. Unknown or missing names resolve to the
    earliest timezone on Earth (UTC+14), whose days end before any other.
    """
    if timezone_name:
        try:
            return zoneinfo.ZoneInfo(timezone_name)
        except (zoneinfo.ZoneInfoNotFoundError, ValueError):
            pass
    return zoneinfo.ZoneInfo(EARLIEST_TIMEZONE)


def end_of_local_day_timestamp(date_obj: datetime.date, timezone_name: Optional[str]) -> int:
    """
    Unix timestamp of the first instant after `date_obj` ends in the given timezone,
    i.e. local midnight at the start of the following day.
    """
    tz = resolve_timezone(timezone_name)
    next_midnight = datetime.datetime.combine(date_obj + datetime.timedelta(days=1), datetime.time.min, tzinfo=tz)
    return int(next_midnight.timestamp())


def end_of_local_month_timestamp(year: int, month: int, timezone_name: Optional[str]) -> int:
    """Unix timestamp at which the last day of the given month ends locally."""
    last_day = calendar.monthrange(year, month)[1]
    return end_of_local_day_timestamp(datetime.date(year, month, last_day), timezone_name)
