"""JST <-> UTC conversion helpers

The backend stores and transmits every instant as a UTC ISO-8601 string.
The console displays and edits everything as Japan Standard Time wall-clock
values, so each helper here is one half of a JST/UTC pair:

    utc_to_jst_string        / jst_date_to_utc           calendar grid
    to_datetime_local_value  / from_datetime_local_value  <input type="datetime-local">
    to_date_value            / from_date_value            <input type="date">

Malformed input raises MalformedTimeError; nothing is silently replaced by
"now" or the epoch.
"""
from datetime import datetime, date, time, timezone
from typing import Union
from zoneinfo import ZoneInfo

JST = ZoneInfo("Asia/Tokyo")

DATETIME_LOCAL_FORMAT = "%Y-%m-%dT%H:%M"
DATE_FORMAT = "%Y-%m-%d"

DateLike = Union[datetime, date, str]


class MalformedTimeError(ValueError):
    """Raised when a timestamp or form value cannot be parsed"""
    pass


def parse_utc(value: str) -> datetime:
    """Parse an ISO string from the API into an aware UTC datetime.

    Strings without an offset are read as UTC, which is what the wire
    format promises.
    """
    if not isinstance(value, str) or not value.strip():
        raise MalformedTimeError(f"Invalid date string: {value!r}")

    text = value.strip()
    if text[-1] in ("Z", "z"):
        text = text[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise MalformedTimeError(f"Invalid date string: {value!r}") from None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _as_utc(value: Union[datetime, str]) -> datetime:
    if isinstance(value, str):
        return parse_utc(value)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    raise MalformedTimeError(f"Expected an ISO string or datetime, got {type(value).__name__}")


def to_utc_string(value: datetime) -> str:
    """Serialize an instant for the API: YYYY-MM-DDTHH:MM:SS[.mmm]Z"""
    dt = _as_utc(value)
    if dt.microsecond:
        return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"
    return dt.strftime("%Y-%m-%dT%H:%M:%SZ")


def _wall_clock(value: DateLike) -> datetime:
    # Any offset attached to the value is discarded: the caller vouches that
    # the wall-clock reading is JST.
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if isinstance(value, str) and value.strip():
        try:
            return datetime.fromisoformat(value.strip()).replace(tzinfo=None)
        except ValueError:
            pass
    raise MalformedTimeError(f"Invalid JST wall-clock value: {value!r}")


def utc_to_jst_string(utc: str) -> str:
    """'2025-09-29T10:30:00Z' -> '2025-09-29T19:30:00' (JST, no offset)"""
    return parse_utc(utc).astimezone(JST).strftime("%Y-%m-%dT%H:%M:%S")


def jst_date_to_utc(value: DateLike) -> str:
    """Read ``value`` as a JST wall-clock time and return the UTC ISO string"""
    return to_utc_string(_wall_clock(value).replace(tzinfo=JST))


def to_datetime_local_value(utc: Union[datetime, str]) -> str:
    return _as_utc(utc).astimezone(JST).strftime(DATETIME_LOCAL_FORMAT)


def from_datetime_local_value(local: str) -> str:
    """Convert a datetime-local input value (JST) to a UTC ISO string.

    A blank field stays blank so the form validator can report it as missing.
    """
    if not local:
        return ""
    for fmt in (DATETIME_LOCAL_FORMAT, DATETIME_LOCAL_FORMAT + ":%S"):
        try:
            parsed = datetime.strptime(local.strip(), fmt)
        except ValueError:
            continue
        return jst_date_to_utc(parsed)
    raise MalformedTimeError(f"Invalid datetime-local value: {local!r}")


def to_date_value(utc: Union[datetime, str]) -> str:
    return _as_utc(utc).astimezone(JST).strftime(DATE_FORMAT)


def from_date_value(jst_date: str) -> str:
    """Convert a date input value (JST) to the UTC instant of JST midnight"""
    if not jst_date:
        return ""
    try:
        parsed = datetime.strptime(jst_date.strip(), DATE_FORMAT)
    except ValueError:
        raise MalformedTimeError(f"Invalid date value: {jst_date!r}") from None
    return jst_date_to_utc(parsed)


def jst_day_start(day: date) -> datetime:
    return datetime.combine(day, time.min).replace(tzinfo=JST)


def jst_date_of(utc: Union[datetime, str]) -> date:
    return _as_utc(utc).astimezone(JST).date()


def format_jst(value: Union[datetime, str], fmt: str = "%Y-%m-%d %H:%M") -> str:
    return _as_utc(value).astimezone(JST).strftime(fmt)


def format_jst_with_label(value: Union[datetime, str], fmt: str = "%Y-%m-%d %H:%M") -> str:
    return format_jst(value, fmt) + " JST"


def format_date_jst(value: Union[datetime, str]) -> str:
    """'Apr 3, 2025' style date for lists and tables"""
    dt = _as_utc(value).astimezone(JST)
    return f"{dt:%b} {dt.day}, {dt.year}"


def format_datetime_jst(value: Union[datetime, str]) -> str:
    dt = _as_utc(value).astimezone(JST)
    return f"{dt:%b} {dt.day}, {dt.year} {dt:%H:%M}"
