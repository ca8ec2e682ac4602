"""Time and date parsing shared by every date transform.

All parsers work on naive wall-clock datetimes in the site's timezone and take
an optional ``now`` so year inference and relative keywords are reproducible.
Conversion to a UTC ISO string happens last, in ``to_utc_iso``.

Failures raise ``DateParsingError``; callers drop the event rather than
substituting a placeholder date.
"""

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional

import pytz
from dateutil import parser as dateutil_parser
from dateutil.relativedelta import relativedelta

from gig_scrapers.data_quality.cleaning import normalize_whitespace
from gig_scrapers.errors import DateParsingError

logger = logging.getLogger(__name__)

MONTH_NAMES = [
    "january", "february", "march", "april", "may", "june",
    "july", "august", "september", "october", "november", "december",
]

MAX_MONTHS_AHEAD = 18

_ORDINAL = r"(?:st|nd|rd|th)?"
_DASH = r"\s*[-–—]\s*"

_RANGE_RE = re.compile(r"(\d{1,2}):(\d{2})" + _DASH + r"(\d{1,2}):(\d{2})")
_TIME_24_RE = re.compile(r"(\d{1,2}):(\d{2})$")
_TIME_12_RE = re.compile(r"(?:doors?:?\s*)?(\d{1,2})[:.]?(\d{2})?\s*([ap])\.?m\.?", re.IGNORECASE)
_RELATIVE_RE = re.compile(r"^(today|tomorrow)\b[\s,:@-]*(.*)$", re.IGNORECASE)
_DAY_MONTH_TIME_RE = re.compile(
    r"^([A-Za-z]+),?\s+(\d{1,2})" + _ORDINAL + r"\s+([A-Za-z]+)\.?,?\s+(\d{1,2}):(\d{2})(?:" + _DASH + r"\d{1,2}:\d{2})?$"
)
_DAY_MONTH_RE = re.compile(r"^(?:([A-Za-z]+),?\s+)?(\d{1,2})" + _ORDINAL + r"\s+([A-Za-z]+)\.?$")
_DATE_GROUP_RE = re.compile(r"^(?:([A-Za-z]+),?\s+)?(\d{1,2})" + _ORDINAL + r"\s+([A-Za-z]+)\.?(?:,?\s+(\d{4}))?(?:\s+.*)?$")
_COMPACT_RE = re.compile(r"^([A-Za-z]{3})\.(\d{1,2})\.([A-Za-z]{3,})\.(\d{2})$")
_EXPLICIT_YEAR_RE = re.compile(r"^(?:([A-Za-z]+),?\s+)?(\d{1,2})" + _ORDINAL + r"\s+([A-Za-z]+)\.?,?\s+(\d{4})$")
_YEAR_RE = re.compile(r"\b\d{4}\b")


@dataclass(frozen=True)
class TimeOfDay:
    hours: int
    minutes: int

    def __str__(self) -> str:
        return f"{self.hours:02d}:{self.minutes:02d}"


def get_month_index(name: str) -> Optional[int]:
    """1-based month for a full or abbreviated English month name ("Aug", "Sept", "August")."""
    lowered = name.strip().lower().rstrip(".")
    if len(lowered) < 3:
        return None
    for index, month in enumerate(MONTH_NAMES, start=1):
        if month.startswith(lowered):
            return index
    return None


def current_wall_clock(timezone_name: str = "UTC") -> datetime:
    """Naive "now" as seen on a wall clock in the given timezone."""
    return datetime.now(pytz.timezone(timezone_name)).replace(tzinfo=None)


def to_utc_iso(value: datetime, timezone_name: str = "UTC") -> str:
    """Format as ``YYYY-MM-DDTHH:MM:SS.mmmZ``; naive values are local to ``timezone_name``."""
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        value = pytz.timezone(timezone_name).localize(value)
    value = value.astimezone(pytz.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


# --- Time of day ---

def _to_24_hour(hours: int, minutes: int, period: str) -> TimeOfDay:
    period = period.lower()
    if period == "p" and hours != 12:
        hours += 12
    elif period == "a" and hours == 12:
        hours = 0
    return TimeOfDay(hours, minutes)


def parse_time(text: Optional[str]) -> Optional[TimeOfDay]:
    """Parse "19:30", "7:30 PM", "7pm", "Doors: 07:00" or the start of "13:00 - 14:45"."""
    if not text or not isinstance(text, str):
        return None
    clean = text.strip()

    match = _RANGE_RE.search(clean)
    if match:
        hours, minutes = int(match.group(1)), int(match.group(2))
        if hours <= 23 and minutes <= 59:
            return TimeOfDay(hours, minutes)

    match = _TIME_24_RE.search(clean)
    if match:
        hours, minutes = int(match.group(1)), int(match.group(2))
        if hours <= 23 and minutes <= 59:
            return TimeOfDay(hours, minutes)

    match = _TIME_12_RE.search(clean)
    if match:
        hours = int(match.group(1))
        minutes = int(match.group(2) or 0)
        if 1 <= hours <= 12 and minutes <= 59:
            return _to_24_hour(hours, minutes, match.group(3))

    logger.debug(f"Unable to parse time: '{text}'")
    return None


def _apply_time(value: datetime, time_text: Optional[str]) -> datetime:
    time_of_day = parse_time(time_text) if time_text else None
    if time_of_day:
        return value.replace(hour=time_of_day.hours, minute=time_of_day.minutes, second=0, microsecond=0)
    return value


# --- Calendar dates ---

def infer_year(month: int, day: int, now: datetime) -> int:
    """Current year, unless the month/day has already passed this year."""
    if month < now.month or (month == now.month and day < now.day):
        return now.year + 1
    return now.year


def build_date(month: int, day: int, hour: int = 12, minute: int = 0, now: Optional[datetime] = None) -> datetime:
    """Date without an explicit year, with inferred year and the 18-month sanity clamp."""
    now = now or current_wall_clock()
    try:
        candidate = datetime(infer_year(month, day, now), month, day, hour, minute)
        if candidate > now + relativedelta(months=MAX_MONTHS_AHEAD):
            candidate = candidate.replace(year=now.year)
    except ValueError as e:
        raise DateParsingError(f"Invalid calendar date month={month} day={day}: {e}") from e
    return candidate


def _relative_base(keyword: str, now: datetime) -> date:
    base = now.date()
    if keyword.lower() == "tomorrow":
        base += timedelta(days=1)
    return base


def parse_date(
    text: Optional[str],
    time_text: Optional[str] = None,
    default_hour: int = 19,
    now: Optional[datetime] = None,
) -> datetime:
    """Parse the common listing formats into a naive wall-clock datetime.

    Accepted, in order:
      * "Today" / "Tomorrow", optionally followed by a time or a time range
      * "Friday 15th August 22:30" (a trailing "- 03:00" is ignored)
      * "Friday 15th August" / "15 August" with ``default_hour`` or ``time_text``
      * anything python-dateutil understands, as long as it contains a digit
    """
    clean = normalize_whitespace(text) if isinstance(text, str) else None
    if not clean:
        raise DateParsingError("Empty or invalid date string")
    now = now or current_wall_clock()

    match = _RELATIVE_RE.match(clean)
    if match:
        base = _relative_base(match.group(1), now)
        result = datetime(base.year, base.month, base.day, default_hour, 0)
        inline_time = match.group(2).strip()
        if inline_time and parse_time(inline_time):
            return _apply_time(result, inline_time)
        return _apply_time(result, time_text)

    match = _DAY_MONTH_TIME_RE.match(clean)
    if match:
        month = get_month_index(match.group(3))
        if month:
            return build_date(month, int(match.group(2)), int(match.group(4)), int(match.group(5)), now=now)

    match = _DAY_MONTH_RE.match(clean)
    if match:
        month = get_month_index(match.group(3))
        if month:
            return _apply_time(build_date(month, int(match.group(2)), default_hour, now=now), time_text)

    if any(ch.isdigit() for ch in clean):
        default = now.replace(hour=default_hour, minute=0, second=0, microsecond=0)
        try:
            parsed = dateutil_parser.parse(clean, default=default)
        except (ValueError, OverflowError) as e:
            raise DateParsingError(f"Unable to parse date: '{text}'") from e
        if not _YEAR_RE.search(clean) and parsed.tzinfo is None:
            parsed = build_date(parsed.month, parsed.day, parsed.hour, parsed.minute, now=now)
        return _apply_time(parsed, time_text)

    raise DateParsingError(f"Unable to parse date: '{text}'")


def parse_compact_date(text: Optional[str]) -> datetime:
    """"Wed.13.Aug.25" at noon."""
    clean = (text or "").strip()
    match = _COMPACT_RE.match(clean)
    month = get_month_index(match.group(3)) if match else None
    if not match or not month:
        raise DateParsingError(f"Invalid compact date: '{text}'")
    short_year = int(match.group(4))
    year = 2000 + short_year if short_year < 50 else 1900 + short_year
    try:
        return datetime(year, month, int(match.group(2)), 12, 0)
    except ValueError as e:
        raise DateParsingError(f"Invalid compact date: '{text}'") from e


def parse_explicit_year_date(text: Optional[str], doors_time: Optional[str] = None) -> datetime:
    """"Tuesday 12 Aug 2025" at the doors time if one parses, else noon."""
    clean = normalize_whitespace(text) if isinstance(text, str) else None
    match = _EXPLICIT_YEAR_RE.match(clean or "")
    month = get_month_index(match.group(3)) if match else None
    if not match or not month:
        raise DateParsingError(f"Invalid explicit-year date: '{text}'")
    try:
        value = datetime(int(match.group(4)), month, int(match.group(2)), 12, 0)
    except ValueError as e:
        raise DateParsingError(f"Invalid explicit-year date: '{text}'") from e
    return _apply_time(value, doors_time)


# --- Date groups ---

def parse_date_group(text: Optional[str], now: Optional[datetime] = None) -> Optional[date]:
    """Calendar date of a listing heading ("Today", "Monday 11th August"), or None."""
    clean = normalize_whitespace(text) if isinstance(text, str) else None
    if not clean:
        return None
    now = now or current_wall_clock()

    match = _RELATIVE_RE.match(clean)
    if match and not match.group(2):
        return _relative_base(match.group(1), now)

    match = _DATE_GROUP_RE.match(clean)
    if match:
        month = get_month_index(match.group(3))
        if month:
            try:
                if match.group(4):
                    return date(int(match.group(4)), month, int(match.group(2)))
                return build_date(month, int(match.group(2)), 12, now=now).date()
            except ValueError:
                return None

    logger.debug(f"Unable to parse date group: '{text}'")
    return None


def parse_grouped_time_range(
    time_range: Optional[str],
    date_group: Optional[str] = None,
    is_end_time: bool = False,
    now: Optional[datetime] = None,
) -> datetime:
    """Combine a date heading with a "20:00 - 02:00" range.

    End times earlier than the start hour roll over to the next day. Without a
    parseable range the event is placed at noon of the group date.
    """
    now = now or current_wall_clock()
    if date_group:
        group_date = parse_date_group(date_group, now=now)
        if group_date is None:
            raise DateParsingError(f"Unparseable date group: '{date_group}'")
    else:
        group_date = now.date()

    base = datetime(group_date.year, group_date.month, group_date.day)
    match = _RANGE_RE.search(time_range or "")
    if not match:
        logger.warning(f"Could not parse time from '{time_range}', using date only with noon time")
        return base.replace(hour=12)

    start_hour, start_minute, end_hour, end_minute = (int(g) for g in match.groups())
    if is_end_time:
        value = base.replace(hour=end_hour % 24, minute=end_minute)
        if end_hour < start_hour:
            value += timedelta(days=1)
        return value
    return base.replace(hour=start_hour % 24, minute=start_minute)
