"""Date formats and venue-specific transforms.

``DATE_FORMAT_PARSERS`` maps the ``format`` parameter of the ``date`` transform
to a parser and is read-only. ``SITE_TRANSFORMS`` holds the per-venue transforms,
which are registered into each config's ``TransformRegistry`` at load time.
"""

import logging
import re
from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

from gig_scrapers.errors import DateParsingError
from gig_scrapers.parsing.datetime_parser import (
    parse_compact_date,
    parse_date,
    parse_date_group,
    parse_explicit_year_date,
    parse_grouped_time_range,
    parse_time,
    to_utc_iso,
)
from gig_scrapers.utils import absolutize_url

if TYPE_CHECKING:
    from gig_scrapers.transforms import TransformContext

logger = logging.getLogger(__name__)

DateFormatParser = Callable[[str, Dict[str, Any], datetime], datetime]


# --- Date formats ---

def _parse_standard(text: str, params: Dict[str, Any], now: datetime) -> datetime:
    default_hour = int(params.get("defaultHour", 19))
    return parse_date(text, params.get("time"), default_hour=default_hour, now=now)


def _parse_compact(text: str, params: Dict[str, Any], now: datetime) -> datetime:
    return parse_compact_date(text)


def _parse_explicit_year(text: str, params: Dict[str, Any], now: datetime) -> datetime:
    return parse_explicit_year_date(text, params.get("doorsTime") or params.get("time"))


DATE_FORMAT_PARSERS: Dict[str, DateFormatParser] = {
    "standard": _parse_standard,
    "compact": _parse_compact,
    "explicit-year": _parse_explicit_year,
}


def parse_with_format(text: str, format_name: Optional[str], params: Dict[str, Any], now: datetime) -> datetime:
    parser = DATE_FORMAT_PARSERS.get(format_name or "standard")
    if parser is None:
        logger.warning(f"Unknown date format '{format_name}', falling back to standard parsing")
        parser = _parse_standard
    return parser(text, params, now)


# --- Venue transforms ---

def _require_text(value: Optional[str], site: str) -> str:
    if not value or not value.strip():
        raise DateParsingError(f"Empty date string for {site}")
    return value.strip()


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return bool(value)


def exchange_venue_name(value: str, params: Dict[str, Any], context: "TransformContext") -> str:
    trimmed = (value or "").strip()
    if not trimmed or "exchange" in trimmed.lower():
        return "Exchange"
    return f"Exchange, {trimmed}"


def static_louisiana_name(value: str, params: Dict[str, Any], context: "TransformContext") -> str:
    return "The Louisiana Bristol"


def louisiana_url(value: str, params: Dict[str, Any], context: "TransformContext") -> str:
    return absolutize_url(value, context.base_url or "https://www.thelouisiana.net", params.get("fragmentPath", "/"))


def parse_date_group_transform(value: str, params: Dict[str, Any], context: "TransformContext") -> str:
    group_date = parse_date_group(value, now=context.now())
    if group_date is None:
        raise DateParsingError(f"Unparseable date group: '{value}'")
    return group_date.isoformat()


def bristol_exchange_datetime(value: str, params: Dict[str, Any], context: "TransformContext") -> str:
    result = parse_grouped_time_range(
        value,
        date_group=params.get("dateGroup"),
        is_end_time=_as_bool(params.get("isEndTime", False)),
        now=context.now(),
    )
    logger.debug(f"Parsed grouped datetime '{value}' (group: {params.get('dateGroup')}) -> {result}")
    return to_utc_iso(result, context.timezone)


def lanes_bristol_date(value: str, params: Dict[str, Any], context: "TransformContext") -> str:
    text = _require_text(value, "The Lanes")
    return to_utc_iso(parse_date(text, default_hour=22, now=context.now()), context.timezone)


def croft_bristol_date(value: str, params: Dict[str, Any], context: "TransformContext") -> str:
    text = _require_text(value, "The Croft")
    return to_utc_iso(parse_date(text, default_hour=19, now=context.now()), context.timezone)


def strange_brew_datetime(value: str, params: Dict[str, Any], context: "TransformContext") -> str:
    text = _require_text(value, "Strange Brew")
    return to_utc_iso(parse_date(text, default_hour=19, now=context.now()), context.timezone)


def thekla_bristol_date(value: str, params: Dict[str, Any], context: "TransformContext") -> str:
    text = _require_text(value, "Thekla")
    try:
        result = parse_compact_date(text)
    except DateParsingError:
        logger.warning(f"Could not parse Thekla date format: '{text}', attempting fallback")
        result = parse_date(text, default_hour=12, now=context.now())
    return to_utc_iso(result, context.timezone)


def fleece_bristol_datetime(value: str, params: Dict[str, Any], context: "TransformContext") -> str:
    text = _require_text(value, "The Fleece")
    return to_utc_iso(parse_explicit_year_date(text, params.get("doorsTime")), context.timezone)


def louisiana_bristol_datetime(value: str, params: Dict[str, Any], context: "TransformContext") -> str:
    text = _require_text(value, "The Louisiana")
    candidates = [params.get("timeField"), params.get("fallbackTimeField"), params.get("fallbackTime"), "7:30pm"]
    time_text = next((c for c in candidates if isinstance(c, str) and parse_time(c)), None)
    logger.debug(f"Louisiana date: '{text}', time: '{time_text}'")
    return to_utc_iso(parse_date(text, time_text, default_hour=19, now=context.now()), context.timezone)


def electric_bristol_datetime(value: str, params: Dict[str, Any], context: "TransformContext") -> str:
    text = _require_text(value, "Electric")
    cleaned = re.sub(r"(\d+)(?:st|nd|rd|th)\s+", r"\1 ", text).strip()
    time_text = params.get("fallbackTime") or "7:00pm"
    return to_utc_iso(parse_date(cleaned, time_text, default_hour=19, now=context.now()), context.timezone)


SITE_TRANSFORMS = {
    "exchange-venue-name": exchange_venue_name,
    "static-louisiana-name": static_louisiana_name,
    "louisiana-url": louisiana_url,
    "parse-date-group": parse_date_group_transform,
    "bristol-exchange-datetime": bristol_exchange_datetime,
    "lanes-bristol-date": lanes_bristol_date,
    "croft-bristol-date": croft_bristol_date,
    "thekla-bristol-date": thekla_bristol_date,
    "fleece-bristol-datetime": fleece_bristol_datetime,
    "strange-brew-datetime": strange_brew_datetime,
    "louisiana-bristol-datetime": louisiana_bristol_datetime,
    "electric-bristol-datetime": electric_bristol_datetime,
}
