import hashlib
import json
import logging
from datetime import datetime, timezone as dt_timezone
from typing import Any, Dict, List, Mapping, Optional, Set

from dateutil.parser import isoparse
from pydantic import ValidationError

from gig_scrapers.data_quality.cleaning import clean_and_normalize_text, clean_text_list, map_status_text
from gig_scrapers.errors import DateParsingError
from gig_scrapers.extraction.fields import resolve_params
from gig_scrapers.parsing.datetime_parser import to_utc_iso
from gig_scrapers.schemas.gig import Gig
from gig_scrapers.schemas.scraper_config import DateFieldMapping, DateSource, ScraperConfig
from gig_scrapers.transforms import TransformRegistry

logger = logging.getLogger(__name__)

# Gig keys left out of the content hash: identity and bookkeeping only.
HASH_EXCLUDED_KEYS = frozenset({"id", "sourceId", "hash", "updatedAt"})


# --- Helper Functions ---

def _generate_event_id(composite_key_fields: List[Optional[str]]) -> str:
    """Generates a SHA256 hash based on a list of key fields."""
    key_string = "|".join(str(field).lower().strip() if field is not None else "none" for field in composite_key_fields)
    return hashlib.sha256(key_string.encode('utf-8')).hexdigest()


def generate_gig_id(venue_name: Optional[str], title: Optional[str], date_start: Optional[str], city: Optional[str]) -> str:
    return _generate_event_id([venue_name, title, date_start, city])


def compute_gig_hash(gig_data: Mapping[str, Any]) -> str:
    """SHA-256 over the camelCase content fields, serialized with sorted keys."""
    content = {k: v for k, v in gig_data.items() if k not in HASH_EXCLUDED_KEYS}
    payload = json.dumps(content, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def _is_iso_datetime(value: Any) -> bool:
    if not isinstance(value, str) or not value:
        return False
    try:
        isoparse(value)
    except ValueError:
        return False
    return True


def _first(value: Any) -> Any:
    if isinstance(value, list):
        return value[0] if value else None
    return value


class GigNormalizer:
    """Maps extracted items onto Gig records using a config's ``mapping`` block."""

    def __init__(self, config: ScraperConfig, registry: TransformRegistry, run_time: Optional[datetime] = None):
        self.config = config
        self.mapping = config.mapping
        self.registry = registry
        self.run_time = run_time or datetime.now(dt_timezone.utc)
        self._declared_fields: Set[str] = config.declared_field_names()

    def normalize(self, items: List[Dict[str, Any]]) -> List[Gig]:
        gigs = []
        for index, item in enumerate(items):
            gig = self.normalize_item(item, index)
            if gig is not None:
                gigs.append(gig)
        dropped = len(items) - len(gigs)
        if dropped:
            logger.info(f"Normalized {len(gigs)} of {len(items)} items for {self.config.site.source} ({dropped} dropped)")
        return gigs

    # --- field resolution ---

    def _value(self, item: Mapping[str, Any], field_name: Optional[str]) -> Any:
        if not field_name:
            return None
        return item.get(field_name)

    def _reference_or_literal(self, item: Mapping[str, Any], mapped: Optional[str]) -> Optional[str]:
        """A mapping value naming a known field is a reference; anything else is a literal."""
        if not mapped:
            return None
        if mapped in item or mapped in self._declared_fields:
            return clean_and_normalize_text(_first(item.get(mapped)))
        return mapped

    def _date_value(self, item: Mapping[str, Any], source: Optional[DateSource]) -> Optional[str]:
        if source is None:
            return None
        if isinstance(source, DateFieldMapping):
            value = item.get(source.field)
            if value is not None and source.transform:
                params = resolve_params(source.transform_params, item)
                value = self.registry.apply(value, source.transform, params)
        else:
            value = item.get(source)
        value = _first(value)
        return value.strip() if isinstance(value, str) else value

    def _gig_id(self, item: Mapping[str, Any], content: Mapping[str, Any]) -> str:
        venue = content.get("venue") or {}
        if self.mapping.id.strategy == "extracted" and self.mapping.id.fields:
            values = [_first(item.get(name)) for name in self.mapping.id.fields]
            if any(v not in (None, "") for v in values):
                return _generate_event_id(values)
            logger.debug(f"Id fields {self.mapping.id.fields} empty, falling back to generated id")
        return generate_gig_id(venue.get("name"), content.get("title"), content.get("dateStart"), venue.get("city"))

    # --- record assembly ---

    def normalize_item(self, item: Mapping[str, Any], index: int) -> Optional[Gig]:
        mapping = self.mapping
        title = clean_and_normalize_text(_first(self._value(item, mapping.title)))

        try:
            date_start = self._date_value(item, mapping.date.start)
        except DateParsingError as e:
            logger.warning(f"Dropping item {index} (\"{title}\"): {e}")
            return None
        try:
            date_end = self._date_value(item, mapping.date.end)
        except DateParsingError as e:
            logger.debug(f"Ignoring dateEnd for item {index}: {e}")
            date_end = None

        if not _is_iso_datetime(date_start):
            logger.warning(f"Dropping item {index} (\"{title}\"): dateStart {date_start!r} is not a valid ISO-8601 timestamp")
            return None
        if date_end is not None and not _is_iso_datetime(date_end):
            logger.debug(f"Ignoring invalid dateEnd {date_end!r} for item {index}")
            date_end = None

        venue = {
            "name": self._reference_or_literal(item, mapping.venue.name),
            "address": self._reference_or_literal(item, mapping.venue.address),
            "city": self._reference_or_literal(item, mapping.venue.city),
            "country": self._reference_or_literal(item, mapping.venue.country),
        }
        urls = mapping.urls
        event_url = None
        tickets_url = None
        if urls:
            event_url = _first(self._value(item, urls.event)) or _first(self._value(item, urls.info))
            tickets_url = _first(self._value(item, urls.tickets))

        content: Dict[str, Any] = {
            "source": self.config.site.source,
            "title": title,
            "artists": clean_text_list(self._value(item, mapping.artist)),
            "venue": {k: v for k, v in venue.items() if v is not None},
            "dateStart": date_start,
            "dateEnd": date_end,
            "timezone": self._reference_or_literal(item, mapping.date.timezone),
            "eventUrl": event_url.strip() if isinstance(event_url, str) else None,
            "ticketsUrl": tickets_url.strip() if isinstance(tickets_url, str) else None,
            "images": clean_text_list(self._value(item, mapping.images)),
            "genre": clean_text_list(self._value(item, mapping.genres)),
            "ageRestriction": clean_and_normalize_text(_first(self._value(item, mapping.age_restriction))),
            "description": clean_and_normalize_text(_first(self._value(item, mapping.description))),
            "status": map_status_text(_first(self._value(item, mapping.status))) if mapping.status else "scheduled",
        }

        gig_data = dict(content)
        gig_data["id"] = self._gig_id(item, content)
        gig_data["sourceId"] = f"{self.config.site.source}-{index}"
        gig_data["hash"] = compute_gig_hash(content)
        gig_data["updatedAt"] = to_utc_iso(self.run_time)

        try:
            return Gig.model_validate(gig_data)
        except ValidationError as e:
            logger.error(f"Error mapping item {index} (\"{title}\") to Gig: {e}")
            return None


def map_items_to_gigs(items: List[Dict[str, Any]], config: ScraperConfig, registry: TransformRegistry,
                      run_time: Optional[datetime] = None) -> List[Gig]:
    return GigNormalizer(config, registry, run_time=run_time).normalize(items)
