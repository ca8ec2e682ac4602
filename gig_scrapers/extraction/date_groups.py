"""Extraction for listings laid out as a flat run of date headings and events.

Each heading applies to the event nodes that follow it until the next heading.
Events under a heading that is not a date ("Valentines day") are skipped as a
group, with one log entry.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional

from bs4 import BeautifulSoup, Tag

from gig_scrapers.data_quality.cleaning import normalize_whitespace
from gig_scrapers.extraction.fields import FieldExtractor
from gig_scrapers.parsing.datetime_parser import parse_date_group
from gig_scrapers.schemas.scraper_config import DEFAULT_DATE_GROUP_SELECTOR, ExtractAction

logger = logging.getLogger(__name__)

DATE_GROUP_FIELD = "dateGroup"


@dataclass
class DateGroup:
    text: str
    date: Optional[date]
    events: List[Tag] = field(default_factory=list)


def group_events(soup: BeautifulSoup, heading_selector: str, container_selector: str, now=None) -> List[DateGroup]:
    """Walk headings and event containers in document order."""
    heading_ids = {id(node) for node in soup.select(heading_selector)}
    groups: List[DateGroup] = []
    orphans = 0

    for node in soup.select(f"{heading_selector}, {container_selector}"):
        if id(node) in heading_ids:
            text = normalize_whitespace(node.get_text()) or ""
            groups.append(DateGroup(text=text, date=parse_date_group(text, now=now)))
        elif groups:
            groups[-1].events.append(node)
        else:
            orphans += 1

    if orphans:
        logger.debug(f"Ignored {orphans} event(s) appearing before the first date heading")
    return groups


def _event_title(extractor: FieldExtractor, node: Tag, action: ExtractAction) -> str:
    title_config = action.fields.get("title")
    if title_config is not None:
        try:
            title = extractor.extract_value(node, title_config, {})
            if isinstance(title, str) and title.strip():
                return normalize_whitespace(title)
        except Exception:
            logger.debug("Could not read title of skipped event", exc_info=True)
    return (normalize_whitespace(node.get_text()) or "")[:60]


async def extract_date_groups(soup: BeautifulSoup, action: ExtractAction, extractor: FieldExtractor) -> List[Dict[str, Any]]:
    heading_selector = action.date_group_selector or DEFAULT_DATE_GROUP_SELECTOR
    now = extractor.registry.context.now()
    groups = group_events(soup, heading_selector, action.container_selector, now=now)

    items: List[Dict[str, Any]] = []
    total = 0
    for group in groups:
        total += len(group.events)
        if group.date is None:
            if group.events:
                titles = [_event_title(extractor, node, action) for node in group.events]
                logger.warning(
                    f"Skipping {len(group.events)} event(s) under unparseable date group "
                    f"\"{group.text}\": {titles}"
                )
            continue

        def _defaults(field_name: str, group_text: str = group.text) -> Dict[str, Any]:
            return {"dateGroup": group_text, "isEndTime": field_name == "endTime"}

        for node in group.events:
            item = await extractor.extract_item(
                node, action.fields, item={DATE_GROUP_FIELD: group.text}, param_defaults=_defaults
            )
            if item:
                items.append(item)

    logger.info(f"Date-group extraction completed: {len(items)} of {total} events processed across {len(groups)} date group(s)")
    return items
