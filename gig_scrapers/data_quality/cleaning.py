import re
import html
from typing import Any, List, Optional


def normalize_whitespace(text: Optional[str]) -> Optional[str]:
    """
    Collapses runs of whitespace (spaces, tabs, newlines) into a single space
    and strips the ends. Returns None for None or for text that ends up empty.
    """
    if text is None:
        return None

    text = re.sub(r'\s+', ' ', text).strip()
    return text or None


def clean_html_entities(text: Optional[str]) -> Optional[str]:
    """Decodes HTML character references (&amp;, &#39;, &nbsp;) left in scraped text."""
    if text is None:
        return None
    return html.unescape(text)


def clean_and_normalize_text(text: Any) -> Optional[str]:
    """Entity-decode then whitespace-normalize. Non-string values are stringified."""
    if text is None:
        return None
    if not isinstance(text, str):
        text = str(text)
    return normalize_whitespace(clean_html_entities(text))


def clean_text_list(values: Any) -> List[str]:
    """Wraps a scalar into a list, cleans each entry and drops empties, preserving order."""
    if values is None:
        return []
    if not isinstance(values, (list, tuple)):
        values = [values]
    cleaned = []
    for value in values:
        text = clean_and_normalize_text(value)
        if text:
            cleaned.append(text)
    return cleaned


def map_status_text(text: Optional[str]) -> str:
    """Maps free-form status labels ("SOLD OUT", "Cancelled", "Postponed to...") onto a Gig status."""
    lowered = (clean_and_normalize_text(text) or "").lower()
    if "cancel" in lowered:
        return "cancelled"
    if "postpon" in lowered or "rescheduled" in lowered:
        return "postponed"
    return "scheduled"
