"""Named value transforms applied to extracted fields.

A transform is ``func(value, params, context) -> Optional[str]``. Lists are
transformed element-wise with ``None`` results dropped. Unknown names pass the
value through unchanged. ``DateParsingError`` is the only exception a
transform is expected to raise; extraction treats it as "drop this event".
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Set, Union

from gig_scrapers.config import settings
from gig_scrapers.parsing.datetime_parser import current_wall_clock, to_utc_iso
from gig_scrapers.parsing.site_parsers import SITE_TRANSFORMS, parse_with_format
from gig_scrapers.utils import absolutize_url

logger = logging.getLogger(__name__)

Value = Union[str, List[str], None]


@dataclass(frozen=True)
class TransformContext:
    """Site-level inputs shared by every transform of one config."""
    base_url: str = ""
    timezone: str = "UTC"
    clock: Optional[Callable[[], datetime]] = None

    def now(self) -> datetime:
        return self.clock() if self.clock else current_wall_clock(self.timezone)


TransformFunc = Callable[[str, Dict[str, Any], TransformContext], Optional[str]]


# --- Generic transforms ---

_REGEX_FLAGS = {"i": re.IGNORECASE, "m": re.MULTILINE, "s": re.DOTALL}
_JS_REPLACEMENT_TOKEN = re.compile(r"\$(\$|&|\d{1,2})")


def _compile(pattern: str, flags: str) -> re.Pattern:
    value = 0
    for flag in flags:
        value |= _REGEX_FLAGS.get(flag, 0)
    return re.compile(pattern, value)


def _expand_replacement(match: re.Match, replacement: str) -> str:
    """Expand "$1", "$&" and "$$" the way a JavaScript replace() does."""
    def _token(token_match: re.Match) -> str:
        token = token_match.group(1)
        if token == "$":
            return "$"
        if token == "&":
            return match.group(0)
        index = int(token)
        if index > match.re.groups:
            return token_match.group(0)
        return match.group(index) or ""

    return _JS_REPLACEMENT_TOKEN.sub(_token, replacement)


def trim(value: str, params: Dict[str, Any], context: TransformContext) -> str:
    return value.strip()


def lowercase(value: str, params: Dict[str, Any], context: TransformContext) -> str:
    return value.lower()


def uppercase(value: str, params: Dict[str, Any], context: TransformContext) -> str:
    return value.upper()


def slug(value: str, params: Dict[str, Any], context: TransformContext) -> str:
    return re.sub(r"-+", "-", re.sub(r"[^a-z0-9]", "-", value.lower())).strip("-")


def extract_text(value: str, params: Dict[str, Any], context: TransformContext) -> str:
    pattern = params.get("pattern")
    if not pattern:
        return value
    try:
        match = _compile(pattern, params.get("flags", "i")).search(value)
    except re.error as e:
        logger.warning(f"Invalid extract-text pattern '{pattern}': {e}")
        return value
    if not match:
        return value
    if match.re.groups and match.group(1) is not None:
        return match.group(1)
    return match.group(0)


def regex_replace(value: str, params: Dict[str, Any], context: TransformContext) -> str:
    pattern = params.get("pattern")
    if not pattern:
        return value
    flags = params.get("flags", "g")
    replacement = params.get("replacement", "") or ""
    try:
        compiled = _compile(pattern, flags)
    except re.error as e:
        logger.warning(f"Invalid regex pattern '{pattern}': {e}")
        return value
    return compiled.sub(lambda m: _expand_replacement(m, replacement), value, count=0 if "g" in flags else 1)


def time_range_start(value: str, params: Dict[str, Any], context: TransformContext) -> str:
    match = re.match(r"^(\d{1,2}:\d{2})", value.strip())
    return match.group(1) if match else value


def time_range_end(value: str, params: Dict[str, Any], context: TransformContext) -> str:
    match = re.search(r"(\d{1,2}:\d{2})$", value.strip())
    return match.group(1) if match else value


def url(value: str, params: Dict[str, Any], context: TransformContext) -> str:
    return absolutize_url(value, params.get("baseUrl") or context.base_url, params.get("fragmentPath", "/"))


def date(value: str, params: Dict[str, Any], context: TransformContext) -> str:
    parsed = parse_with_format(value, params.get("format"), params, context.now())
    return to_utc_iso(parsed, context.timezone)


BUILTIN_TRANSFORMS: Dict[str, TransformFunc] = {
    "trim": trim,
    "lowercase": lowercase,
    "uppercase": uppercase,
    "slug": slug,
    "extract-text": extract_text,
    "regex": regex_replace,
    "time-range-start": time_range_start,
    "time-range-end": time_range_end,
    "url": url,
    "date": date,
}


class TransformRegistry:
    """Name -> transform lookup bound to one site's context."""

    def __init__(self, context: Optional[TransformContext] = None, include_builtins: bool = True):
        self.context = context or TransformContext()
        self._transforms: Dict[str, TransformFunc] = {}
        if include_builtins:
            self._transforms.update(BUILTIN_TRANSFORMS)
            self._transforms.update(SITE_TRANSFORMS)

    @classmethod
    def for_config(cls, config, clock: Optional[Callable[[], datetime]] = None,
                   timezone: Optional[str] = None) -> "TransformRegistry":
        context = TransformContext(
            base_url=config.site.base_url,
            timezone=timezone or settings.scraper_globals.default_timezone,
            clock=clock,
        )
        registry = cls(context)
        missing = registry.unregistered(config.referenced_transforms())
        if missing:
            logger.warning(
                f"Config '{config.site.source}' references unregistered transform(s): "
                f"{', '.join(sorted(missing))}. Values will pass through unchanged."
            )
        return registry

    def register(self, name: str, func: Optional[TransformFunc] = None):
        """Register ``func`` under ``name``; usable as a decorator when ``func`` is omitted."""
        if func is None:
            def decorator(f: TransformFunc) -> TransformFunc:
                self._transforms[name] = f
                return f
            return decorator
        self._transforms[name] = func
        return func

    def __contains__(self, name: str) -> bool:
        return name in self._transforms

    def names(self) -> Set[str]:
        return set(self._transforms)

    def unregistered(self, names) -> Set[str]:
        return {name for name in names if name not in self._transforms}

    def apply(self, value: Value, name: str, params: Optional[Dict[str, Any]] = None) -> Value:
        func = self._transforms.get(name)
        if func is None:
            logger.warning(f"Unknown transform type: {name}")
            return value
        if value is None:
            return None
        params = params or {}
        if isinstance(value, list):
            results = (func(v, params, self.context) for v in value)
            return [r for r in results if r is not None]
        return func(value, params, self.context)
