import logging
from typing import List, Optional

from gig_scrapers.errors import ResultValidationError
from gig_scrapers.schemas.gig import Gig
from gig_scrapers.schemas.scraper_config import ValidationConfig
from gig_scrapers.utils import get_nested_value

logger = logging.getLogger(__name__)

# Older configs name the Gig dates by their mapping path.
LEGACY_PATHS = {"date.start": "dateStart", "date.end": "dateEnd"}


def required_value(gig: Gig, path: str):
    """Resolve a dot path against the camelCase record, falling back to field names."""
    path = LEGACY_PATHS.get(path, path)
    value = get_nested_value(gig.to_dict(), path)
    if value is None:
        value = get_nested_value(gig.model_dump(), path)
    return value


def validate_results(gigs: List[Gig], validation: Optional[ValidationConfig]) -> None:
    """Reject a batch that is too small or has records missing required fields.

    Too many records is only a warning. Does nothing when no rules are configured.
    """
    if validation is None:
        return

    count = len(gigs)
    minimum = validation.min_events_expected
    if count < minimum:
        raise ResultValidationError(f"Expected at least {minimum} events, got {count} of {minimum}")

    maximum = validation.max_events_expected
    if maximum is not None and count > maximum:
        logger.warning(f"Got {count} events, expected at most {maximum}")

    for gig in gigs:
        for path in validation.required:
            if not required_value(gig, path):
                raise ResultValidationError(f"Required field '{path}' missing in gig: {gig.id}")

    logger.debug(f"Result validation passed for {count} gig(s)")
