from gig_scrapers.schemas.gig import Gig, Venue
from gig_scrapers.schemas.scraper_config import (
    ActionConfig,
    ExtractAction,
    FieldConfig,
    FollowUpConfig,
    ScraperConfig,
)

__all__ = [
    "ActionConfig",
    "ExtractAction",
    "FieldConfig",
    "FollowUpConfig",
    "Gig",
    "ScraperConfig",
    "Venue",
]
