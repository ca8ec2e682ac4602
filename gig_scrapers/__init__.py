"""
Config-driven gig scrapers

Site behaviour lives in JSON/YAML configuration files; this package loads them,
drives a Playwright page through each workflow and normalizes the results into Gig records.
"""
from .config_loader import load_config
from .schemas.gig import Gig
from .schemas.scraper_config import ScraperConfig
from .scrapers.config_driven_scraper import ConfigDrivenScraper
from .transforms import TransformRegistry

__version__ = "1.0.0"
__all__ = ["ConfigDrivenScraper", "Gig", "ScraperConfig", "TransformRegistry", "load_config"]
