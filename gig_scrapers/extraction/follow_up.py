import asyncio
import logging
from typing import Any, Dict, Mapping, Optional

from bs4 import BeautifulSoup
from playwright.async_api import Page

from gig_scrapers.errors import FollowUpError
from gig_scrapers.extraction.fields import is_empty, read_attribute, resolve_params
from gig_scrapers.schemas.scraper_config import FollowUpFieldConfig
from gig_scrapers.transforms import TransformRegistry

logger = logging.getLogger(__name__)


class FollowUpExtractor:
    """Visits an item's detail page on the shared page and reads extra fields.

    Follow-ups never fail the base item: navigation and field errors are logged
    and whatever was extracted is returned.
    """

    def __init__(self, page: Page, registry: TransformRegistry, delay_ms: int = 0):
        self.page = page
        self.registry = registry
        self.delay_ms = delay_ms

    async def _load(self, url: str) -> BeautifulSoup:
        try:
            await self.page.goto(url)
            await self.page.wait_for_load_state("domcontentloaded")
            if self.delay_ms:
                await asyncio.sleep(self.delay_ms / 1000)
            html = await self.page.content()
        except Exception as e:
            raise FollowUpError(f"Follow-up navigation failed for {url}: {e}") from e
        return BeautifulSoup(html, "html.parser")

    async def fetch(
        self,
        url: str,
        fields: Mapping[str, FollowUpFieldConfig],
        item: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        logger.debug(f"Following up on URL: {url}")
        data: Dict[str, Any] = {}
        try:
            soup = await self._load(url)
        except FollowUpError as e:
            logger.warning(str(e))
            return data

        for field_name, field_config in fields.items():
            try:
                node = soup.select_one(field_config.selector)
                if node is None:
                    continue
                value = read_attribute(node, field_config.attribute)
                if not is_empty(value) and field_config.transform:
                    params = resolve_params(field_config.transform_params, {**(item or {}), **data})
                    value = self.registry.apply(value, field_config.transform, params)
                    if isinstance(value, list):
                        value = ", ".join(value)
                if not is_empty(value):
                    data[field_name] = value
            except Exception as e:
                logger.warning(f"Failed to extract follow-up field '{field_name}' from {url}: {e}")

        logger.debug(f"Follow-up extraction completed: {len(data)} fields extracted from {url}")
        return data
