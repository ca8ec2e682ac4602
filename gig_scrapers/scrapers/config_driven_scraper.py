import asyncio
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from bs4 import BeautifulSoup
from playwright.async_api import Browser, Page

from gig_scrapers.config import settings
from gig_scrapers.config_loader import load_config
from gig_scrapers.data_quality.cleaning import normalize_whitespace
from gig_scrapers.data_quality.result_validation import validate_results
from gig_scrapers.errors import ActionExecutionError, ScraperError
from gig_scrapers.extraction.date_groups import extract_date_groups
from gig_scrapers.extraction.fields import FieldExtractor
from gig_scrapers.extraction.follow_up import FollowUpExtractor
from gig_scrapers.schema_adapter import GigNormalizer
from gig_scrapers.schemas.gig import Gig
from gig_scrapers.schemas.scraper_config import (
    ActionConfig,
    ClickAction,
    DebugConfig,
    ExtractAction,
    NavigateAction,
    ScraperConfig,
    ScrollAction,
    WaitAction,
)
from gig_scrapers.transforms import TransformRegistry
from gig_scrapers.utils import safe_filename_part, timestamp_ms

logger = logging.getLogger(__name__)

HIDE_WEBDRIVER_SCRIPT = "Object.defineProperty(navigator, 'webdriver', {get: () => undefined})"
DEFAULT_TIMEOUT_MS = 30000
MAX_FALLBACK_WAIT_MS = 5000


@dataclass
class RunContext:
    """State of one scrape run; nothing here outlives the run."""
    config: ScraperConfig
    page: Page
    registry: TransformRegistry
    items: List[Dict[str, Any]] = field(default_factory=list)
    step: int = 0
    status: str = "pending"


class ConfigDrivenScraper:
    """Runs a site config's workflow on one browser page and returns Gig records."""

    def __init__(self, config: ScraperConfig, registry: Optional[TransformRegistry] = None,
                 clock: Optional[Callable] = None, debug_dir: Optional[Path] = None):
        self.config = config
        self.registry = registry or TransformRegistry.for_config(config, clock=clock)
        self.debug = config.debug or DebugConfig()
        self.debug_dir = Path(debug_dir or settings.file_outputs.debug_artifact_directory)
        self.last_run: Optional[RunContext] = None

    @classmethod
    def from_file(cls, path: Union[str, Path], **kwargs) -> "ConfigDrivenScraper":
        return cls(load_config(path), **kwargs)

    @property
    def timeout_ms(self) -> int:
        return self.config.browser_timeout or settings.scraper_globals.default_timeout_ms or DEFAULT_TIMEOUT_MS

    # --- run lifecycle ---

    async def scrape(self, browser: Browser) -> List[Gig]:
        site = self.config.site
        started = time.monotonic()
        logger.info(f"Starting scrape for {site.name}")
        logger.debug(
            f"Configuration: {len(self.config.workflow)} workflow steps, browser timeout "
            f"{self.config.browser_timeout}, screenshots {self.debug.screenshots}"
        )

        page: Optional[Page] = None
        ctx: Optional[RunContext] = None
        try:
            page = await self._setup_page(browser)
            ctx = RunContext(config=self.config, page=page, registry=self.registry)
            self.last_run = ctx
            await self.run_workflow(ctx)

            gigs = GigNormalizer(self.config, self.registry).normalize(ctx.items)
            validate_results(gigs, self.config.validation)
            ctx.status = "completed"

            duration_ms = int((time.monotonic() - started) * 1000)
            logger.info(f"Scrape completed: {len(gigs)} events found in {duration_ms}ms")
            return gigs
        except Exception as e:
            if ctx is not None:
                ctx.status = "failed"
            logger.error(f"Scraping failed for {site.name}: {e}")
            if page is not None and self.debug.screenshots:
                await self._save_debug_artifacts(page, f"debug-{safe_filename_part(site.source)}")
            raise
        finally:
            if page is not None:
                await page.close()

    async def _setup_page(self, browser: Browser) -> Page:
        browser_config = self.config.browser
        page_options: Dict[str, Any] = {
            "user_agent": (browser_config.user_agent if browser_config else None)
            or settings.scraper_globals.default_user_agent,
        }
        if browser_config and browser_config.viewport:
            page_options["viewport"] = {
                "width": browser_config.viewport.width,
                "height": browser_config.viewport.height,
            }
        page = await browser.new_page(**page_options)
        page.set_default_timeout(self.timeout_ms)
        await page.add_init_script(HIDE_WEBDRIVER_SCRIPT)
        return page

    async def run_workflow(self, ctx: RunContext) -> None:
        delay_ms = self.config.delay_between_requests
        for index, action in enumerate(self.config.workflow):
            ctx.step = index
            logger.debug(f"Executing step {index + 1}: {action.type}")
            try:
                await self.execute_action(ctx, action)
            except ScraperError:
                raise
            except Exception as e:
                raise ActionExecutionError(action.type, index, str(e)) from e

            if delay_ms:
                await asyncio.sleep(delay_ms / 1000)

    async def execute_action(self, ctx: RunContext, action: ActionConfig) -> None:
        if isinstance(action, NavigateAction):
            await self._navigate(ctx.page, action)
        elif isinstance(action, WaitAction):
            await self._wait(ctx.page, action)
        elif isinstance(action, ClickAction):
            await self._click(ctx.page, action)
        elif isinstance(action, ScrollAction):
            await self._scroll(ctx.page, action)
        elif isinstance(action, ExtractAction):
            await self._extract(ctx, action)
        else:
            raise ActionExecutionError(getattr(action, "type", "unknown"), ctx.step, "Unknown action type")

    # --- actions ---

    async def _navigate(self, page: Page, action: NavigateAction) -> None:
        logger.debug(f"Navigating to {action.url}")
        await page.goto(action.url)
        if action.wait_for_load:
            await page.wait_for_load_state("domcontentloaded")

    async def _wait(self, page: Page, action: WaitAction) -> None:
        timeout = action.timeout or self.timeout_ms
        logger.debug(f"Executing wait action with timeout: {timeout}ms (selector: {action.selector}, condition: {action.condition})")

        if action.selector and self.debug.screenshots:
            await self._save_debug_artifacts(page, f"debug-before-wait-{safe_filename_part(action.selector)}")

        try:
            if action.selector:
                if action.condition == "networkidle":
                    await page.wait_for_load_state("networkidle", timeout=timeout)
                else:
                    await page.wait_for_selector(action.selector, state=action.condition, timeout=timeout)
                    logger.debug(f"Selector is {action.condition}: {action.selector}")
            elif action.condition == "networkidle":
                await page.wait_for_load_state("networkidle", timeout=timeout)
            else:
                await asyncio.sleep(timeout / 1000)
        except Exception as e:
            logger.warning(f"Wait operation failed, attempting recovery: {e}")
            if self.debug.screenshots:
                await self._save_debug_artifacts(page, "debug-wait-failed")

            if action.selector and action.condition == "visible":
                fallback_ms = min(MAX_FALLBACK_WAIT_MS, timeout / 2)
                logger.info(f"Falling back to time-based wait ({fallback_ms}ms) for {action.selector}")
                await asyncio.sleep(fallback_ms / 1000)
                if await page.query_selector(action.selector):
                    logger.info(f"Selector found after fallback wait: {action.selector}")
                    return
            raise

    async def _click(self, page: Page, action: ClickAction) -> None:
        try:
            await page.click(action.selector)
            if action.wait_after:
                await asyncio.sleep(action.wait_after / 1000)
        except Exception as e:
            if not action.optional:
                raise
            logger.warning(f"Optional click failed for selector {action.selector}: {e}")

    async def _scroll(self, page: Page, action: ScrollAction) -> None:
        if action.direction == "down":
            await page.evaluate("(amount) => window.scrollBy(0, amount || window.innerHeight)", action.amount)
        elif action.direction == "up":
            await page.evaluate("(amount) => window.scrollBy(0, -(amount || window.innerHeight))", action.amount)
        else:
            await page.evaluate("() => window.scrollTo(0, document.body.scrollHeight)")
        if action.wait_after:
            await asyncio.sleep(action.wait_after / 1000)

    async def _extract(self, ctx: RunContext, action: ExtractAction) -> None:
        logger.debug(f"Extracting data from containers: {action.container_selector}")
        soup = BeautifulSoup(await ctx.page.content(), "html.parser")
        follow_up = FollowUpExtractor(ctx.page, ctx.registry, self.config.delay_between_requests)
        extractor = FieldExtractor(ctx.registry, follow_up)

        if self.config.uses_date_groups(action):
            logger.debug("Using date-group extraction")
            new_items = await extract_date_groups(soup, action, extractor)
        else:
            containers = soup.select(action.container_selector)
            logger.info(f"Found {len(containers)} containers to extract from")
            if self.debug.log_level == "debug":
                self._log_containers(containers)
            new_items = []
            for container in containers:
                item = await extractor.extract_item(container, action.fields)
                if item:
                    new_items.append(item)

        if action.follow_up:
            logger.debug(f"Processing action-level follow-up for {len(new_items)} items")
            for item in new_items:
                url = item.get(action.follow_up.url_field)
                if url:
                    item.update(await follow_up.fetch(url, action.follow_up.fields, item))

        ctx.items.extend(new_items)
        logger.info(f"Extracted {len(new_items)} items (run total: {len(ctx.items)})")

    # --- debugging aids ---

    @staticmethod
    def _log_containers(containers) -> None:
        for i, container in enumerate(containers[:5], start=1):
            classes = ".".join(container.get("class", []))
            preview = (normalize_whitespace(container.get_text()) or "")[:100]
            logger.debug(f"Container {i}: {container.name}.{classes} - \"{preview}\"")

    async def _save_debug_artifacts(self, page: Page, prefix: str) -> None:
        stamp = timestamp_ms()
        screenshot_path = self.debug_dir / f"{prefix}-{stamp}.png"
        try:
            self.debug_dir.mkdir(parents=True, exist_ok=True)
            await page.screenshot(path=str(screenshot_path), full_page=True)
            logger.info(f"Debug screenshot saved: {screenshot_path}")
            if self.debug.save_html:
                html_path = self.debug_dir / f"{prefix}-{stamp}.html"
                html_path.write_text(await page.content(), encoding="utf-8")
                logger.info(f"Debug HTML saved: {html_path}")
        except Exception as e:
            logger.warning(f"Could not save debug artifacts '{prefix}': {e}")
