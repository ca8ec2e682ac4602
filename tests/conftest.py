import copy
import os
import sys
from datetime import datetime

import pytest

# Add project root to sys.path to allow direct imports if the project is not installed.
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from gig_scrapers.config_loader import parse_config
from gig_scrapers.transforms import TransformContext, TransformRegistry

# Friday 1st August 2025, mid-morning
NOW = datetime(2025, 8, 1, 10, 0)
BASE_URL = "https://venue.example.com"

LISTING_HTML = """
<html><body>
  <div class="listing">
    <div class="event">
      <h3 class="title">  The Midnight Ramblers </h3>
      <span class="date">Wed.13.Aug.25</span>
      <span class="artist">Support One</span><span class="artist"> Support Two </span>
      <a href="/events/ramblers">More</a>
    </div>
    <div class="event">
      <h3 class="title">Sunday Sessions</h3>
      <span class="date">Sun.17.Aug.25</span>
      <a href="/events/sunday">More</a>
    </div>
  </div>
</body></html>
"""

BASE_CONFIG = {
    "site": {"name": "Test Venue", "baseUrl": BASE_URL, "source": "test-venue"},
    "workflow": [
        {"type": "navigate", "url": BASE_URL + "/events"},
        {
            "type": "extract",
            "containerSelector": ".event",
            "fields": {
                "title": {"selector": ".title", "transform": "trim"},
                "date": {"selector": ".date", "transform": "date", "transformParams": {"format": "compact"}},
                "artists": {"selector": ".artist", "multiple": True, "required": False, "transform": "trim"},
                "link": {"selector": "a", "attribute": "href", "required": False, "transform": "url"},
            },
        },
    ],
    "mapping": {
        "title": "title",
        "artist": "artists",
        "venue": {"name": "Test Venue", "city": "Bristol", "country": "UK"},
        "date": {"start": "date"},
        "urls": {"event": "link"},
    },
}


def make_config_data(**overrides):
    data = copy.deepcopy(BASE_CONFIG)
    data.update(copy.deepcopy(overrides))
    return data


def make_config(**overrides):
    return parse_config(make_config_data(**overrides), source="test")


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def registry(clock):
    return TransformRegistry(TransformContext(base_url=BASE_URL, timezone="UTC", clock=clock))


class DummyPage:
    """Async stand-in for a Playwright page serving HTML per URL."""

    def __init__(self, pages=None, default_html="<html></html>"):
        self.pages = dict(pages or {})
        self.default_html = default_html
        self.url = None
        self.calls = []
        self.closed = False
        self.default_timeout = None
        self.goto_should_raise = None
        self.wait_for_selector_should_raise = None
        self.click_should_raise = None
        self.query_selector_result = None
        self.screenshots = []

    def set_default_timeout(self, timeout):
        self.default_timeout = timeout

    async def add_init_script(self, script):
        self.calls.append(("add_init_script", script))

    async def goto(self, url, timeout=None):
        self.calls.append(("goto", url))
        if self.goto_should_raise:
            raise self.goto_should_raise
        self.url = url

    async def wait_for_load_state(self, state="load", timeout=None):
        self.calls.append(("wait_for_load_state", state))

    async def wait_for_selector(self, selector, state="visible", timeout=None):
        self.calls.append(("wait_for_selector", selector, state))
        if self.wait_for_selector_should_raise:
            raise self.wait_for_selector_should_raise
        return object()

    async def query_selector(self, selector):
        self.calls.append(("query_selector", selector))
        return self.query_selector_result

    async def click(self, selector):
        self.calls.append(("click", selector))
        if self.click_should_raise:
            raise self.click_should_raise

    async def evaluate(self, script, arg=None):
        self.calls.append(("evaluate", script))

    async def screenshot(self, path=None, full_page=False):
        self.screenshots.append(path)

    async def content(self):
        return self.pages.get(self.url, self.default_html)

    async def close(self):
        self.closed = True


class DummyBrowser:
    def __init__(self, page):
        self.page = page
        self.page_options = None
        self.closed = False

    async def new_page(self, **kwargs):
        self.page_options = kwargs
        return self.page

    async def close(self):
        self.closed = True
