"""Command line entry point: manage site configs and trial-run them.

    gig-scrapers config list [--detailed]
    gig-scrapers config validate data/scraper-configs/thekla-bristol.json --fix
    gig-scrapers config create "The Fleece" https://www.thefleece.co.uk
    gig-scrapers test-config data/scraper-configs/thekla-bristol.json --output thekla.json
"""

import argparse
import asyncio
import logging
import re
import sys
import time
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from playwright.async_api import async_playwright

from gig_scrapers.config import settings
from gig_scrapers.config_loader import (
    apply_default_fixes,
    fixed_config_path,
    list_config_files,
    load_config,
    read_config_data,
    validate_config_data,
)
from gig_scrapers.data_quality.result_validation import required_value
from gig_scrapers.errors import ConfigValidationError, ScraperError
from gig_scrapers.schemas.scraper_config import DebugConfig, ScraperConfig
from gig_scrapers.scrapers.config_driven_scraper import ConfigDrivenScraper
from gig_scrapers.sentry_setup import init_sentry
from gig_scrapers.utils import save_to_json_file, setup_logger

logger = logging.getLogger(__name__)

BROWSER_ARGS = ['--no-sandbox', '--disable-blink-features=AutomationControlled']


def _configs_dir(args: argparse.Namespace) -> Path:
    return Path(args.dir) if getattr(args, "dir", None) else settings.file_outputs.configs_directory


# --- config list ---

def cmd_config_list(args: argparse.Namespace) -> int:
    configs_dir = _configs_dir(args)
    if not configs_dir.is_dir():
        print(f"No scraper configurations directory found (expected: {configs_dir})")
        return 0

    files = list_config_files(configs_dir)
    if not files:
        print(f"No scraper configurations found in {configs_dir}")
        return 0

    print(f"Found {len(files)} scraper configuration(s):\n")
    for path in files:
        try:
            data = read_config_data(path)
        except ConfigValidationError as e:
            print(f"x {path.name} - Invalid configuration file")
            if args.detailed:
                print(f"   Error: {e}")
            print()
            continue

        site = data.get("site") or {}
        print(f"- {path.name}")
        print(f"   Name: {site.get('name', 'Unknown')}")
        print(f"   Source: {site.get('source', 'Unknown')}")
        print(f"   URL: {site.get('baseUrl', 'Unknown')}")
        if args.detailed:
            browser = data.get("browser") or {}
            print(f"   Description: {site.get('description') or 'None'}")
            print(f"   Last Updated: {site.get('lastUpdated') or 'Unknown'}")
            print(f"   Workflow Steps: {len(data.get('workflow') or [])}")
            print(f"   Browser Headless: {'No' if browser.get('headless') is False else 'Yes'}")
            validation = data.get("validation")
            if validation:
                print(f"   Min Events Expected: {validation.get('minEventsExpected', 0)}")
                print(f"   Required Fields: {', '.join(validation.get('required') or []) or 'None'}")
            errors = validate_config_data(data)
            print(f"   Schema: {'valid' if not errors else f'{len(errors)} error(s)'}")
        print()
    return 0


# --- config validate ---

def cmd_config_validate(args: argparse.Namespace) -> int:
    path = Path(args.config_file)
    logger.info(f"Validating configuration: {path}")
    try:
        data = read_config_data(path)
    except ConfigValidationError as e:
        logger.error(str(e))
        return 1

    errors = validate_config_data(data)
    if not errors:
        config = ScraperConfig.model_validate(data)
        print("Configuration is valid!\n")
        print("Configuration Summary:")
        print(f"  Site: {config.site.name}")
        print(f"  Source: {config.site.source}")
        print(f"  Base URL: {config.site.base_url}")
        print(f"  Workflow Steps: {len(config.workflow)}")
        required = config.validation.required if config.validation else []
        print(f"  Required Fields: {', '.join(required) or 'None'}")
        return 0

    logger.error("Configuration validation failed:")
    for error in errors:
        print(f"  * {error}")

    if args.fix:
        logger.info("Attempting to fix common issues...")
        fixed, added = apply_default_fixes(data)
        if not added:
            logger.info("No automatic fixes available")
        else:
            for block in added:
                print(f"  + Added default {block} configuration")
            remaining = validate_config_data(fixed)
            if remaining:
                logger.error(f"Could not automatically fix all issues ({len(remaining)} remaining)")
            else:
                fixed_path = save_to_json_file(fixed, fixed_config_path(path), logger)
                logger.info(f"Fixed configuration saved to: {fixed_path}")
    return 1


# --- config create ---

def build_config_template(site_name: str, base_url: str, source: str) -> Dict[str, Any]:
    return {
        "site": {
            "name": site_name,
            "baseUrl": base_url,
            "source": source,
            "description": f"Scraper configuration for {site_name}",
            "maintainer": "gig-scrapers",
            "lastUpdated": date.today().isoformat(),
        },
        "browser": {"headless": True, "timeout": 30000, "viewport": {"width": 1280, "height": 720}},
        "rateLimit": {"delayBetweenRequests": 2000, "maxConcurrent": 1, "respectRobotsTxt": True},
        "workflow": [
            {"type": "navigate", "url": base_url, "waitForLoad": True},
            {"type": "wait", "condition": "networkidle", "timeout": 10000},
            {
                "type": "extract",
                "containerSelector": "TODO_REPLACE_WITH_EVENT_SELECTOR",
                "fields": {
                    "title": {"selector": "TODO_REPLACE_WITH_TITLE_SELECTOR", "attribute": "text", "required": True, "transform": "trim"},
                    "date": {"selector": "TODO_REPLACE_WITH_DATE_SELECTOR", "attribute": "text", "required": True, "transform": "date"},
                    "venue": {"selector": "TODO_REPLACE_WITH_VENUE_SELECTOR", "attribute": "text", "required": False, "transform": "trim"},
                    "eventUrl": {"selector": "a", "attribute": "href", "required": False, "transform": "url"},
                },
            },
        ],
        "mapping": {
            "id": {"strategy": "generated"},
            "title": "title",
            "venue": {"name": "venue", "city": "TODO_REPLACE_WITH_CITY"},
            "date": {"start": "date"},
            "urls": {"event": "eventUrl"},
        },
        "validation": {"required": ["title", "venue.name", "dateStart"], "minEventsExpected": 1},
        "debug": {"screenshots": False, "saveHtml": False, "logLevel": "info"},
    }


def cmd_config_create(args: argparse.Namespace) -> int:
    source = args.source or re.sub(r"[^a-z0-9]", "-", args.site_name.lower())
    configs_dir = _configs_dir(args)
    config_path = configs_dir / f"{source}.json"
    if config_path.exists():
        logger.error(f"Configuration already exists: {config_path}")
        return 1

    template = build_config_template(args.site_name, args.base_url, source)
    save_to_json_file(template, config_path, logger)
    print(f"Configuration template created: {config_path}\n")
    print("Next steps:")
    print("  1. Replace the TODO_REPLACE placeholders with selectors from the target site")
    print(f"  2. Validate it:  gig-scrapers config validate {config_path}")
    print(f"  3. Trial-run it: gig-scrapers test-config {config_path} --screenshots")
    return 0


# --- test-config ---

def summarize_results(gigs: List[Any], required: List[str]) -> Dict[str, int]:
    valid = sum(1 for gig in gigs if all(required_value(gig, path) for path in required))
    return {"totalEvents": len(gigs), "validEvents": valid, "invalidEvents": len(gigs) - valid}


async def run_test_config(args: argparse.Namespace) -> int:
    config_path = Path(args.config_file)
    try:
        config = load_config(config_path)
    except ConfigValidationError as e:
        logger.error(str(e))
        return 1

    print("Configuration loaded successfully")
    print(f"  Site: {config.site.name}")
    print(f"  Base URL: {config.site.base_url}")
    print(f"  Workflow steps: {len(config.workflow)}")
    if args.dry_run:
        print("Dry run complete - configuration is valid")
        return 0

    if args.screenshots:
        config = config.model_copy(update={"debug": DebugConfig(screenshots=True, save_html=True, log_level="debug")})
    headless = False if args.headed else (config.browser.headless if config.browser else settings.scraper_globals.default_headless_browser)

    scraper = ConfigDrivenScraper(config)
    started = time.monotonic()
    async with async_playwright() as p:
        browser = await p.chromium.launch(headless=headless, args=BROWSER_ARGS)
        try:
            gigs = await scraper.scrape(browser)
        finally:
            await browser.close()
    duration_ms = int((time.monotonic() - started) * 1000)

    required = config.validation.required if config.validation else []
    summary = summarize_results(gigs, required)
    print(f"Scrape completed in {duration_ms}ms")
    print(f"  Events found: {summary['totalEvents']}")
    if gigs:
        print(f"  Sample event: {gigs[0].title} at {gigs[0].venue.name} ({gigs[0].date_start})")
    print(f"  Valid events: {summary['validEvents']}")
    if summary["invalidEvents"]:
        logger.warning(f"Invalid events: {summary['invalidEvents']}")

    if args.output:
        output = {
            "scrapeInfo": {
                "configFile": str(config_path),
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "duration": duration_ms,
                "url": config.site.base_url,
            },
            "config": {
                "site": config.site.model_dump(mode="json", by_alias=True, exclude_none=True),
                "validation": config.validation.model_dump(mode="json", by_alias=True) if config.validation else None,
            },
            "results": [gig.to_dict() for gig in gigs],
            "summary": summary,
        }
        save_to_json_file(output, Path(args.output), logger)
    return 0


def cmd_test_config(args: argparse.Namespace) -> int:
    try:
        return asyncio.run(run_test_config(args))
    except ScraperError as e:
        logger.error(f"Test failed: {e}")
        return 1
    except Exception as e:
        logger.error(f"Test failed with unexpected error: {e}", exc_info=True)
        return 1


# --- parser ---

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="gig-scrapers", description="Config-driven gig scrapers")
    parser.add_argument("--log-level", default=None, help="Override APP_LOG_LEVEL (DEBUG, INFO, ...)")
    commands = parser.add_subparsers(dest="command", required=True)

    config_cmd = commands.add_parser("config", help="Manage scraper configurations")
    config_sub = config_cmd.add_subparsers(dest="config_command", required=True)

    list_cmd = config_sub.add_parser("list", help="List available scraper configurations")
    list_cmd.add_argument("--detailed", action="store_true", help="Show detailed information about each config")
    list_cmd.add_argument("--dir", help="Configs directory (default: FILE_OUTPUT_CONFIGS_DIRECTORY)")
    list_cmd.set_defaults(func=cmd_config_list)

    validate_cmd = config_sub.add_parser("validate", help="Validate a scraper configuration file")
    validate_cmd.add_argument("config_file", help="Path to the configuration file")
    validate_cmd.add_argument("--fix", action="store_true", help="Add missing default blocks and write <name>.fixed.json")
    validate_cmd.set_defaults(func=cmd_config_validate)

    create_cmd = config_sub.add_parser("create", help="Create a new scraper configuration template")
    create_cmd.add_argument("site_name", help="Name of the site to scrape")
    create_cmd.add_argument("base_url", help="Base URL of the site")
    create_cmd.add_argument("--source", help="Source identifier (default: derived from the site name)")
    create_cmd.add_argument("--dir", help="Configs directory (default: FILE_OUTPUT_CONFIGS_DIRECTORY)")
    create_cmd.set_defaults(func=cmd_config_create)

    test_cmd = commands.add_parser("test-config", help="Run a configuration against the live site")
    test_cmd.add_argument("config_file", help="Path to the configuration file")
    test_cmd.add_argument("--headed", action="store_true", help="Show the browser window")
    test_cmd.add_argument("--screenshots", action="store_true", help="Enable debug screenshots and HTML dumps")
    test_cmd.add_argument("--dry-run", action="store_true", help="Validate the config only, do not scrape")
    test_cmd.add_argument("--output", help="Write results and a summary to this JSON file")
    test_cmd.set_defaults(func=cmd_test_config)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logger("gig_scrapers", "gig_scrapers", level=args.log_level)
    init_sentry()
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
