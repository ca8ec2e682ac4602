import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Tuple, Union

import yaml
from pydantic import ValidationError

from gig_scrapers.errors import ConfigValidationError
from gig_scrapers.schemas.scraper_config import ACTION_TYPES, ScraperConfig

logger = logging.getLogger(__name__)

CONFIG_SUFFIXES = (".json", ".yaml", ".yml")

# Blocks injected by `config validate --fix` when they are missing.
DEFAULT_FIX_BLOCKS: Dict[str, Dict[str, Any]] = {
    "browser": {"headless": True, "timeout": 30000},
    "rateLimit": {"delayBetweenRequests": 1000, "maxConcurrent": 1},
    "validation": {"required": ["title", "venue.name"], "minEventsExpected": 0},
}


def _format_loc(loc: Tuple[Union[str, int], ...]) -> str:
    parts = []
    for i, part in enumerate(loc):
        # Tagged-union errors carry the action type as an extra segment.
        if i == 2 and loc[0] == "workflow" and isinstance(loc[1], int) and part in ACTION_TYPES:
            continue
        parts.append(str(part))
    return ".".join(parts)


def format_validation_errors(error: ValidationError) -> List[str]:
    return [f"{_format_loc(err['loc'])}: {err['msg']}" for err in error.errors()]


def read_config_data(path: Union[str, Path]) -> Dict[str, Any]:
    """Read a JSON or YAML config file into a plain dict without validating it."""
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            if path.suffix.lower() in (".yaml", ".yml"):
                data = yaml.safe_load(f)
            else:
                data = json.load(f)
    except FileNotFoundError:
        logger.error(f"Configuration file not found: {path}")
        raise ConfigValidationError(f"Configuration file not found: {path}")
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        logger.error(f"Error parsing configuration file {path}: {e}")
        raise ConfigValidationError(f"Invalid configuration file {path}", [str(e)]) from e

    if not isinstance(data, dict):
        raise ConfigValidationError(f"Invalid configuration file {path}", ["top level must be an object"])
    return data


def validate_config_data(data: Dict[str, Any]) -> List[str]:
    """Return path-qualified schema errors; an empty list means the data is valid."""
    try:
        ScraperConfig.model_validate(data)
    except ValidationError as e:
        return format_validation_errors(e)
    return []


def parse_config(data: Dict[str, Any], source: str = "<config>") -> ScraperConfig:
    try:
        config = ScraperConfig.model_validate(data)
    except ValidationError as e:
        errors = format_validation_errors(e)
        logger.error(f"Configuration {source} failed validation with {len(errors)} error(s)")
        raise ConfigValidationError(f"Invalid configuration {source}", errors) from e
    logger.debug(f"Configuration {source} loaded: {config.site.name} ({len(config.workflow)} workflow steps)")
    return config


def load_config(path: Union[str, Path]) -> ScraperConfig:
    """Load and validate one site configuration file."""
    path = Path(path)
    return parse_config(read_config_data(path), source=str(path))


def apply_default_fixes(data: Dict[str, Any]) -> Tuple[Dict[str, Any], List[str]]:
    """Add the default browser, rateLimit and validation blocks that are missing.

    Returns the patched copy and the names of the blocks that were added.
    """
    fixed = dict(data)
    added = []
    for key, block in DEFAULT_FIX_BLOCKS.items():
        if not fixed.get(key):
            fixed[key] = json.loads(json.dumps(block))
            added.append(key)
    return fixed, added


def fixed_config_path(path: Union[str, Path]) -> Path:
    path = Path(path)
    return path.with_name(f"{path.stem}.fixed.json")


def list_config_files(directory: Union[str, Path]) -> List[Path]:
    directory = Path(directory)
    if not directory.is_dir():
        return []
    return sorted(
        p for p in directory.iterdir()
        if p.is_file() and p.suffix.lower() in CONFIG_SUFFIXES and not p.name.endswith(".fixed.json")
    )
