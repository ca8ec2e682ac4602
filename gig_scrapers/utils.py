import logging
import json
import re
from datetime import datetime, date, time as dt_time
from pathlib import Path
from typing import List, Dict, Any, Optional, Union

from gig_scrapers.config import settings


# --- Logger Setup ---
_loggers: Dict[str, logging.Logger] = {}

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(module)s.%(funcName)s:%(lineno)d - %(message)s"


def setup_logger(logger_name: str, log_file_prefix: str, level: Union[int, str, None] = None) -> logging.Logger:
    """Configures and returns a logger that outputs to console and, if enabled, a timestamped file."""
    if logger_name in _loggers:
        return _loggers[logger_name]

    if level is None:
        level = settings.log_level
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logger = logging.getLogger(logger_name)
    logger.setLevel(level)

    if logger.hasHandlers():
        logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT)

    ch = logging.StreamHandler()
    ch.setLevel(level)
    ch.setFormatter(formatter)
    logger.addHandler(ch)

    if settings.file_outputs.enable_log_file:
        log_dir = settings.file_outputs.log_output_directory
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            log_file_path = log_dir / f"{log_file_prefix}_{timestamp}.log"
            fh = logging.FileHandler(log_file_path)
            fh.setLevel(level)
            fh.setFormatter(formatter)
            logger.addHandler(fh)
        except OSError as e:
            logger.error(f"Failed to create file handler for logger {logger_name} at {log_dir}: {e}", exc_info=True)

    _loggers[logger_name] = logger
    logger.debug(f"Logger '{logger_name}' initialized.")
    return logger


# --- Small helpers shared by the engine ---

def get_nested_value(obj: Any, path: str) -> Any:
    """Resolve a dot-notation path ("venue.name") through nested dicts."""
    current = obj
    for key in path.split("."):
        if isinstance(current, dict):
            current = current.get(key)
        else:
            current = getattr(current, key, None)
        if current is None:
            return None
    return current


_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*:")


def absolutize_url(value: str, base_url: Optional[str], fragment_path: str = "/") -> str:
    """Resolve a scraped href against the site base URL.

    "//cdn/x" takes the base scheme, "/path" is appended to the base, "#frag"
    lands under ``fragment_path`` and a bare "path" is joined with a slash.
    Values that already carry a scheme are returned unchanged.
    """
    value = (value or "").strip()
    if not value or not base_url or _SCHEME_RE.match(value):
        return value

    base = base_url.rstrip("/")
    if value.startswith("//"):
        scheme = base.split(":", 1)[0] if _SCHEME_RE.match(base) else "https"
        return f"{scheme}:{value}"
    if value.startswith("/"):
        return f"{base}{value}"
    if value.startswith("#"):
        if not fragment_path.startswith("/"):
            fragment_path = "/" + fragment_path
        return f"{base}{fragment_path}{value}"
    return f"{base}/{value}"


def safe_filename_part(text: str) -> str:
    """Replace everything except ASCII letters and digits with underscores."""
    return re.sub(r"[^a-zA-Z0-9]", "_", text)


def timestamp_ms() -> int:
    return int(datetime.now().timestamp() * 1000)


# --- File Output Utilities ---

def _serialize_item(item: Any) -> Any:
    """Helper to serialize complex types within data for file outputs."""
    if isinstance(item, (datetime, date, dt_time)):
        return item.isoformat()
    if isinstance(item, Path):
        return str(item)
    return str(item)


def save_to_json_file(
    data_to_save: Union[List[Dict[str, Any]], Dict[str, Any]],
    filepath: Path,
    logger_obj: Optional[logging.Logger] = None
) -> Path:
    current_logger = logger_obj or logging.getLogger(__name__)
    filepath = Path(filepath)
    if filepath.parent and not filepath.parent.exists():
        filepath.parent.mkdir(parents=True, exist_ok=True)

    with open(filepath, 'w', encoding='utf-8') as f:
        json.dump(data_to_save, f, indent=2, ensure_ascii=False, default=_serialize_item)
    current_logger.info(f"Data successfully saved to JSON file: {filepath}")
    return filepath
