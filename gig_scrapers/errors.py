"""Exceptions raised by the scraping engine.

Field-level problems are never raised: they are logged and the item carries
on without the field. Everything here either drops one event
(``DateParsingError``), is caught around a secondary page visit
(``FollowUpError``) or ends the run for a site.
"""

from typing import List, Optional


class ScraperError(Exception):
    """Base class for all engine errors."""


class ConfigValidationError(ScraperError):
    """The site configuration is malformed or does not match the schema."""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        self.errors = list(errors or [])
        if self.errors:
            message = f"{message}: " + "; ".join(self.errors)
        super().__init__(message)


class ActionExecutionError(ScraperError):
    """A required workflow action failed; the run for this site is aborted."""

    def __init__(self, action_type: str, index: int, message: str):
        self.action_type = action_type
        self.index = index
        super().__init__(f"Step {index + 1} ({action_type}) failed: {message}")


class DateParsingError(ScraperError, ValueError):
    """A date could not be resolved; the event carrying it is dropped."""


class FollowUpError(ScraperError):
    """A follow-up page could not be loaded."""


class ResultValidationError(ScraperError):
    """The scraped batch failed the count or required-field checks."""
