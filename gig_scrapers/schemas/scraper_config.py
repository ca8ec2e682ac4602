from typing import Annotated, Any, Dict, Iterator, List, Literal, Optional, Set, Union
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


ACTION_TYPES = ("navigate", "wait", "click", "scroll", "extract")
DATE_GROUP_METHODS = ("date-groups", "bristol-exchange")
DEFAULT_DATE_GROUP_SELECTOR = ".hf__listings-date.js_headfirst_embed_date"


def _check_url(value: str) -> str:
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError(f"Invalid url: {value!r}")
    return value


class ConfigModel(BaseModel):
    """Base for config sections: camelCase on the wire, immutable once loaded."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )


# --- Site / browser / politeness ---

class SiteConfig(ConfigModel):
    name: str
    base_url: str
    source: str
    description: Optional[str] = None
    maintainer: Optional[str] = None
    last_updated: Optional[str] = None

    @field_validator("base_url")
    @classmethod
    def base_url_must_be_absolute(cls, v: str) -> str:
        return _check_url(v)


class ViewportConfig(ConfigModel):
    width: int = 1280
    height: int = 720


class BrowserConfig(ConfigModel):
    user_agent: Optional[str] = None
    viewport: Optional[ViewportConfig] = None
    headless: bool = True
    timeout: int = 30000


class RateLimitConfig(ConfigModel):
    delay_between_requests: int = 1000
    max_concurrent: int = 1
    respect_robots_txt: bool = True


# --- Field extraction ---

class FollowUpFieldConfig(ConfigModel):
    """A field read from a follow-up page. Follow-ups do not nest."""

    selector: str
    attribute: str = "text"
    transform: Optional[str] = None
    transform_params: Optional[Dict[str, Any]] = None

    @model_validator(mode="before")
    @classmethod
    def reject_nested_follow_up(cls, data: Any) -> Any:
        if isinstance(data, dict) and ("followUp" in data or "follow_up" in data):
            raise ValueError("followUp is not allowed inside follow-up fields")
        return data


class FollowUpConfig(ConfigModel):
    url_field: str
    fields: Dict[str, FollowUpFieldConfig]


class FieldConfig(ConfigModel):
    selector: str
    attribute: str = "text"
    multiple: bool = False
    required: bool = True
    fallback: Optional[str] = None
    transform: Optional[str] = None
    transform_params: Optional[Dict[str, Any]] = None
    follow_up: Optional[FollowUpConfig] = None


# --- Workflow actions ---

class NavigateAction(ConfigModel):
    type: Literal["navigate"]
    url: str
    wait_for_load: bool = True

    @field_validator("url")
    @classmethod
    def url_must_be_absolute(cls, v: str) -> str:
        return _check_url(v)


class WaitAction(ConfigModel):
    type: Literal["wait"]
    selector: Optional[str] = None
    timeout: int = 5000
    condition: Literal["visible", "hidden", "networkidle"] = "visible"


class ClickAction(ConfigModel):
    type: Literal["click"]
    selector: str
    wait_after: Optional[int] = None
    optional: bool = False


class ScrollAction(ConfigModel):
    type: Literal["scroll"]
    direction: Literal["down", "up", "bottom"] = "down"
    amount: Optional[int] = None
    wait_after: Optional[int] = None


class ExtractAction(ConfigModel):
    type: Literal["extract"]
    container_selector: str
    fields: Dict[str, FieldConfig]
    follow_up: Optional[FollowUpConfig] = None
    method: Optional[str] = None
    date_group_selector: Optional[str] = None


ActionConfig = Annotated[
    Union[NavigateAction, WaitAction, ClickAction, ScrollAction, ExtractAction],
    Field(discriminator="type"),
]


# --- Mapping to the Gig record ---

class IdMapping(ConfigModel):
    strategy: Literal["generated", "extracted"] = "generated"
    fields: Optional[List[str]] = None


class VenueMapping(ConfigModel):
    name: str
    address: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None


class DateFieldMapping(ConfigModel):
    field: str
    transform: Optional[str] = None
    transform_params: Optional[Dict[str, Any]] = None


DateSource = Union[str, DateFieldMapping]


class DateMapping(ConfigModel):
    start: DateSource
    end: Optional[DateSource] = None
    timezone: Optional[str] = None


class UrlsMapping(ConfigModel):
    event: Optional[str] = None
    tickets: Optional[str] = None
    info: Optional[str] = None


class MappingConfig(ConfigModel):
    id: IdMapping = Field(default_factory=IdMapping)
    title: str
    artist: Optional[str] = None
    venue: VenueMapping
    date: DateMapping
    urls: Optional[UrlsMapping] = None
    images: Optional[str] = None
    genres: Optional[str] = None
    age_restriction: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None


# --- Validation / debug ---

class ValidationConfig(ConfigModel):
    required: List[str] = Field(default_factory=lambda: ["title", "venue.name", "dateStart"])
    date_format: Optional[str] = None
    min_events_expected: int = 0
    max_events_expected: Optional[int] = None


class DebugConfig(ConfigModel):
    screenshots: bool = False
    save_html: bool = False
    log_level: Literal["error", "warn", "info", "debug"] = "info"


class ScraperConfig(ConfigModel):
    site: SiteConfig
    browser: Optional[BrowserConfig] = None
    rate_limit: Optional[RateLimitConfig] = None
    workflow: List[ActionConfig]
    mapping: MappingConfig
    validation: Optional[ValidationConfig] = None
    debug: Optional[DebugConfig] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize back to the camelCase JSON shape the config was loaded from."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def extract_actions(self) -> Iterator[ExtractAction]:
        for action in self.workflow:
            if isinstance(action, ExtractAction):
                yield action

    def declared_field_names(self) -> Set[str]:
        """Every item key the workflow can produce, follow-up fields included."""
        names: Set[str] = set()
        for action in self.extract_actions():
            names.update(action.fields)
            if action.follow_up:
                names.update(action.follow_up.fields)
            for field_config in action.fields.values():
                if field_config.follow_up:
                    names.update(field_config.follow_up.fields)
            if self.uses_date_groups(action):
                names.add("dateGroup")
        return names

    def referenced_transforms(self) -> Set[str]:
        names: Set[str] = set()

        def _collect(field_configs):
            for field_config in field_configs.values():
                if field_config.transform:
                    names.add(field_config.transform)
                follow_up = getattr(field_config, "follow_up", None)
                if follow_up:
                    _collect(follow_up.fields)

        for action in self.extract_actions():
            _collect(action.fields)
            if action.follow_up:
                _collect(action.follow_up.fields)
        for date_source in (self.mapping.date.start, self.mapping.date.end):
            if isinstance(date_source, DateFieldMapping) and date_source.transform:
                names.add(date_source.transform)
        return names

    def uses_date_groups(self, action: ExtractAction) -> bool:
        return action.method in DATE_GROUP_METHODS or self.site.source == "bristol-exchange"

    @property
    def browser_timeout(self) -> Optional[int]:
        return self.browser.timeout if self.browser else None

    @property
    def delay_between_requests(self) -> int:
        return self.rate_limit.delay_between_requests if self.rate_limit else 0
