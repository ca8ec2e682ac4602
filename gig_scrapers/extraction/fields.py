import logging
from typing import Any, Callable, Dict, Mapping, Optional

from bs4 import Tag

from gig_scrapers.errors import DateParsingError
from gig_scrapers.schemas.scraper_config import FieldConfig
from gig_scrapers.transforms import TransformRegistry, Value

logger = logging.getLogger(__name__)

ParamDefaults = Callable[[str], Dict[str, Any]]


def read_attribute(node: Tag, attribute: str = "text") -> Optional[str]:
    """Read text content, inner markup or a named attribute from a parsed node."""
    if attribute == "text":
        return node.get_text()
    if attribute == "innerHTML":
        return node.decode_contents()
    value = node.get(attribute)
    if isinstance(value, list):  # multi-valued attributes such as class
        value = " ".join(value)
    return value


def is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple)):
        return len(value) == 0
    return False


def resolve_params(params: Optional[Mapping[str, Any]], item: Mapping[str, Any]) -> Dict[str, Any]:
    """Replace string parameters that name an already-extracted field with that field's value."""
    resolved = dict(params or {})
    for key, param_value in resolved.items():
        if isinstance(param_value, str) and item.get(param_value) is not None:
            resolved[key] = item[param_value]
    return resolved


class FieldExtractor:
    """Applies field configs to one container node at a time."""

    def __init__(self, registry: TransformRegistry, follow_up=None):
        self.registry = registry
        self.follow_up = follow_up

    def extract_value(
        self,
        container: Tag,
        field_config: FieldConfig,
        item: Mapping[str, Any],
        default_params: Optional[Dict[str, Any]] = None,
    ) -> Value:
        if field_config.multiple:
            values = (read_attribute(node, field_config.attribute) for node in container.select(field_config.selector))
            value: Value = [v for v in values if not is_empty(v)]
        else:
            node = container.select_one(field_config.selector)
            value = read_attribute(node, field_config.attribute) if node is not None else None

        if not is_empty(value) and field_config.transform:
            params = dict(default_params or {})
            params.update(resolve_params(field_config.transform_params, item))
            value = self.registry.apply(value, field_config.transform, params)
        return value

    async def extract_item(
        self,
        container: Tag,
        fields: Mapping[str, FieldConfig],
        item: Optional[Dict[str, Any]] = None,
        param_defaults: Optional[ParamDefaults] = None,
    ) -> Optional[Dict[str, Any]]:
        """Build one item from a container.

        Returns None when a date in the container cannot be parsed; the event is
        dropped. Other field failures only leave that field unset.
        """
        item = dict(item or {})
        preset = set(item)
        for field_name, field_config in fields.items():
            if field_name in preset:
                continue
            try:
                defaults = param_defaults(field_name) if param_defaults else None
                value = self.extract_value(container, field_config, item, defaults)
            except DateParsingError as e:
                logger.warning(f"Skipping event \"{item.get('title', '<untitled>')}\": {e}")
                return None
            except Exception as e:
                logger.error(f"Error extracting field '{field_name}': {e}")
                continue

            if is_empty(value) and field_config.required:
                if field_config.fallback is not None:
                    value = [field_config.fallback] if field_config.multiple else field_config.fallback
                else:
                    logger.warning(f"Required field '{field_name}' not found (selector: {field_config.selector})")
            if not is_empty(value):
                item[field_name] = value

            follow_up = field_config.follow_up
            if follow_up and self.follow_up and item.get(follow_up.url_field):
                item.update(await self.follow_up.fetch(item[follow_up.url_field], follow_up.fields, item))
        return item or None
