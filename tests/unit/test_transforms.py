import logging

import pytest

from conftest import BASE_URL, make_config
from gig_scrapers.transforms import BUILTIN_TRANSFORMS, TransformContext, TransformRegistry


def test_text_transforms(registry):
    assert registry.apply("  Hello  ", "trim") == "Hello"
    assert registry.apply("Hello", "lowercase") == "hello"
    assert registry.apply("Hello", "uppercase") == "HELLO"
    assert registry.apply("  Hello,  World! ", "slug") == "hello-world"


def test_extract_text(registry):
    assert registry.apply("Doors 7pm, 18+", "extract-text", {"pattern": r"(\d+pm)"}) == "7pm"
    assert registry.apply("AGE 18+", "extract-text", {"pattern": r"age \d+\+"}) == "AGE 18+"
    assert registry.apply("no match here", "extract-text", {"pattern": r"(\d+)"}) == "no match here"


def test_regex_replace(registry):
    assert registry.apply("Live: Band Name", "regex", {"pattern": r"^Live:\s*"}) == "Band Name"
    assert registry.apply("hello world", "regex", {"pattern": r"(\w+) (\w+)", "replacement": "$2 $1"}) == "world hello"
    assert registry.apply("a-b-c", "regex", {"pattern": "-", "replacement": "+", "flags": ""}) == "a+b-c"
    assert registry.apply("a-b-c", "regex", {"pattern": "-", "replacement": "+"}) == "a+b+c"
    assert registry.apply("price", "regex", {"pattern": "price", "replacement": "$$5 ($&)"}) == "$5 (price)"


def test_invalid_regex_returns_value(registry, caplog):
    with caplog.at_level(logging.WARNING):
        assert registry.apply("unchanged", "regex", {"pattern": "("}) == "unchanged"
    assert "Invalid regex pattern" in caplog.text


def test_time_range_transforms(registry):
    assert registry.apply("20:00 - 02:00", "time-range-start") == "20:00"
    assert registry.apply("20:00 - 02:00", "time-range-end") == "02:00"
    assert registry.apply("late", "time-range-start") == "late"


@pytest.mark.parametrize("href, expected", [
    ("/events/1", BASE_URL + "/events/1"),
    ("//cdn.example.com/a.jpg", "https://cdn.example.com/a.jpg"),
    ("#gig", BASE_URL + "/#gig"),
    ("events/1", BASE_URL + "/events/1"),
    ("https://tickets.example.org/x", "https://tickets.example.org/x"),
    ("mailto:box@venue.example.com", "mailto:box@venue.example.com"),
])
def test_url_transform(registry, href, expected):
    assert registry.apply(href, "url") == expected


def test_url_transform_params_override_context(registry):
    params = {"baseUrl": "https://other.example.com/", "fragmentPath": "/whats-on"}
    assert registry.apply("#gig", "url", params) == "https://other.example.com/whats-on#gig"


def test_url_transform_fragment_under_sub_path(registry):
    params = {"baseUrl": "https://x.com", "fragmentPath": "/whats-on/"}
    assert registry.apply("#e1", "url", params) == "https://x.com/whats-on/#e1"
    assert registry.apply("/events/1", "url", params) == "https://x.com/events/1"


def test_date_transform_formats(registry):
    assert registry.apply("Wed.13.Aug.25", "date", {"format": "compact"}) == "2025-08-13T12:00:00.000Z"
    assert registry.apply("15 August", "date") == "2025-08-15T19:00:00.000Z"
    assert registry.apply("15 August", "date", {"time": "9pm"}) == "2025-08-15T21:00:00.000Z"
    assert registry.apply("Tuesday 12 Aug 2025", "date", {"format": "explicit-year"}) == "2025-08-12T12:00:00.000Z"


def test_date_transform_uses_context_timezone(clock):
    london = TransformRegistry(TransformContext(base_url=BASE_URL, timezone="Europe/London", clock=clock))
    assert london.apply("15 August", "date") == "2025-08-15T18:00:00.000Z"


def test_unknown_transform_passes_value_through(registry, caplog):
    with caplog.at_level(logging.WARNING):
        assert registry.apply(" raw ", "does-not-exist") == " raw "
    assert "Unknown transform type: does-not-exist" in caplog.text


def test_lists_are_transformed_element_wise(registry):
    assert registry.apply([" a ", "b "], "trim") == ["a", "b"]

    registry.register("drop-b", lambda value, params, context: None if value == "b" else value)
    assert registry.apply(["a", "b", "c"], "drop-b") == ["a", "c"]


def test_none_is_passed_through(registry):
    assert registry.apply(None, "trim") is None


def test_register_as_decorator(registry):
    @registry.register("shout")
    def shout(value, params, context):
        return value.upper() + params.get("suffix", "!")

    assert "shout" in registry
    assert registry.apply("hey", "shout") == "HEY!"
    assert registry.apply("hey", "shout", {"suffix": "?"}) == "HEY?"


def test_registry_without_builtins():
    bare = TransformRegistry(include_builtins=False)
    assert bare.names() == set()
    assert bare.apply(" x ", "trim") == " x "


def test_registry_names_include_builtins_and_site_transforms(registry):
    names = registry.names()
    assert set(BUILTIN_TRANSFORMS) <= names
    assert "thekla-bristol-date" in names
    assert registry.unregistered(["trim", "mystery"]) == {"mystery"}


def test_for_config_warns_about_unregistered_transforms(caplog, clock):
    data_fields = {
        "title": {"selector": ".title", "transform": "sparkle"},
        "date": {"selector": ".date", "transform": "date"},
    }
    config = make_config(workflow=[{"type": "extract", "containerSelector": ".event", "fields": data_fields}])
    with caplog.at_level(logging.WARNING):
        registry = TransformRegistry.for_config(config, clock=clock, timezone="UTC")
    assert "sparkle" in caplog.text
    assert registry.context.base_url == BASE_URL
    assert registry.context.now() == clock()
