import json

import pytest

from conftest import BASE_URL, LISTING_HTML, DummyBrowser, DummyPage, make_config_data
from gig_scrapers import cli
from gig_scrapers.config_loader import validate_config_data


def write_config(path, data):
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


class DummyPlaywright:
    """Async context manager standing in for async_playwright()."""

    def __init__(self, browser, mocker):
        self.chromium = mocker.Mock()
        self.chromium.launch = mocker.AsyncMock(return_value=browser)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False


def test_config_create_writes_valid_template(tmp_path, capsys):
    assert cli.main(["config", "create", "The Fleece", "https://www.thefleece.co.uk", "--dir", str(tmp_path)]) == 0

    path = tmp_path / "the-fleece.json"
    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["site"]["source"] == "the-fleece"
    assert data["workflow"][0]["url"] == "https://www.thefleece.co.uk"
    assert validate_config_data(data) == []
    assert "Configuration template created" in capsys.readouterr().out


def test_config_create_refuses_to_overwrite(tmp_path):
    args = ["config", "create", "Thekla", "https://www.theklabristol.co.uk", "--source", "thekla", "--dir", str(tmp_path)]
    assert cli.main(args) == 0
    (tmp_path / "thekla.json").write_text("{}", encoding="utf-8")
    assert cli.main(args) == 1
    assert (tmp_path / "thekla.json").read_text(encoding="utf-8") == "{}"


def test_config_validate_valid(tmp_path, capsys):
    path = write_config(tmp_path / "venue.json", make_config_data())
    assert cli.main(["config", "validate", str(path)]) == 0
    out = capsys.readouterr().out
    assert "Configuration is valid!" in out
    assert "Workflow Steps: 2" in out


def test_config_validate_invalid(tmp_path, capsys):
    data = make_config_data()
    data["workflow"][0] = {"type": "navigate"}
    path = write_config(tmp_path / "venue.json", data)

    assert cli.main(["config", "validate", str(path), "--fix"]) == 1

    out = capsys.readouterr().out
    assert "workflow.0.url: Field required" in out
    assert "Added default browser configuration" in out
    # the added blocks do not repair the broken action, so nothing is written
    assert not (tmp_path / "venue.fixed.json").exists()


def test_config_validate_missing_file(tmp_path):
    assert cli.main(["config", "validate", str(tmp_path / "missing.json")]) == 1


def test_config_list(tmp_path, capsys):
    write_config(tmp_path / "venue.json", make_config_data())
    (tmp_path / "broken.json").write_text("{oops", encoding="utf-8")

    assert cli.main(["config", "list", "--detailed", "--dir", str(tmp_path)]) == 0

    out = capsys.readouterr().out
    assert "Found 2 scraper configuration(s)" in out
    assert "x broken.json - Invalid configuration file" in out
    assert "Source: test-venue" in out
    assert "Workflow Steps: 2" in out
    assert "Schema: valid" in out


def test_config_list_missing_directory(tmp_path, capsys):
    assert cli.main(["config", "list", "--dir", str(tmp_path / "nowhere")]) == 0
    assert "No scraper configurations directory found" in capsys.readouterr().out


def test_test_config_dry_run(tmp_path, mocker, capsys):
    launcher = mocker.patch("gig_scrapers.cli.async_playwright")
    path = write_config(tmp_path / "venue.json", make_config_data())

    assert cli.main(["test-config", str(path), "--dry-run"]) == 0

    launcher.assert_not_called()
    assert "Dry run complete" in capsys.readouterr().out


def test_test_config_invalid_config(tmp_path):
    path = write_config(tmp_path / "venue.json", {"site": {"name": "x"}})
    assert cli.main(["test-config", str(path)]) == 1


def test_test_config_writes_results(tmp_path, mocker):
    page = DummyPage(pages={BASE_URL + "/events": LISTING_HTML})
    browser = DummyBrowser(page)
    playwright = DummyPlaywright(browser, mocker)
    mocker.patch("gig_scrapers.cli.async_playwright", return_value=playwright)
    config_path = write_config(tmp_path / "venue.json", make_config_data(validation={"required": ["title", "eventUrl"]}))
    output_path = tmp_path / "out" / "results.json"

    assert cli.main(["test-config", str(config_path), "--headed", "--output", str(output_path)]) == 0

    playwright.chromium.launch.assert_awaited_once()
    assert playwright.chromium.launch.await_args.kwargs["headless"] is False
    assert browser.closed

    output = json.loads(output_path.read_text(encoding="utf-8"))
    assert output["scrapeInfo"]["configFile"] == str(config_path)
    assert output["scrapeInfo"]["url"] == BASE_URL
    assert output["config"]["site"]["source"] == "test-venue"
    assert output["summary"] == {"totalEvents": 2, "validEvents": 2, "invalidEvents": 0}
    assert [r["title"] for r in output["results"]] == ["The Midnight Ramblers", "Sunday Sessions"]
    assert output["results"][0]["dateStart"] == "2025-08-13T12:00:00.000Z"


def test_test_config_reports_scrape_failure(tmp_path, mocker):
    page = DummyPage(pages={BASE_URL + "/events": LISTING_HTML})
    page.goto_should_raise = RuntimeError("net::ERR_CONNECTION_REFUSED")
    browser = DummyBrowser(page)
    mocker.patch("gig_scrapers.cli.async_playwright", return_value=DummyPlaywright(browser, mocker))
    path = write_config(tmp_path / "venue.json", make_config_data())

    assert cli.main(["test-config", str(path)]) == 1
    assert browser.closed


def test_summarize_results_counts_invalid(mocker):
    complete = mocker.Mock(**{"to_dict.return_value": {"title": "A", "venue": {"name": "V"}}})
    partial = mocker.Mock(**{"to_dict.return_value": {"title": "B", "venue": {}}, "model_dump.return_value": {}})
    assert cli.summarize_results([complete, partial], ["title", "venue.name"]) == {
        "totalEvents": 2, "validEvents": 1, "invalidEvents": 1,
    }


def test_command_is_required():
    with pytest.raises(SystemExit):
        cli.main([])
