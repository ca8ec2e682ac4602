import logging
import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

# Temporarily add project root to sys.path for config import if tests are run directly
# and the project is not installed as a package.
import sys
project_root = Path(__file__).resolve().parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from gig_scrapers import sentry_setup, utils
from gig_scrapers.config import FileOutputSettings, GlobalScraperSettings, SentrySettings, Settings


class TestConfigLoading(unittest.TestCase):

    @mock.patch.dict(os.environ, {
        "SCRAPER_GLOBAL_DEFAULT_TIMEOUT_MS": "45000",
        "SCRAPER_GLOBAL_DEFAULT_HEADLESS_BROWSER": "False",
        "SCRAPER_GLOBAL_DEFAULT_TIMEZONE": "Europe/London",
        "FILE_OUTPUT_CONFIGS_DIRECTORY": "/tmp/scraper-configs",
        "FILE_OUTPUT_ENABLE_LOG_FILE": "true",
    })
    def test_load_settings_from_env_variables(self):
        scraper_globals = GlobalScraperSettings()
        self.assertEqual(scraper_globals.default_timeout_ms, 45000)
        self.assertEqual(scraper_globals.default_headless_browser, False)
        self.assertEqual(scraper_globals.default_timezone, "Europe/London")

        file_outputs = FileOutputSettings()
        self.assertEqual(file_outputs.configs_directory, Path("/tmp/scraper-configs"))
        self.assertTrue(file_outputs.enable_log_file)

    def test_default_settings_values(self):
        with mock.patch.dict(os.environ, {}, clear=True):
            self.assertEqual(GlobalScraperSettings().default_timeout_ms, 30000)
            self.assertEqual(GlobalScraperSettings().default_timezone, "UTC")
            self.assertEqual(FileOutputSettings().configs_directory, Path("data/scraper-configs"))
            self.assertFalse(FileOutputSettings().enable_log_file)
            self.assertIsNone(SentrySettings().dsn)

            settings_with_defaults = Settings(_env_file=None)
            self.assertEqual(settings_with_defaults.environment, "development")
            self.assertEqual(settings_with_defaults.log_level, "INFO")

    @mock.patch.dict(os.environ, {"APP_ENV": "production", "APP_LOG_LEVEL": "DEBUG"})
    def test_app_aliases(self):
        settings = Settings(_env_file=None)
        self.assertEqual(settings.environment, "production")
        self.assertEqual(settings.log_level, "DEBUG")

    @mock.patch.dict(os.environ, {"SENTRY_DSN": "https://public@o0.ingest.sentry.io/1", "SENTRY_TRACES_SAMPLE_RATE": "0.25"})
    def test_sentry_settings_from_env(self):
        sentry = SentrySettings()
        self.assertEqual(str(sentry.dsn), "https://public@o0.ingest.sentry.io/1")
        self.assertEqual(sentry.traces_sample_rate, 0.25)


class TestSentrySetup(unittest.TestCase):

    @mock.patch("gig_scrapers.sentry_setup.sentry_sdk.init")
    def test_skipped_without_dsn(self, mock_init):
        with mock.patch.object(sentry_setup.settings.sentry, "dsn", None):
            self.assertFalse(sentry_setup.init_sentry())
        mock_init.assert_not_called()

    @mock.patch("gig_scrapers.sentry_setup.sentry_sdk.init")
    def test_initialized_with_dsn(self, mock_init):
        with mock.patch.object(sentry_setup.settings.sentry, "dsn", "https://public@o0.ingest.sentry.io/1"):
            self.assertTrue(sentry_setup.init_sentry())
        kwargs = mock_init.call_args.kwargs
        self.assertEqual(kwargs["dsn"], "https://public@o0.ingest.sentry.io/1")
        self.assertEqual(kwargs["environment"], sentry_setup.settings.sentry.environment or sentry_setup.settings.environment)


class TestLoggerSetup(unittest.TestCase):

    def test_console_logger_is_cached(self):
        logger = utils.setup_logger("gig_scrapers.tests.console", "tests", level="warning")
        self.assertIs(utils.setup_logger("gig_scrapers.tests.console", "tests"), logger)
        self.assertEqual(logger.level, logging.WARNING)
        self.assertEqual(len(logger.handlers), 1)

    def test_file_handler_when_enabled(self):
        with tempfile.TemporaryDirectory() as tmp_dir:
            with mock.patch.object(utils.settings.file_outputs, "enable_log_file", True), \
                    mock.patch.object(utils.settings.file_outputs, "log_output_directory", Path(tmp_dir)):
                logger = utils.setup_logger("gig_scrapers.tests.file", "tests", level=logging.INFO)
            self.assertEqual(len(logger.handlers), 2)
            self.assertTrue(any(p.name.startswith("tests_") for p in Path(tmp_dir).iterdir()))
            for handler in logger.handlers:
                handler.close()
            logger.handlers.clear()


class TestUrlHelpers(unittest.TestCase):

    def test_absolutize_url(self):
        base = "https://venue.example.com/"
        self.assertEqual(utils.absolutize_url("/a", base), "https://venue.example.com/a")
        self.assertEqual(utils.absolutize_url("//cdn.example.com/a.png", "http://venue.example.com"), "http://cdn.example.com/a.png")
        self.assertEqual(utils.absolutize_url("#x", base, "whats-on"), "https://venue.example.com/whats-on#x")
        self.assertEqual(utils.absolutize_url("a/b", base), "https://venue.example.com/a/b")
        self.assertEqual(utils.absolutize_url("tel:0117", base), "tel:0117")
        self.assertEqual(utils.absolutize_url("/a", None), "/a")

    def test_get_nested_value(self):
        self.assertEqual(utils.get_nested_value({"venue": {"name": "Thekla"}}, "venue.name"), "Thekla")
        self.assertIsNone(utils.get_nested_value({"venue": None}, "venue.name"))


if __name__ == "__main__":
    unittest.main()
