import os
import unittest
from unittest.mock import patch

import dashboard_fixtures  # noqa: F401
from testdash.core.config import Settings, load_settings
from testdash.core.exceptions import ValidationError


class SettingsTests(unittest.TestCase):
    def test_defaults(self):
        settings = load_settings()

        self.assertEqual(settings.DEFAULT_TESTS_LIMIT, 100)
        self.assertEqual(settings.DEFAULT_HISTORY_LIMIT, 10)
        self.assertEqual(settings.FLAKY_MAX_RESULTS, 50)
        self.assertEqual(settings.NOTE_MAX_LENGTH, 1000)
        self.assertEqual(settings.DELETE_BATCH_SIZE, 900)
        self.assertEqual(settings.RETENTION_CRON, "0 3 * * *")
        self.assertFalse(settings.RETENTION_ENABLED)

    def test_environment_overrides(self):
        with patch.dict(os.environ, {"DEFAULT_TESTS_LIMIT": "25", "LOG_LEVEL": "debug"}):
            settings = Settings()

        self.assertEqual(settings.DEFAULT_TESTS_LIMIT, 25)
        self.assertEqual(settings.LOG_LEVEL, "DEBUG")

    def test_keyword_overrides_win(self):
        with patch.dict(os.environ, {"DEFAULT_HISTORY_LIMIT": "25"}):
            settings = load_settings(DEFAULT_HISTORY_LIMIT=5)

        self.assertEqual(settings.DEFAULT_HISTORY_LIMIT, 5)

    def test_non_positive_limit_is_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            load_settings(DEFAULT_TESTS_LIMIT=0)

        self.assertEqual(ctx.exception.details["errors"][0]["loc"], ("DEFAULT_TESTS_LIMIT",))

    def test_batch_size_above_parameter_limit_is_rejected(self):
        with self.assertRaises(ValidationError):
            load_settings(DELETE_BATCH_SIZE=1000)

    def test_invalid_cron_is_rejected(self):
        with self.assertRaises(ValidationError):
            load_settings(RETENTION_CRON="every night")

    def test_threshold_must_be_a_percentage(self):
        with self.assertRaises(ValidationError):
            load_settings(FLAKY_DEFAULT_THRESHOLD=101)

    def test_unknown_log_level_is_rejected(self):
        with self.assertRaises(ValidationError):
            load_settings(LOG_LEVEL="VERBOSE")

    def test_enabled_retention_needs_a_policy(self):
        with self.assertRaises(ValidationError):
            load_settings(RETENTION_ENABLED=True)

        settings = load_settings(RETENTION_ENABLED=True, RETENTION_DAYS=14)
        self.assertEqual(settings.RETENTION_DAYS, 14)
