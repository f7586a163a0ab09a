"""Unit tests for clubapi.core.config.Settings validation."""

import unittest

from pydantic import ValidationError

from clubapi.core.config import DEFAULT_JWT_SECRET, Settings


class TestSettingsDefaults(unittest.TestCase):
    def test_auth_defaults(self) -> None:
        settings = Settings(_env_file=None)
        self.assertEqual(settings.JWT_EXPIRE_MINUTES, 7 * 24 * 60)
        self.assertEqual(settings.LOGIN_RATE_LIMIT_MAX_ATTEMPTS, 10)
        self.assertEqual(settings.FORGOT_PASSWORD_RATE_LIMIT_MAX_ATTEMPTS, 5)
        self.assertEqual(settings.ACCOUNT_LOCKOUT_THRESHOLD, 5)
        self.assertEqual(settings.PASSWORD_RESET_EXPIRE_MINUTES, 10)
        self.assertTrue(settings.CHECK_ACCOUNT_STATUS)


class TestSettingsValidation(unittest.TestCase):
    def test_default_secret_refused_in_prod(self) -> None:
        with self.assertRaises(ValidationError):
            Settings(_env_file=None, APP_ENV="prod", JWT_SECRET=DEFAULT_JWT_SECRET)

    def test_custom_secret_accepted_in_prod(self) -> None:
        settings = Settings(_env_file=None, APP_ENV="prod", JWT_SECRET="long-random-value")
        self.assertEqual(settings.JWT_SECRET.get_secret_value(), "long-random-value")

    def test_secret_hidden_in_repr(self) -> None:
        settings = Settings(_env_file=None, JWT_SECRET="do-not-print-me")
        self.assertNotIn("do-not-print-me", repr(settings))

    def test_blank_secret_refused(self) -> None:
        with self.assertRaises(ValidationError):
            Settings(_env_file=None, JWT_SECRET="   ")

    def test_non_hmac_algorithm_refused(self) -> None:
        with self.assertRaises(ValidationError):
            Settings(_env_file=None, JWT_ALGORITHM="RS256")

    def test_expiry_range(self) -> None:
        for minutes in (0, 10081):
            with self.subTest(minutes=minutes):
                with self.assertRaises(ValidationError):
                    Settings(_env_file=None, JWT_EXPIRE_MINUTES=minutes)

    def test_non_postgres_url_refused(self) -> None:
        with self.assertRaises(ValidationError):
            Settings(_env_file=None, DATABASE_URL="sqlite:///club.db")

    def test_attempt_limits_must_be_positive(self) -> None:
        with self.assertRaises(ValidationError):
            Settings(_env_file=None, LOGIN_RATE_LIMIT_MAX_ATTEMPTS=0)
        with self.assertRaises(ValidationError):
            Settings(_env_file=None, FORGOT_PASSWORD_RATE_LIMIT_WINDOW_MINUTES=0)


if __name__ == "__main__":
    unittest.main()
