"""
Tests for configuration, error rendering and Sentry redaction.

Run with: pytest backend/tests/test_config.py -v
"""

import pytest

from config import Settings, get_cors_config, validate_environment
from registration.models import Registration
from sentry_integration import filter_sensitive_data, redact_dict
from utils.errors import (
    AlreadyRegisteredError,
    InputValidationError,
    NotFoundError,
    error_body,
    validation_details,
)


class TestSettings:

    def test_defaults(self):
        settings = Settings(ENVIRONMENT="development")

        assert settings.API_PREFIX == "/api/v1"
        assert settings.USERS_COLLECTION == "users"
        assert settings.REGISTRATIONS_COLLECTION == "registrations"
        assert settings.REGISTRATION_SUBJECT_LOCKING is True
        assert settings.EXTERNAL_CALL_TIMEOUT_SECONDS > 0
        assert settings.debug_enabled is True

    def test_timeout_must_be_positive(self):
        with pytest.raises(ValueError):
            Settings(EXTERNAL_CALL_TIMEOUT_SECONDS=0)

    def test_development_cors_is_wildcard_without_credentials(self):
        config = get_cors_config(Settings(ENVIRONMENT="development"))

        assert config["allow_origins"] == ["*"]
        assert config["allow_credentials"] is False

    def test_production_cors_lists_origins(self):
        settings = Settings(
            ENVIRONMENT="production",
            FRONTEND_URL="https://conf.example.org",
            CORS_ORIGINS="https://admin.example.org, https://conf.example.org",
        )

        config = get_cors_config(settings)

        assert config["allow_origins"] == ["https://admin.example.org", "https://conf.example.org"]
        assert config["allow_credentials"] is True

    def test_production_rejects_debug(self):
        settings = Settings(ENVIRONMENT="production", DEBUG=True, FIREBASE_PROJECT_ID="conf-prod")

        status = validate_environment(settings)

        assert status["valid"] is False
        assert "DEBUG should be False in production" in status["errors"]

    def test_production_requires_firebase_project(self):
        settings = Settings(
            ENVIRONMENT="production",
            FIREBASE_PROJECT_ID="",
            FIREBASE_CREDENTIALS_FILE="/nonexistent/service-account.json",
        )

        assert "FIREBASE_PROJECT_ID or FIREBASE_CREDENTIALS_FILE is required" in settings.validate_production_config()

    def test_development_is_valid_with_warnings(self):
        settings = Settings(ENVIRONMENT="development", FIREBASE_CREDENTIALS_FILE="/nonexistent.json")

        status = validate_environment(settings)

        assert status["valid"] is True
        assert status["warnings"]


class TestErrorBodies:

    def test_not_found(self):
        assert error_body(NotFoundError()) == {
            "success": False,
            "message": "Registration not found",
            "error": "not_found",
        }

    def test_already_registered_carries_existing(self):
        existing = Registration(id="doc-1", user_id="uid-ada", first_name="Ada")

        body = error_body(AlreadyRegisteredError(existing))

        assert body["error"] == "already_registered"
        assert body["registration"]["id"] == "doc-1"
        assert body["registration"]["userId"] == "uid-ada"
        assert body["registration"]["paymentStatus"] == "pending"

    def test_validation_details_drop_body_segment(self):
        details = validation_details([
            {"loc": ("body", "firstName"), "msg": "String should have at least 1 character"},
            {"loc": ("body",), "msg": "Field required"},
        ])

        assert details == [
            {"parameter": "firstName", "message": "String should have at least 1 character"},
            {"parameter": None, "message": "Field required"},
        ]

    def test_validation_error_without_details(self):
        assert "details" not in error_body(InputValidationError())


class TestSentryRedaction:

    def test_redact_nested(self):
        data = {
            "credential": "eyJ...",
            "profile": {"idToken": "eyJ...", "email": "ada@lovelace.org"},
            "items": [{"api_key": "k"}, "plain"],
        }

        redacted = redact_dict(data)

        assert redacted["credential"] == "[REDACTED]"
        assert redacted["profile"]["idToken"] == "[REDACTED]"
        assert redacted["profile"]["email"] == "ada@lovelace.org"
        assert redacted["items"] == [{"api_key": "[REDACTED]"}, "plain"]

    def test_filter_event_headers(self):
        event = {
            "request": {"headers": {"Authorization": "Bearer abc", "Accept": "application/json"}},
            "extra": {"token": "abc"},
        }

        filtered = filter_sensitive_data(event, {})

        assert filtered["request"]["headers"]["Authorization"] == "[REDACTED]"
        assert filtered["request"]["headers"]["Accept"] == "application/json"
        assert filtered["extra"]["token"] == "[REDACTED]"
