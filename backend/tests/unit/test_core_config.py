"""Tests for application configuration.

Defaults, derived properties, invariant checks and production security
validation.
"""

import pytest
from pydantic import SecretStr, ValidationError

from auth_service.core.config import (
    _INSECURE_DEFAULT_AUTH_SECRET,
    _INSECURE_DEFAULT_PASSWORD,
    Settings,
)
from auth_service.services.auth_types import VerificationPolicy

# Reusable test constants
_SECURE_DB_PASSWORD = "my-secure-production-password-123!"
_TEST_AUTH_SECRET = "a" * 64
_PRODUCTION = "production"


def _production(**overrides) -> Settings:
    options = {
        "environment": _PRODUCTION,
        "database_password": _SECURE_DB_PASSWORD,
        "auth_secret": SecretStr(_TEST_AUTH_SECRET),
        "resend_api_key": SecretStr("re_test_key"),
    }
    options.update(overrides)
    return Settings(**options)


class TestDefaults:
    def test_policy_defaults(self):
        s = Settings()
        assert s.otp_length == 6
        assert s.otp_ttl_minutes == 5
        assert s.otp_max_attempts == 5
        assert s.min_credential_length == 6
        assert s.session_token_ttl_hours == 24
        assert s.bcrypt_rounds == 12

    def test_database_url(self):
        s = Settings(
            database_user="u",
            database_password="p",
            database_host="db",
            database_port=6543,
            database_name="auth",
        )
        assert s.database_url == "postgresql+asyncpg://u:p@db:6543/auth"


class TestInvariantValidation:
    @pytest.mark.parametrize("rounds", [3, 17])
    def test_rejects_bcrypt_rounds_out_of_range(self, rounds):
        with pytest.raises(ValidationError, match="BCRYPT_ROUNDS"):
            Settings(bcrypt_rounds=rounds)

    @pytest.mark.parametrize("length", [3, 11])
    def test_rejects_otp_length_out_of_range(self, length):
        with pytest.raises(ValidationError, match="OTP_LENGTH"):
            Settings(otp_length=length)

    @pytest.mark.parametrize(
        ("field", "name"),
        [
            ("otp_ttl_minutes", "OTP_TTL_MINUTES"),
            ("otp_max_attempts", "OTP_MAX_ATTEMPTS"),
            ("min_credential_length", "MIN_CREDENTIAL_LENGTH"),
            ("session_token_ttl_hours", "SESSION_TOKEN_TTL_HOURS"),
        ],
    )
    def test_rejects_non_positive(self, field, name):
        with pytest.raises(ValidationError, match=name):
            Settings(**{field: 0})

    def test_rejects_wildcard_origin(self):
        with pytest.raises(ValidationError, match="wildcard"):
            Settings(allowed_origins=["*"])


class TestProductionSecurityValidation:
    """Tests for production security requirements."""

    def test_allows_defaults_in_development(self):
        s = Settings(environment="development")
        assert s.database_password == _INSECURE_DEFAULT_PASSWORD
        assert s.auth_secret.get_secret_value() == _INSECURE_DEFAULT_AUTH_SECRET

    def test_accepts_complete_production_config(self):
        assert _production().is_production is True

    def test_rejects_default_password_in_production(self):
        with pytest.raises(ValidationError, match="default database password"):
            _production(database_password=_INSECURE_DEFAULT_PASSWORD)

    def test_rejects_default_secret_in_production(self):
        with pytest.raises(ValidationError, match="AUTH_SECRET"):
            _production(auth_secret=SecretStr(_INSECURE_DEFAULT_AUTH_SECRET))

    def test_rejects_short_secret_in_production(self):
        with pytest.raises(ValidationError, match="at least 32"):
            _production(auth_secret=SecretStr("short-secret"))

    def test_rejects_missing_resend_key_in_production(self):
        with pytest.raises(ValidationError, match="RESEND_API_KEY"):
            _production(resend_api_key=SecretStr(""))


class TestVerificationPolicyFromSettings:
    def test_exposes_codes_outside_production(self):
        policy = VerificationPolicy.from_settings(Settings(environment="development"))
        assert policy.expose_codes is True

    def test_withholds_codes_in_production(self):
        assert VerificationPolicy.from_settings(_production()).expose_codes is False

    def test_copies_limits(self):
        policy = VerificationPolicy.from_settings(
            Settings(otp_ttl_minutes=10, otp_max_attempts=3, otp_length=8)
        )
        assert policy.code_ttl.total_seconds() == 600
        assert policy.max_attempts == 3
        assert policy.code_length == 8
