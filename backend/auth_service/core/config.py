"""Application configuration loaded from environment variables.

Settings for the database, the HTTP API, session tokens, one-time codes,
code delivery and rate limiting. Uses pydantic-settings for validation and
.env file support.
"""

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Known insecure default password that must not be used in production
# Security: Runtime check in check_production_security() prevents use in production
_INSECURE_DEFAULT_PASSWORD = "auth_dev_password"  # nosec B105

# Development-only signing secret. Production must override AUTH_SECRET.
_INSECURE_DEFAULT_AUTH_SECRET = "dev-only-auth-secret-do-not-use-in-production"  # nosec B105

# Minimum length for AUTH_SECRET in production (256 bits = 32 bytes)
_MIN_AUTH_SECRET_LENGTH = 32

# bcrypt accepts cost factors 4..31; above 16 a single hash takes seconds
_MIN_BCRYPT_ROUNDS = 4
_MAX_BCRYPT_ROUNDS = 16

_MIN_OTP_LENGTH = 4
_MAX_OTP_LENGTH = 10

_PRODUCTION = "production"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database
    database_host: str = "localhost"
    database_port: int = 5432
    database_name: str = "auth_service"
    database_user: str = "auth_user"
    database_password: str = _INSECURE_DEFAULT_PASSWORD

    # CORS (Security)
    # Bearer tokens travel in the Authorization header, never in cookies,
    # but a wildcard origin is still rejected below.
    allowed_origins: list[str] = ["http://localhost:3000"]

    # Application
    # Any value other than "production" exposes one-time codes in responses.
    environment: str = "development"
    log_level: str = "INFO"

    # Session tokens
    auth_secret: SecretStr = SecretStr(_INSECURE_DEFAULT_AUTH_SECRET)
    auth_issuer: str = "auth-service"
    auth_audience: str = "auth-service"
    session_token_ttl_hours: int = 24

    # Credentials
    bcrypt_rounds: int = 12
    min_credential_length: int = 6

    # One-time codes
    otp_length: int = 6
    otp_ttl_minutes: int = 5
    otp_max_attempts: int = 5

    # Email delivery of one-time codes (Resend)
    email_from: str = "noreply@example.com"
    resend_api_key: SecretStr = SecretStr("")

    # Rate Limiting (Security)
    # Format: "count/period" (e.g., "10/minute", "5/15minute")
    rate_limit_signup: str = "10/hour"
    rate_limit_login: str = "5/15minute"
    rate_limit_otp_request: str = "5/15minute"
    rate_limit_otp_verify: str = "10/15minute"
    rate_limit_enabled: bool = True  # Disable for testing

    @property
    def database_url(self) -> str:
        """Async database URL for SQLAlchemy."""
        return (
            f"postgresql+asyncpg://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @property
    def is_production(self) -> bool:
        """Whether this deployment is marked as production."""
        return self.environment == _PRODUCTION

    @model_validator(mode="after")
    def check_production_security(self) -> "Settings":
        """Validate configuration invariants and production requirements.

        Checks (all environments):
        - bcrypt cost factor within a usable range
        - One-time code length, TTL and attempt limit are sane
        - Session token lifetime is positive
        - CORS must not use wildcard origin

        Checks (production only):
        - Database password must not be the default
        - AUTH_SECRET must be set and >= 32 chars
        - RESEND_API_KEY must be set, since codes are never returned
          in responses and email is the only way they reach the user
        """
        if not _MIN_BCRYPT_ROUNDS <= self.bcrypt_rounds <= _MAX_BCRYPT_ROUNDS:
            msg = (
                f"BCRYPT_ROUNDS must be between {_MIN_BCRYPT_ROUNDS} and "
                f"{_MAX_BCRYPT_ROUNDS}. Got: {self.bcrypt_rounds}"
            )
            raise ValueError(msg)

        if not _MIN_OTP_LENGTH <= self.otp_length <= _MAX_OTP_LENGTH:
            msg = (
                f"OTP_LENGTH must be between {_MIN_OTP_LENGTH} and "
                f"{_MAX_OTP_LENGTH}. Got: {self.otp_length}"
            )
            raise ValueError(msg)

        if self.otp_ttl_minutes <= 0:
            msg = f"OTP_TTL_MINUTES must be positive. Got: {self.otp_ttl_minutes}"
            raise ValueError(msg)

        if self.otp_max_attempts <= 0:
            msg = f"OTP_MAX_ATTEMPTS must be positive. Got: {self.otp_max_attempts}"
            raise ValueError(msg)

        if self.min_credential_length <= 0:
            msg = (
                "MIN_CREDENTIAL_LENGTH must be positive. "
                f"Got: {self.min_credential_length}"
            )
            raise ValueError(msg)

        if self.session_token_ttl_hours <= 0:
            msg = (
                "SESSION_TOKEN_TTL_HOURS must be positive. "
                f"Got: {self.session_token_ttl_hours}"
            )
            raise ValueError(msg)

        if "*" in self.allowed_origins:
            msg = (
                "ALLOWED_ORIGINS must not contain '*' (wildcard). "
                "List the frontend origins explicitly."
            )
            raise ValueError(msg)

        if self.is_production:
            if self.database_password == _INSECURE_DEFAULT_PASSWORD:
                msg = (
                    "Cannot use default database password in production. "
                    "Set DATABASE_PASSWORD environment variable to a secure value."
                )
                raise ValueError(msg)

            secret_value = self.auth_secret.get_secret_value()
            if not secret_value or secret_value == _INSECURE_DEFAULT_AUTH_SECRET:
                msg = (
                    "AUTH_SECRET must be set to a non-default value in production. "
                    'Generate with: python -c "import secrets; '
                    'print(secrets.token_hex(32))"'
                )
                raise ValueError(msg)
            if len(secret_value) < _MIN_AUTH_SECRET_LENGTH:
                msg = (
                    f"AUTH_SECRET must be at least {_MIN_AUTH_SECRET_LENGTH} "
                    "characters for adequate security."
                )
                raise ValueError(msg)

            if not self.resend_api_key.get_secret_value():
                msg = (
                    "RESEND_API_KEY must be set in production. One-time codes "
                    "are withheld from responses and can only be delivered by email."
                )
                raise ValueError(msg)

        return self


settings = Settings()
