"""Value types shared by the authentication engine and its stores.

Accounts and challenges cross the store boundary as frozen dataclasses,
not ORM objects, so the engine runs unchanged against the PostgreSQL
repositories and the in-memory stores.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from auth_service.core.config import Settings
from auth_service.core.otp import DEFAULT_CODE_LENGTH

# Basic address shape: something@something.tld
_IDENTIFIER_PATTERN = re.compile(r".+@.+\..+")


class AccountState(str, Enum):
    """Verification state of an account. VERIFIED is terminal."""

    PENDING_VERIFICATION = "PENDING_VERIFICATION"
    VERIFIED = "VERIFIED"


def normalize_identifier(identifier: str) -> str:
    """Normalize an identifier for storage and lookup (trim + lower-case)."""
    return identifier.strip().lower()


def is_valid_identifier(identifier: str) -> bool:
    """Check the basic email address shape.

    Null bytes are rejected here because PostgreSQL cannot store them in
    text columns.
    """
    if "\x00" in identifier:
        return False
    return _IDENTIFIER_PATTERN.fullmatch(identifier) is not None


@dataclass(frozen=True)
class AccountRecord:
    """Account as stored.

    Attributes:
        identifier: Normalized unique identifier.
        display_name: Optional display name.
        credential_hash: bcrypt hash. Never returned to clients.
        state: Verification state.
        verified_at: Set iff state is VERIFIED.
    """

    identifier: str
    display_name: str | None
    credential_hash: str
    state: AccountState = AccountState.PENDING_VERIFICATION
    verified_at: datetime | None = None

    @property
    def is_verified(self) -> bool:
        return self.state is AccountState.VERIFIED


@dataclass(frozen=True)
class AccountPatch:
    """Explicit set of updatable account fields.

    A field left as None is not touched. There is no way to clear a
    field through a patch and no way to change the identifier.
    """

    display_name: str | None = None
    credential_hash: str | None = None
    state: AccountState | None = None
    verified_at: datetime | None = None

    def changes(self) -> dict[str, object]:
        """Return only the fields this patch sets, keyed by field name."""
        values = {
            "display_name": self.display_name,
            "credential_hash": self.credential_hash,
            "state": self.state,
            "verified_at": self.verified_at,
        }
        return {name: value for name, value in values.items() if value is not None}


@dataclass(frozen=True)
class ChallengeRecord:
    """Outstanding one-time-code challenge for an account.

    Attributes:
        identifier: Owning account identifier.
        code: Numeric one-time code.
        expires_at: Absolute expiry time.
        attempts: Verification attempts made so far.
    """

    identifier: str
    code: str
    expires_at: datetime
    attempts: int = 0


@dataclass(frozen=True)
class VerificationPolicy:
    """Limits and deployment switches the engine is built with.

    Attributes:
        code_ttl: How long an issued code stays valid.
        max_attempts: Attempts allowed per challenge.
        min_credential_length: Minimum credential length at signup.
        code_length: Digits per one-time code.
        expose_codes: Whether plaintext codes are returned to the caller.
            False for production deployments.
    """

    code_ttl: timedelta = timedelta(minutes=5)
    max_attempts: int = 5
    min_credential_length: int = 6
    code_length: int = DEFAULT_CODE_LENGTH
    expose_codes: bool = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "VerificationPolicy":
        """Build the policy once from application settings."""
        return cls(
            code_ttl=timedelta(minutes=settings.otp_ttl_minutes),
            max_attempts=settings.otp_max_attempts,
            min_credential_length=settings.min_credential_length,
            code_length=settings.otp_length,
            expose_codes=not settings.is_production,
        )


# =============================================================================
# Operation results
# =============================================================================


@dataclass(frozen=True)
class SignupResult:
    identifier: str
    state: AccountState
    code: str | None = None


@dataclass(frozen=True)
class CodeIssued:
    identifier: str
    code: str | None = None


@dataclass(frozen=True)
class VerificationResult:
    identifier: str
    verified_at: datetime


@dataclass(frozen=True)
class LoginResult:
    """Session token plus the public account projection.

    The credential hash is deliberately absent.
    """

    token: str
    identifier: str
    display_name: str | None
