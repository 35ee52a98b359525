"""Credential codec: password hashing and session token signing.

Pipeline:
- hash_credential / verify_credential: bcrypt with a tunable cost factor
- burn_verification: timing-safe dummy check for unknown accounts
- sign / verify_token: HS256 JWT with a fixed lifetime from issuance
- account_id_for: stable UUID derived from a normalized identifier
"""

import functools
import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import bcrypt
import jwt

from auth_service.core.config import Settings
from auth_service.core.errors import AuthError, AuthErrorKind

logger = logging.getLogger(__name__)

# Default session token lifetime: 24 hours
DEFAULT_TOKEN_TTL = timedelta(hours=24)

# Throwaway value hashed for timing-safe comparison on account-not-found.
_DUMMY_CREDENTIAL = b"dummy-credential-never-matches"

# Namespace for identifier-derived account ids. Changing it changes every
# ``sub`` claim ever issued.
_ACCOUNT_ID_NAMESPACE = uuid.UUID("5f0c3c1e-6a4e-4d7b-9a51-2b8e0d4c7f31")

# bcrypt only reads the first 72 bytes of a password; newer releases
# reject longer input outright.
MAX_CREDENTIAL_BYTES = 72

_ALGORITHM = "HS256"
_REQUIRED_CLAIMS = ["sub", "exp", "iat", "iss", "aud"]

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


@functools.cache
def dummy_hash(rounds: int) -> bytes:
    """bcrypt hash of a throwaway value at the given cost factor.

    Security: the dummy check must cost the same as a real one, or the
    response time reveals whether an account exists. Computed once per
    cost factor and reused for the life of the process.
    """
    return bcrypt.hashpw(_DUMMY_CREDENTIAL, bcrypt.gensalt(rounds=rounds))


def account_id_for(identifier: str) -> uuid.UUID:
    """Derive the stable account id for a normalized identifier.

    Args:
        identifier: Normalized (lower-cased) identifier.

    Returns:
        UUIDv5 of the identifier in the service namespace.
    """
    return uuid.uuid5(_ACCOUNT_ID_NAMESPACE, identifier)


@dataclass(frozen=True)
class SessionClaims:
    """Verified contents of a session token.

    Attributes:
        account_id: Identifier-derived account id (``sub`` claim).
        identifier: Normalized account identifier.
        display_name: Display name at the time of issuance.
        issued_at: Token issuance time.
        expires_at: Token expiry time.
    """

    account_id: uuid.UUID
    identifier: str
    display_name: str | None
    issued_at: datetime
    expires_at: datetime


class CredentialCodec:
    """Hashes passwords and signs/verifies session tokens.

    Args:
        secret: HMAC signing secret for session tokens.
        issuer: ``iss`` claim written and required on verification.
        audience: ``aud`` claim written and required on verification.
        token_ttl: Session token lifetime from issuance.
        bcrypt_rounds: bcrypt cost factor for new hashes.
        clock: Source of "now" for token issuance.
    """

    def __init__(
        self,
        *,
        secret: str,
        issuer: str,
        audience: str,
        token_ttl: timedelta = DEFAULT_TOKEN_TTL,
        bcrypt_rounds: int = 12,
        clock: Clock = utc_now,
    ) -> None:
        self._secret = secret
        self._issuer = issuer
        self._audience = audience
        self._token_ttl = token_ttl
        self._bcrypt_rounds = bcrypt_rounds
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings) -> "CredentialCodec":
        """Build a codec from application settings."""
        return cls(
            secret=settings.auth_secret.get_secret_value(),
            issuer=settings.auth_issuer,
            audience=settings.auth_audience,
            token_ttl=timedelta(hours=settings.session_token_ttl_hours),
            bcrypt_rounds=settings.bcrypt_rounds,
        )

    @property
    def token_ttl(self) -> timedelta:
        """Lifetime of newly signed session tokens."""
        return self._token_ttl

    # -------------------------------------------------------------------
    # Passwords
    # -------------------------------------------------------------------

    def hash_credential(self, plaintext: str) -> str:
        """Hash a plaintext credential with a fresh salt.

        Args:
            plaintext: The user's password.

        Returns:
            bcrypt hash string (includes salt and cost factor).

        Raises:
            ValueError: If plaintext is empty or longer than
                MAX_CREDENTIAL_BYTES once encoded.
        """
        if not plaintext:
            msg = "Cannot hash an empty credential"
            raise ValueError(msg)
        if len(plaintext.encode()) > MAX_CREDENTIAL_BYTES:
            msg = f"Credential exceeds {MAX_CREDENTIAL_BYTES} bytes"
            raise ValueError(msg)
        return bcrypt.hashpw(
            plaintext.encode(), bcrypt.gensalt(rounds=self._bcrypt_rounds)
        ).decode()

    def verify_credential(self, plaintext: str, credential_hash: str) -> bool:
        """Check a plaintext credential against a stored hash.

        bcrypt.checkpw does the comparison, so timing does not depend on
        where the first mismatching byte is.

        Args:
            plaintext: Credential supplied by the caller.
            credential_hash: Hash previously produced by hash_credential().

        Returns:
            True on match. False on mismatch, on plaintext longer than
            MAX_CREDENTIAL_BYTES, or on an unparseable hash.
        """
        encoded = plaintext.encode()
        if len(encoded) > MAX_CREDENTIAL_BYTES:
            # hash_credential never stores one this long
            self.burn_verification(plaintext)
            return False
        try:
            return bcrypt.checkpw(encoded, credential_hash.encode())
        except ValueError:
            logger.warning("Stored credential hash could not be parsed")
            return False

    def burn_verification(self, plaintext: str) -> None:
        """Spend one bcrypt comparison at the configured cost factor.

        Security: called when the account does not exist so that the
        response time matches a real password check.
        """
        bcrypt.checkpw(
            plaintext.encode()[:MAX_CREDENTIAL_BYTES],
            dummy_hash(self._bcrypt_rounds),
        )

    # -------------------------------------------------------------------
    # Session tokens
    # -------------------------------------------------------------------

    def sign(self, *, identifier: str, display_name: str | None) -> str:
        """Sign a session token for an account.

        Args:
            identifier: Normalized account identifier.
            display_name: Account display name, if any.

        Returns:
            Encoded JWT string.
        """
        now = self._clock()
        payload = {
            "sub": str(account_id_for(identifier)),
            "identifier": identifier,
            "name": display_name,
            "aud": self._audience,
            "iss": self._issuer,
            "exp": now + self._token_ttl,
            "iat": now,
        }
        return jwt.encode(payload, self._secret, algorithm=_ALGORITHM)

    def verify_token(self, token: str) -> SessionClaims:
        """Verify a session token and return its claims.

        Security: bad signature, malformed structure, missing claims,
        wrong issuer/audience and expiry all raise the same error kind.
        Callers cannot tell them apart.

        Args:
            token: Encoded JWT string.

        Returns:
            SessionClaims decoded from the token.

        Raises:
            AuthError: INVALID_TOKEN for any verification failure.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[_ALGORITHM],
                audience=self._audience,
                issuer=self._issuer,
                options={"require": _REQUIRED_CLAIMS},
            )
            identifier = payload["identifier"]
            display_name = payload.get("name")
            if not isinstance(identifier, str) or not (
                display_name is None or isinstance(display_name, str)
            ):
                raise TypeError("identifier claims have the wrong type")
            account_id = uuid.UUID(payload["sub"])
            # sub must agree with identifier; a mismatch means forged claims
            if account_id != account_id_for(identifier):
                raise ValueError("sub does not match identifier")
            claims = SessionClaims(
                account_id=account_id,
                identifier=identifier,
                display_name=display_name,
                issued_at=datetime.fromtimestamp(payload["iat"], UTC),
                expires_at=datetime.fromtimestamp(payload["exp"], UTC),
            )
        except (jwt.InvalidTokenError, KeyError, TypeError, ValueError) as exc:
            raise AuthError(AuthErrorKind.INVALID_TOKEN) from exc
        return claims
