"""API error classes and the authentication failure taxonomy.

Two layers:
- APIError and subclasses: HTTP-shaped errors (code, message, status) that
  the exception handlers in main.py render as the standard error envelope.
- AuthError: typed failure raised by the authentication engine. Its kind is
  a member of the closed AuthErrorKind enumeration, never a free-form
  string, and the boundary translates it through _AUTH_ERROR_TABLE.
"""

from enum import Enum


class APIError(Exception):
    """Base class for API errors.

    All API errors have a code, message, and HTTP status.
    Subclasses set default status_code.

    Attributes:
        code: Machine-readable error code (e.g., "INVALID_TOKEN").
        message: Human-readable error message.
        status_code: HTTP status code to return.
        details: Optional list of additional error details.
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: list[dict] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class ValidationError(APIError):
    """Field validation failed (400).

    Use for request body validation errors, query param errors, etc.
    """

    def __init__(
        self,
        message: str,
        details: list[dict] | None = None,
    ) -> None:
        super().__init__(
            code="VALIDATION_ERROR",
            message=message,
            status_code=400,
            details=details,
        )


class InternalError(APIError):
    """Unexpected server error (500).

    Use for unhandled exceptions. Never expose stack traces to clients.
    """

    def __init__(self, message: str = "An unexpected error occurred") -> None:
        super().__init__(
            code="INTERNAL_ERROR",
            message=message,
            status_code=500,
        )


# =============================================================================
# Authentication failures
# =============================================================================


class AuthErrorKind(str, Enum):
    """Every way an authentication operation can fail.

    The value doubles as the machine-readable error code on the wire,
    except where _AUTH_ERROR_TABLE overrides it.
    """

    INVALID_IDENTIFIER = "INVALID_IDENTIFIER"
    INVALID_CREDENTIAL_FORMAT = "INVALID_CREDENTIAL_FORMAT"
    ACCOUNT_EXISTS = "ACCOUNT_EXISTS"
    ACCOUNT_NOT_FOUND = "ACCOUNT_NOT_FOUND"
    CHALLENGE_NOT_FOUND = "CHALLENGE_NOT_FOUND"
    CHALLENGE_EXPIRED = "CHALLENGE_EXPIRED"
    TOO_MANY_ATTEMPTS = "TOO_MANY_ATTEMPTS"
    CODE_MISMATCH = "CODE_MISMATCH"
    INVALID_CREDENTIAL = "INVALID_CREDENTIAL"
    ACCOUNT_NOT_VERIFIED = "ACCOUNT_NOT_VERIFIED"
    MISSING_TOKEN = "MISSING_TOKEN"
    INVALID_TOKEN = "INVALID_TOKEN"


# kind -> (status, wire code, client-facing message)
# Security: messages are fixed strings. Store errors and token decode
# reasons never reach the client.
_AUTH_ERROR_TABLE: dict[AuthErrorKind, tuple[int, str, str]] = {
    AuthErrorKind.INVALID_IDENTIFIER: (
        400,
        "INVALID_IDENTIFIER",
        "Identifier must be a valid email address",
    ),
    AuthErrorKind.INVALID_CREDENTIAL_FORMAT: (
        400,
        "INVALID_CREDENTIAL_FORMAT",
        "Credential must meet the minimum length and fit in 72 bytes",
    ),
    AuthErrorKind.ACCOUNT_EXISTS: (
        409,
        "ACCOUNT_EXISTS",
        "An account with this identifier already exists",
    ),
    AuthErrorKind.ACCOUNT_NOT_FOUND: (404, "ACCOUNT_NOT_FOUND", "Account not found"),
    AuthErrorKind.CHALLENGE_NOT_FOUND: (
        404,
        "CHALLENGE_NOT_FOUND",
        "No verification code is outstanding for this account",
    ),
    AuthErrorKind.CHALLENGE_EXPIRED: (
        400,
        "CHALLENGE_EXPIRED",
        "Verification code has expired. Request a new one.",
    ),
    AuthErrorKind.TOO_MANY_ATTEMPTS: (
        429,
        "TOO_MANY_ATTEMPTS",
        "Too many attempts. Request a new verification code.",
    ),
    AuthErrorKind.CODE_MISMATCH: (400, "CODE_MISMATCH", "Verification code is incorrect"),
    AuthErrorKind.INVALID_CREDENTIAL: (
        401,
        "INVALID_CREDENTIAL",
        "Invalid identifier or credential",
    ),
    AuthErrorKind.ACCOUNT_NOT_VERIFIED: (
        403,
        "ACCOUNT_NOT_VERIFIED",
        "Account must be verified before signing in",
    ),
    AuthErrorKind.MISSING_TOKEN: (
        401,
        "MISSING_AUTH_TOKEN",
        "Authentication required",
    ),
    AuthErrorKind.INVALID_TOKEN: (403, "INVALID_TOKEN", "Invalid session token"),
}

_unmapped = set(AuthErrorKind) - set(_AUTH_ERROR_TABLE)
if _unmapped:  # pragma: no cover - guards future edits to the enum
    msg = f"AuthErrorKind members without a status mapping: {sorted(_unmapped)}"
    raise RuntimeError(msg)


class AuthError(Exception):
    """Typed failure raised by the authentication engine.

    Attributes:
        kind: Which failure occurred.
    """

    def __init__(self, kind: AuthErrorKind) -> None:
        self.kind = kind
        super().__init__(kind.value)

    @property
    def status_code(self) -> int:
        """HTTP status the boundary maps this failure to."""
        return _AUTH_ERROR_TABLE[self.kind][0]

    def to_api_error(self) -> APIError:
        """Translate into the HTTP error rendered by the exception handler.

        Returns:
            APIError with the wire code, fixed message and mapped status.
        """
        status_code, code, message = _AUTH_ERROR_TABLE[self.kind]
        return APIError(code=code, message=message, status_code=status_code)
