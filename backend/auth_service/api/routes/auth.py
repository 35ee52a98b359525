"""Authentication endpoints.

Signup, one-time-code request and verification, login, and the
bearer-guarded account endpoints. Every failure is an AuthError raised
by the engine and rendered by the exception handler in main.py.

Security considerations:
- login: unknown account and wrong password are indistinguishable, both
  in response and in bcrypt cost
- signup / otp: plaintext codes are included only outside production
- all unauthenticated endpoints are rate limited per client IP
"""

from datetime import datetime

from fastapi import APIRouter, Request
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from auth_service.api.deps import AuthEngine, CurrentClaims
from auth_service.core.config import settings
from auth_service.core.rate_limiting import limiter
from auth_service.services.auth_types import AccountState

router = APIRouter()

_MAX_CREDENTIAL_LENGTH = 128


class _CamelModel(BaseModel):
    """Wire model with camelCase field names."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class _CamelRequest(_CamelModel):
    model_config = ConfigDict(extra="forbid")


# ===================================================================
# Request models
# ===================================================================


class SignupRequest(_CamelRequest):
    """Request body for POST /auth/signup."""

    identifier: str = Field(min_length=1, max_length=255)
    credential: str = Field(min_length=1, max_length=_MAX_CREDENTIAL_LENGTH)
    display_name: str | None = Field(None, max_length=255)


class LoginRequest(_CamelRequest):
    """Request body for POST /auth/login."""

    identifier: str = Field(min_length=1, max_length=255)
    credential: str = Field(min_length=1, max_length=_MAX_CREDENTIAL_LENGTH)


class CodeRequest(_CamelRequest):
    """Request body for POST /auth/otp/request."""

    identifier: str = Field(min_length=1, max_length=255)


class VerifyCodeRequest(_CamelRequest):
    """Request body for POST /auth/otp/verify."""

    identifier: str = Field(min_length=1, max_length=255)
    code: str = Field(min_length=1, max_length=16)


# ===================================================================
# Response models
# ===================================================================


class SignupResponse(_CamelModel):
    message: str = "SIGNUP_OK"
    identifier: str
    state: AccountState
    code: str | None = None


class AccountView(_CamelModel):
    """Public projection of an account. Never carries the credential hash."""

    identifier: str
    display_name: str | None = None


class LoginResponse(_CamelModel):
    message: str = "LOGIN_SUCCESS"
    token: str
    account: AccountView


class CodeSentResponse(_CamelModel):
    message: str = "OTP_SENT"
    identifier: str
    code: str | None = None


class VerifiedResponse(_CamelModel):
    message: str = "VERIFIED"
    identifier: str
    verified_at: datetime


class AccountDeletedResponse(_CamelModel):
    message: str = "ACCOUNT_DELETED"
    identifier: str


# ===================================================================
# POST /auth/signup
# ===================================================================


@router.post(
    "/signup",
    status_code=201,
    response_model=SignupResponse,
    response_model_exclude_none=True,
)
@limiter.limit(lambda: settings.rate_limit_signup)
async def signup(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: SignupRequest,
    engine: AuthEngine,
) -> SignupResponse:
    """Register an account and issue its first verification code."""
    result = await engine.signup(body.identifier, body.credential, body.display_name)
    return SignupResponse(
        identifier=result.identifier, state=result.state, code=result.code
    )


# ===================================================================
# POST /auth/login
# ===================================================================


@router.post("/login", response_model=LoginResponse)
@limiter.limit(lambda: settings.rate_limit_login)
async def login(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: LoginRequest,
    engine: AuthEngine,
) -> LoginResponse:
    """Check credentials and issue a bearer session token."""
    result = await engine.login(body.identifier, body.credential)
    return LoginResponse(
        token=result.token,
        account=AccountView(
            identifier=result.identifier, display_name=result.display_name
        ),
    )


# ===================================================================
# POST /auth/otp/request, POST /auth/otp/verify
# ===================================================================


@router.post(
    "/otp/request",
    response_model=CodeSentResponse,
    response_model_exclude_none=True,
)
@limiter.limit(lambda: settings.rate_limit_otp_request)
async def request_code(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: CodeRequest,
    engine: AuthEngine,
) -> CodeSentResponse:
    """Issue a fresh code, replacing any outstanding one."""
    result = await engine.request_code(body.identifier)
    return CodeSentResponse(identifier=result.identifier, code=result.code)


@router.post("/otp/verify", response_model=VerifiedResponse)
@limiter.limit(lambda: settings.rate_limit_otp_verify)
async def verify_code(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: VerifyCodeRequest,
    engine: AuthEngine,
) -> VerifiedResponse:
    """Verify a one-time code and mark the account verified."""
    result = await engine.verify_code(body.identifier, body.code)
    return VerifiedResponse(
        identifier=result.identifier, verified_at=result.verified_at
    )


# ===================================================================
# Bearer-guarded endpoints
# ===================================================================


@router.delete("/account", response_model=AccountDeletedResponse)
async def delete_account(
    claims: CurrentClaims,
    engine: AuthEngine,
) -> AccountDeletedResponse:
    """Delete the account named by the session token."""
    identifier = await engine.delete_account(claims.identifier)
    return AccountDeletedResponse(identifier=identifier)


@router.get("/me", response_model=AccountView)
async def me(claims: CurrentClaims) -> AccountView:
    """Return the account projection carried by the session token."""
    return AccountView(identifier=claims.identifier, display_name=claims.display_name)
