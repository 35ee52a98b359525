"""Shared dependencies for API endpoints.

The authentication engine is assembled per request: the stores are bound
to the request's database session, while the codec, policy and code
sender come from settings. Tests override ``get_auth_engine`` to run the
same routes against in-memory stores.
"""

from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from auth_service.core.auth import CredentialCodec, SessionClaims
from auth_service.core.config import settings
from auth_service.core.database import get_db
from auth_service.repositories.account_repository import AccountRepository
from auth_service.repositories.challenge_repository import ChallengeRepository
from auth_service.services.auth_engine import AuthenticationEngine
from auth_service.services.auth_types import VerificationPolicy
from auth_service.services.code_delivery import code_sender_from_settings

DbSession = Annotated[AsyncSession, Depends(get_db)]

# auto_error=False: a missing header must surface as MISSING_AUTH_TOKEN
# through the engine, not as FastAPI's default 403.
_bearer_scheme = HTTPBearer(auto_error=False)


def get_auth_engine(db: DbSession) -> AuthenticationEngine:
    """Build the authentication engine for this request.

    Args:
        db: Database session (injected).

    Returns:
        AuthenticationEngine backed by the PostgreSQL repositories.
    """
    return AuthenticationEngine(
        accounts=AccountRepository(db),
        challenges=ChallengeRepository(db),
        codec=CredentialCodec.from_settings(settings),
        policy=VerificationPolicy.from_settings(settings),
        code_sender=code_sender_from_settings(settings),
    )


AuthEngine = Annotated[AuthenticationEngine, Depends(get_auth_engine)]


def get_current_claims(
    engine: AuthEngine,
    credentials: Annotated[
        HTTPAuthorizationCredentials | None, Depends(_bearer_scheme)
    ],
) -> SessionClaims:
    """Verify the bearer token on the request.

    Raises:
        AuthError: MISSING_TOKEN (401) without a bearer token,
            INVALID_TOKEN (403) when it fails verification.
    """
    token = credentials.credentials if credentials is not None else None
    return engine.authenticate(token)


CurrentClaims = Annotated[SessionClaims, Depends(get_current_claims)]
