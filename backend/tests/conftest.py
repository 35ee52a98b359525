import socket
from collections.abc import AsyncGenerator, Iterator
from datetime import UTC, datetime, timedelta

import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from auth_service.core.auth import CredentialCodec, account_id_for
from auth_service.core.config import settings
from auth_service.models.base import Base
from auth_service.repositories.in_memory import (
    InMemoryAccountStore,
    InMemoryChallengeStore,
)
from auth_service.services.auth_engine import AuthenticationEngine
from auth_service.services.auth_types import VerificationPolicy

# Use separate test database
TEST_DATABASE_URL = settings.database_url.replace(
    settings.database_name, f"{settings.database_name}_test"
)

# Security: This is a test-only secret. Production uses a real secret from env.
TEST_AUTH_SECRET = "test-secret-key-that-is-at-least-32-characters-long"  # nosec B105  # gitleaks:allow
TEST_ISSUER = "auth-service-test"
TEST_AUDIENCE = "auth-service-test"

# Lowest cost bcrypt accepts; keeps hashing fast in tests
TEST_BCRYPT_ROUNDS = 4


def create_test_jwt(
    identifier: str = "user@test.io",
    *,
    display_name: str | None = None,
    secret: str = TEST_AUTH_SECRET,
    issuer: str = TEST_ISSUER,
    audience: str = TEST_AUDIENCE,
    expires_delta: timedelta | None = None,
    omit: tuple[str, ...] = (),
) -> str:
    """Create a signed session token by hand.

    Args:
        identifier: Normalized identifier; ``sub`` is derived from it.
        display_name: Value for the ``name`` claim.
        secret: Signing secret (must match the test codec to verify).
        issuer: ``iss`` claim.
        audience: ``aud`` claim.
        expires_delta: Time until expiration. Defaults to 1 hour.
        omit: Claim names to leave out of the payload.

    Returns:
        Encoded JWT string.
    """
    now = datetime.now(UTC)
    payload = {
        "sub": str(account_id_for(identifier)),
        "identifier": identifier,
        "name": display_name,
        "aud": audience,
        "iss": issuer,
        "exp": now + (expires_delta or timedelta(hours=1)),
        "iat": now,
    }
    for claim in omit:
        payload.pop(claim)
    return jwt.encode(payload, secret, algorithm="HS256")


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime.now(UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


class RecordingCodeSender:
    """CodeSender that keeps every delivered (identifier, code) pair."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []

    async def send(self, *, identifier: str, code: str) -> None:
        self.sent.append((identifier, code))

    def last_code_for(self, identifier: str) -> str:
        return next(code for ident, code in reversed(self.sent) if ident == identifier)


def _is_postgres_available() -> bool:
    """Check if PostgreSQL is accepting connections.

    Returns:
        True if PostgreSQL is reachable on the configured port, False otherwise.
    """
    try:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.settimeout(1)
        result = sock.connect_ex((settings.database_host, settings.database_port))
        sock.close()
        return result == 0
    except OSError:
        return False


# Check once at module load time
_POSTGRES_AVAILABLE = _is_postgres_available()


def skip_if_no_postgres() -> None:
    """Skip test if PostgreSQL is not available.

    Called by fixtures that require database connection.
    """
    if not _POSTGRES_AVAILABLE:
        pytest.skip(
            f"PostgreSQL not available on port {settings.database_port}. "
            "Start database with: docker compose up -d"
        )


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create test database engine.

    Skips test if PostgreSQL is not available (e.g., Docker not running).
    """
    skip_if_no_postgres()

    engine = create_async_engine(TEST_DATABASE_URL, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async_session = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session
        await session.rollback()


# =============================================================================
# Engine fixtures (in-memory stores, no external services)
# =============================================================================


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def code_sender() -> RecordingCodeSender:
    return RecordingCodeSender()


@pytest.fixture
def codec() -> CredentialCodec:
    return CredentialCodec(
        secret=TEST_AUTH_SECRET,
        issuer=TEST_ISSUER,
        audience=TEST_AUDIENCE,
        bcrypt_rounds=TEST_BCRYPT_ROUNDS,
    )


@pytest.fixture
def policy() -> VerificationPolicy:
    return VerificationPolicy(expose_codes=True)


@pytest.fixture
def account_store() -> InMemoryAccountStore:
    return InMemoryAccountStore()


@pytest.fixture
def challenge_store() -> InMemoryChallengeStore:
    return InMemoryChallengeStore()


@pytest.fixture
def engine(
    account_store: InMemoryAccountStore,
    challenge_store: InMemoryChallengeStore,
    codec: CredentialCodec,
    policy: VerificationPolicy,
    code_sender: RecordingCodeSender,
    clock: FrozenClock,
) -> AuthenticationEngine:
    """Authentication engine over in-memory stores with a frozen clock."""
    return AuthenticationEngine(
        accounts=account_store,
        challenges=challenge_store,
        codec=codec,
        policy=policy,
        code_sender=code_sender,
        clock=clock,
    )


# =============================================================================
# API Test Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def client(engine: AuthenticationEngine) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client for the app, with the engine bound to in-memory stores.

    The same engine instance serves every request in a test, so state
    written by one request is visible to the next.
    """
    from auth_service.api.deps import get_auth_engine
    from auth_service.main import create_app, database_status

    app = create_app()
    app.dependency_overrides[get_auth_engine] = lambda: engine
    app.dependency_overrides[database_status] = lambda: True

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def disable_rate_limiting() -> Iterator[None]:
    """Disable rate limiting for all tests.

    Rate limit tests re-enable the limiter explicitly.

    Yields:
        None (autouse fixture).
    """
    from auth_service.core.rate_limiting import limiter

    original_enabled = limiter.enabled
    limiter.enabled = False
    yield
    limiter.enabled = original_enabled
