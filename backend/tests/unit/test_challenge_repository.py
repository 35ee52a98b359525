"""Tests for ChallengeRepository (PostgreSQL).

Skipped when PostgreSQL is not reachable.
"""

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from auth_service.repositories.account_repository import AccountRepository
from auth_service.repositories.challenge_repository import ChallengeRepository
from auth_service.services.auth_types import AccountRecord, ChallengeRecord

_IDENTIFIER = "u@test.io"
_NOW = datetime(2026, 1, 1, tzinfo=UTC)


@pytest.fixture
async def account(db_session: AsyncSession) -> AccountRecord:
    """Owning account; challenges reference it by foreign key."""
    return await AccountRepository(db_session).create(
        AccountRecord(identifier=_IDENTIFIER, display_name=None, credential_hash="x")
    )


def _challenge(code: str = "123456", attempts: int = 0) -> ChallengeRecord:
    return ChallengeRecord(
        identifier=_IDENTIFIER,
        code=code,
        expires_at=_NOW + timedelta(minutes=5),
        attempts=attempts,
    )


class TestUpsert:
    """Test ChallengeRepository.upsert()."""

    async def test_inserts(self, db_session: AsyncSession, account):
        repo = ChallengeRepository(db_session)

        await repo.upsert(_challenge())

        assert await repo.get(_IDENTIFIER) == _challenge()

    async def test_replaces_code_and_resets_attempts(
        self, db_session: AsyncSession, account
    ):
        repo = ChallengeRepository(db_session)
        await repo.upsert(_challenge("111111", attempts=4))

        await repo.upsert(_challenge("222222"))

        current = await repo.get(_IDENTIFIER)
        assert current.code == "222222"
        assert current.attempts == 0


class TestIncrementAttempts:
    async def test_returns_updated_challenge(self, db_session: AsyncSession, account):
        repo = ChallengeRepository(db_session)
        await repo.upsert(_challenge())

        assert (await repo.increment_attempts(_IDENTIFIER)).attempts == 1
        current = await repo.increment_attempts(_IDENTIFIER)

        assert current == _challenge(attempts=2)
        assert (await repo.get(_IDENTIFIER)).attempts == 2

    async def test_returns_replaced_code(self, db_session: AsyncSession, account):
        repo = ChallengeRepository(db_session)
        await repo.upsert(_challenge("111111", attempts=3))
        await repo.upsert(_challenge("222222"))

        current = await repo.increment_attempts(_IDENTIFIER)

        assert current.code == "222222"
        assert current.attempts == 1

    async def test_missing_returns_none(self, db_session: AsyncSession):
        assert await ChallengeRepository(db_session).increment_attempts(_IDENTIFIER) is None


class TestDelete:
    async def test_reports_removal(self, db_session: AsyncSession, account):
        repo = ChallengeRepository(db_session)
        await repo.upsert(_challenge())

        assert await repo.delete(_IDENTIFIER) is True
        assert await repo.delete(_IDENTIFIER) is False

    async def test_with_code_only_removes_matching_challenge(
        self, db_session: AsyncSession, account
    ):
        repo = ChallengeRepository(db_session)
        await repo.upsert(_challenge("222222"))

        assert await repo.delete(_IDENTIFIER, code="111111") is False
        assert await repo.get(_IDENTIFIER) is not None
        assert await repo.delete(_IDENTIFIER, code="222222") is True
        assert await repo.get(_IDENTIFIER) is None

    async def test_cascades_from_account(self, db_session: AsyncSession, account):
        repo = ChallengeRepository(db_session)
        await repo.upsert(_challenge())

        await AccountRepository(db_session).delete(_IDENTIFIER)

        assert await repo.get(_IDENTIFIER) is None

    async def test_delete_expired(self, db_session: AsyncSession, account):
        repo = ChallengeRepository(db_session)
        await repo.upsert(_challenge())

        assert await repo.delete_expired(_NOW) == 0
        assert await repo.delete_expired(_NOW + timedelta(minutes=6)) == 1
        assert await repo.get(_IDENTIFIER) is None
