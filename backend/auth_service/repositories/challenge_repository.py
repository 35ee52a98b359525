"""PostgreSQL implementation of the ChallengeStore.

At most one challenge per identifier. Upsert and the attempt increment
are single statements, so concurrent requests for the same identifier
never see a half-written challenge or lose an increment.
"""

from datetime import datetime

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from auth_service.models.verification_challenge import VerificationChallenge
from auth_service.services.auth_types import ChallengeRecord


def _to_record(challenge: VerificationChallenge) -> ChallengeRecord:
    return ChallengeRecord(
        identifier=challenge.identifier,
        code=challenge.code,
        expires_at=challenge.expires_at,
        attempts=challenge.attempts,
    )


class ChallengeRepository:
    """Verification challenge table operations bound to one request session."""

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def get(self, identifier: str) -> ChallengeRecord | None:
        result = await self._db.execute(
            select(VerificationChallenge)
            .where(VerificationChallenge.identifier == identifier)
            .execution_options(populate_existing=True)
        )
        challenge = result.scalar_one_or_none()
        return _to_record(challenge) if challenge is not None else None

    async def upsert(self, challenge: ChallengeRecord) -> ChallengeRecord:
        """Insert the challenge, or replace code, expiry and attempts.

        Args:
            challenge: Challenge to store.

        Returns:
            The stored challenge.
        """
        stmt = insert(VerificationChallenge).values(
            identifier=challenge.identifier,
            code=challenge.code,
            expires_at=challenge.expires_at,
            attempts=challenge.attempts,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[VerificationChallenge.identifier],
            set_={
                "code": stmt.excluded.code,
                "expires_at": stmt.excluded.expires_at,
                "attempts": stmt.excluded.attempts,
                "updated_at": func.now(),
            },
        )
        await self._db.execute(stmt)
        return challenge

    async def increment_attempts(self, identifier: str) -> ChallengeRecord | None:
        """Add one attempt and return the challenge as the update left it.

        Returns:
            The updated challenge, or None if no challenge exists.
        """
        stmt = (
            update(VerificationChallenge)
            .where(VerificationChallenge.identifier == identifier)
            .values(attempts=VerificationChallenge.attempts + 1)
            .returning(
                VerificationChallenge.code,
                VerificationChallenge.expires_at,
                VerificationChallenge.attempts,
            )
            .execution_options(synchronize_session=False)
        )
        row = (await self._db.execute(stmt)).one_or_none()
        if row is None:
            return None
        return ChallengeRecord(
            identifier=identifier,
            code=row.code,
            expires_at=row.expires_at,
            attempts=row.attempts,
        )

    async def delete(self, identifier: str, *, code: str | None = None) -> bool:
        stmt = delete(VerificationChallenge).where(
            VerificationChallenge.identifier == identifier
        )
        if code is not None:
            stmt = stmt.where(VerificationChallenge.code == code)
        result = await self._db.execute(stmt)
        row_count: int = result.rowcount  # type: ignore[attr-defined]
        return row_count > 0

    async def delete_expired(self, now: datetime) -> int:
        """Delete all challenges that expired before ``now`` (periodic cleanup).

        Returns:
            Number of deleted rows.
        """
        result = await self._db.execute(
            delete(VerificationChallenge).where(VerificationChallenge.expires_at < now)
        )
        row_count: int = result.rowcount  # type: ignore[attr-defined]
        return row_count
