"""Store interfaces required by the authentication engine.

The engine receives one AccountStore and one ChallengeStore at
construction. Implementations:
- auth_service.repositories.account_repository / challenge_repository
  (PostgreSQL, one AsyncSession per request)
- auth_service.repositories.in_memory (process-local, used by tests and
  local runs without a database)

Atomicity each implementation must provide:
- AccountStore.create: conflict-checked insert on the identifier
- AccountStore.update: atomic per identifier, None when no row matched
- ChallengeStore.upsert: insert-or-replace, never a half-written record
- ChallengeStore.increment_attempts: increment-and-fetch in one step,
  returning the challenge as it stands after the increment
- ChallengeStore.delete with a code: removes the challenge only while it
  still carries that code
"""

from typing import Protocol

from auth_service.services.auth_types import (
    AccountPatch,
    AccountRecord,
    ChallengeRecord,
)


class DuplicateIdentifierError(Exception):
    """Raised by AccountStore.create when the identifier is already taken."""

    def __init__(self, identifier: str) -> None:
        self.identifier = identifier
        super().__init__("Identifier already registered")


class AccountStore(Protocol):
    """Durable accounts keyed by normalized identifier."""

    async def get(self, identifier: str) -> AccountRecord | None:
        """Fetch an account, or None if absent."""
        ...

    async def create(self, account: AccountRecord) -> AccountRecord:
        """Insert a new account.

        Raises:
            DuplicateIdentifierError: If the identifier already exists.
        """
        ...

    async def update(
        self, identifier: str, patch: AccountPatch
    ) -> AccountRecord | None:
        """Apply a patch. Returns None if no account matched."""
        ...

    async def delete(self, identifier: str) -> bool:
        """Delete an account. Returns False if no account matched."""
        ...


class ChallengeStore(Protocol):
    """Outstanding one-time-code challenges, at most one per identifier."""

    async def get(self, identifier: str) -> ChallengeRecord | None:
        """Fetch the challenge for an identifier, or None if absent."""
        ...

    async def upsert(self, challenge: ChallengeRecord) -> ChallengeRecord:
        """Insert or replace the challenge for challenge.identifier."""
        ...

    async def increment_attempts(self, identifier: str) -> ChallengeRecord | None:
        """Atomically add one attempt and return the updated challenge.

        Returns:
            The challenge after the increment (current code, expiry and
            count), or None if no challenge exists.
        """
        ...

    async def delete(self, identifier: str, *, code: str | None = None) -> bool:
        """Delete the challenge for an identifier.

        Args:
            identifier: Normalized identifier.
            code: When given, delete only if the stored challenge still
                carries this code.

        Returns:
            True if a challenge was removed, False otherwise.
        """
        ...
