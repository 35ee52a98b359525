"""Process-local stores for tests and database-free local runs.

Each store guards its dict with an asyncio.Lock, which gives the same
per-identifier atomicity the PostgreSQL repositories get from single
statements.
"""

import asyncio
import dataclasses

from auth_service.services.auth_types import (
    AccountPatch,
    AccountRecord,
    ChallengeRecord,
)
from auth_service.services.stores import DuplicateIdentifierError


class InMemoryAccountStore:
    """AccountStore backed by a dict."""

    def __init__(self) -> None:
        self._accounts: dict[str, AccountRecord] = {}
        self._lock = asyncio.Lock()

    async def get(self, identifier: str) -> AccountRecord | None:
        return self._accounts.get(identifier)

    async def create(self, account: AccountRecord) -> AccountRecord:
        async with self._lock:
            if account.identifier in self._accounts:
                raise DuplicateIdentifierError(account.identifier)
            self._accounts[account.identifier] = account
            return account

    async def update(
        self, identifier: str, patch: AccountPatch
    ) -> AccountRecord | None:
        async with self._lock:
            current = self._accounts.get(identifier)
            if current is None:
                return None
            updated = dataclasses.replace(current, **patch.changes())
            self._accounts[identifier] = updated
            return updated

    async def delete(self, identifier: str) -> bool:
        async with self._lock:
            return self._accounts.pop(identifier, None) is not None


class InMemoryChallengeStore:
    """ChallengeStore backed by a dict."""

    def __init__(self) -> None:
        self._challenges: dict[str, ChallengeRecord] = {}
        self._lock = asyncio.Lock()

    async def get(self, identifier: str) -> ChallengeRecord | None:
        return self._challenges.get(identifier)

    async def upsert(self, challenge: ChallengeRecord) -> ChallengeRecord:
        async with self._lock:
            self._challenges[challenge.identifier] = challenge
            return challenge

    async def increment_attempts(self, identifier: str) -> ChallengeRecord | None:
        async with self._lock:
            current = self._challenges.get(identifier)
            if current is None:
                return None
            updated = dataclasses.replace(current, attempts=current.attempts + 1)
            self._challenges[identifier] = updated
            return updated

    async def delete(self, identifier: str, *, code: str | None = None) -> bool:
        async with self._lock:
            current = self._challenges.get(identifier)
            if current is None or (code is not None and current.code != code):
                return False
            del self._challenges[identifier]
            return True
