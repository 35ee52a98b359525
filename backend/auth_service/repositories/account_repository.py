"""PostgreSQL implementation of the AccountStore.

Accounts are keyed by normalized identifier. Writes flush inside the
request session; the session dependency owns commit and rollback.
"""

from sqlalchemy import delete, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from auth_service.models.account import Account
from auth_service.services.auth_types import AccountPatch, AccountRecord, AccountState
from auth_service.services.stores import DuplicateIdentifierError

# AccountPatch field -> Account column. Fixed set, so a patch can never
# address a column by a caller-supplied name.
_PATCH_COLUMNS = {
    "display_name": Account.display_name,
    "credential_hash": Account.credential_hash,
    "state": Account.state,
    "verified_at": Account.verified_at,
}


def _to_record(account: Account) -> AccountRecord:
    return AccountRecord(
        identifier=account.identifier,
        display_name=account.display_name,
        credential_hash=account.credential_hash,
        state=AccountState(account.state),
        verified_at=account.verified_at,
    )


class AccountRepository:
    """Account table operations bound to one request session."""

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def get(self, identifier: str) -> AccountRecord | None:
        """Fetch an account by identifier.

        Args:
            identifier: Normalized identifier.

        Returns:
            AccountRecord if found, None otherwise.
        """
        result = await self._db.execute(
            select(Account)
            .where(Account.identifier == identifier)
            .execution_options(populate_existing=True)
        )
        account = result.scalar_one_or_none()
        return _to_record(account) if account is not None else None

    async def create(self, account: AccountRecord) -> AccountRecord:
        """Insert a new account.

        The insert runs in a savepoint so a primary-key conflict leaves the
        outer transaction usable.

        Raises:
            DuplicateIdentifierError: If the identifier is already registered.
        """
        stmt = insert(Account).values(
            identifier=account.identifier,
            display_name=account.display_name,
            credential_hash=account.credential_hash,
            state=account.state.value,
            verified_at=account.verified_at,
        )
        try:
            async with self._db.begin_nested():
                await self._db.execute(stmt)
        except IntegrityError as exc:
            raise DuplicateIdentifierError(account.identifier) from exc
        return account

    async def update(
        self, identifier: str, patch: AccountPatch
    ) -> AccountRecord | None:
        """Apply a patch in a single UPDATE ... RETURNING statement.

        Returns:
            The updated record, or None if no account matched.
        """
        changes = patch.changes()
        if not changes:
            return await self.get(identifier)

        values = {
            _PATCH_COLUMNS[name]: value.value if isinstance(value, AccountState) else value
            for name, value in changes.items()
        }
        stmt = (
            update(Account)
            .where(Account.identifier == identifier)
            .values(values)
            .returning(Account)
            .execution_options(synchronize_session=False)
        )
        result = await self._db.execute(stmt)
        account = result.scalar_one_or_none()
        if account is None:
            return None
        await self._db.refresh(account)
        return _to_record(account)

    async def delete(self, identifier: str) -> bool:
        """Delete an account. Its challenge goes with it (ON DELETE CASCADE).

        Returns:
            True if a row was deleted.
        """
        result = await self._db.execute(
            delete(Account).where(Account.identifier == identifier)
        )
        row_count: int = result.rowcount  # type: ignore[attr-defined]
        return row_count > 0
