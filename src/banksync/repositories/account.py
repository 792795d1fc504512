"""Account repository."""
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from banksync.models.account import Account
from banksync.repositories.base import BaseRepository

IMPORTED_ACCOUNT_NAME = "Imported Account ({external_id})"


class AccountRepository(BaseRepository[Account]):
    """Repository for Account model."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, Account)

    async def get_by_external_id(
        self, household_id: UUID, external_account_id: str
    ) -> Account | None:
        result = await self.db.execute(
            select(Account)
            .where(
                Account.household_id == household_id,
                Account.external_account_id == external_account_id,
            )
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_or_create_imported(
        self, household_id: UUID, connection_id: UUID, external_account_id: str
    ) -> Account:
        """Find the account for an external account number, creating it on first sight."""
        account = await self.get_by_external_id(household_id, external_account_id)
        if account:
            return account

        account = Account(
            household_id=household_id,
            connection_id=connection_id,
            name=IMPORTED_ACCOUNT_NAME.format(external_id=external_account_id),
            type="checking",
            external_account_id=external_account_id,
        )
        return await self.create(account)
