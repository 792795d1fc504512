"""Bank connection repository."""
from datetime import datetime
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from banksync.models.bank_connection import BankConnection
from banksync.repositories.base import BaseRepository


class BankConnectionRepository(BaseRepository[BankConnection]):
    """Repository for BankConnection model."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, BankConnection)

    async def get_active(self, household_id: UUID | None = None) -> list[BankConnection]:
        """Active connections of one household, or of every household."""
        query = select(BankConnection).where(BankConnection.is_active.is_(True))
        if household_id is not None:
            query = query.where(BankConnection.household_id == household_id)
        result = await self.db.execute(query.order_by(BankConnection.created_at))
        return list(result.scalars().all())

    async def get_stale(
        self, household_id: UUID, synced_before: datetime
    ) -> list[BankConnection]:
        """Active connections never synced or last synced before ``synced_before``."""
        result = await self.db.execute(
            select(BankConnection)
            .where(
                BankConnection.household_id == household_id,
                BankConnection.is_active.is_(True),
                or_(
                    BankConnection.last_sync_at.is_(None),
                    BankConnection.last_sync_at < synced_before,
                ),
            )
            .order_by(BankConnection.created_at)
        )
        return list(result.scalars().all())

    async def get_scoped(self, household_id: UUID, connection_id: UUID) -> BankConnection | None:
        result = await self.db.execute(
            select(BankConnection).where(
                BankConnection.id == connection_id,
                BankConnection.household_id == household_id,
            )
        )
        return result.scalar_one_or_none()

    async def mark_synced(
        self,
        connection_id: UUID,
        status: str,
        synced_at: datetime,
        account_mappings: dict | None = None,
    ) -> None:
        """Record the outcome of a sync attempt on the connection."""
        connection = await self.get_by_id(connection_id)
        if connection is None:
            return
        connection.last_sync_status = status
        connection.last_sync_at = synced_at
        if account_mappings is not None:
            connection.account_mappings = dict(account_mappings)
        await self.db.commit()
