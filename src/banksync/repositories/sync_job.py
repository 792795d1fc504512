"""Sync job repository (append-only log)."""
from datetime import datetime, timezone
from typing import Iterable
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from banksync.models.sync_job import SyncJob
from banksync.repositories.base import BaseRepository


class SyncJobRepository(BaseRepository[SyncJob]):
    """Repository for SyncJob model."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, SyncJob)

    async def start(self, household_id: UUID, connection_id: UUID) -> SyncJob:
        """Open a job in ``running`` state."""
        job = SyncJob(
            household_id=household_id,
            connection_id=connection_id,
            status="running",
            started_at=datetime.now(timezone.utc),
        )
        return await self.create(job)

    async def finish(
        self,
        job_id: UUID,
        status: str,
        transactions_found: int = 0,
        transactions_new: int = 0,
        error_message: str | None = None,
    ) -> None:
        await self.db.execute(
            update(SyncJob)
            .where(SyncJob.id == job_id)
            .values(
                status=status,
                completed_at=datetime.now(timezone.utc),
                transactions_found=transactions_found,
                transactions_new=transactions_new,
                error_message=error_message,
            )
        )
        await self.db.commit()

    async def fail_running(self, job_ids: Iterable[UUID], error_message: str) -> None:
        """Mark still-running jobs among ``job_ids`` as failed."""
        ids = list(job_ids)
        if not ids:
            return
        await self.db.execute(
            update(SyncJob)
            .where(SyncJob.id.in_(ids), SyncJob.status == "running")
            .values(
                status="failed",
                completed_at=datetime.now(timezone.utc),
                error_message=error_message,
            )
        )
        await self.db.commit()

    async def get_for_connection(self, connection_id: UUID, limit: int = 20) -> list[SyncJob]:
        result = await self.db.execute(
            select(SyncJob)
            .where(SyncJob.connection_id == connection_id)
            .order_by(SyncJob.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
