"""Category rule repository with household-scoped batch operations."""
from typing import Iterable
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from banksync.models.category_rule import CategoryRule
from banksync.repositories.base import BaseRepository


class CategoryRuleRepository(BaseRepository[CategoryRule]):
    """Repository for CategoryRule model.

    Batch operations only ever touch rows of the given household; ids that
    belong to another household are ignored rather than reported.
    """

    def __init__(self, db: AsyncSession):
        super().__init__(db, CategoryRule)

    async def get_by_household(self, household_id: UUID) -> list[CategoryRule]:
        result = await self.db.execute(
            select(CategoryRule)
            .where(CategoryRule.household_id == household_id)
            .order_by(CategoryRule.priority.desc(), CategoryRule.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_scoped(self, household_id: UUID, rule_id: UUID) -> CategoryRule | None:
        result = await self.db.execute(
            select(CategoryRule).where(
                CategoryRule.id == rule_id, CategoryRule.household_id == household_id
            )
        )
        return result.scalar_one_or_none()

    async def batch_delete(self, household_id: UUID, rule_ids: Iterable[UUID]) -> int:
        """Delete the household's rules among ``rule_ids``; return how many."""
        ids = list(rule_ids)
        if not ids:
            return 0
        result = await self.db.execute(
            delete(CategoryRule).where(
                CategoryRule.household_id == household_id, CategoryRule.id.in_(ids)
            )
        )
        await self.db.commit()
        return result.rowcount or 0

    async def batch_set_active(
        self, household_id: UUID, rule_ids: Iterable[UUID], is_active: bool
    ) -> int:
        """Enable or disable the household's rules among ``rule_ids``."""
        ids = list(rule_ids)
        if not ids:
            return 0
        result = await self.db.execute(
            update(CategoryRule)
            .where(CategoryRule.household_id == household_id, CategoryRule.id.in_(ids))
            .values(is_active=is_active)
        )
        await self.db.commit()
        return result.rowcount or 0
