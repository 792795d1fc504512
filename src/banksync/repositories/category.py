"""Category repository."""
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from banksync.models.category import Category
from banksync.repositories.base import BaseRepository


class CategoryRepository(BaseRepository[Category]):
    """Repository for Category model."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, Category)

    async def get_by_household(self, household_id: UUID) -> list[Category]:
        result = await self.db.execute(
            select(Category)
            .where(Category.household_id == household_id)
            .order_by(Category.sort_order, Category.name)
        )
        return list(result.scalars().all())

    async def get_scoped(self, household_id: UUID, category_id: UUID) -> Category | None:
        result = await self.db.execute(
            select(Category).where(
                Category.id == category_id, Category.household_id == household_id
            )
        )
        return result.scalar_one_or_none()

    async def get_ids(self, household_id: UUID) -> set[UUID]:
        """Ids of every category that currently exists for the household."""
        result = await self.db.execute(
            select(Category.id).where(Category.household_id == household_id)
        )
        return set(result.scalars().all())

    async def find_or_create_by_name(
        self, household_id: UUID, name: str, category_type: str = "expense"
    ) -> Category:
        """Case-insensitive lookup by name within one type; creates a top-level
        category of that type if absent.
        """
        result = await self.db.execute(
            select(Category)
            .where(
                Category.household_id == household_id,
                func.lower(Category.name) == name.strip().lower(),
                Category.type == category_type,
            )
            .limit(1)
        )
        category = result.scalar_one_or_none()
        if category:
            return category

        category = Category(household_id=household_id, name=name.strip(), type=category_type)
        self.db.add(category)
        await self.db.flush()
        return category

    async def delete_many(self, household_id: UUID, category_ids: list[UUID]) -> int:
        if not category_ids:
            return 0
        result = await self.db.execute(
            delete(Category).where(
                Category.household_id == household_id, Category.id.in_(category_ids)
            )
        )
        await self.db.commit()
        return result.rowcount or 0
