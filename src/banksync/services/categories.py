"""Category management with one level of nesting."""

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from banksync.categorization.categories import (
    CategoryNode,
    build_category_tree,
    category_ids_to_delete,
    validate_parent,
)
from banksync.core.exceptions import NotFoundError
from banksync.models.category import Category
from banksync.repositories.category import CategoryRepository
from banksync.schemas.category import CategoryCreateRequest

logger = logging.getLogger(__name__)


class CategoryService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.category_repo = CategoryRepository(db)

    async def create(self, household_id: UUID, request: CategoryCreateRequest) -> Category:
        """Create a category, checking the parent when one is given.

        Raises:
            NotFoundError: If the parent is not in the household
            ValidationError: If the parent placement is not allowed
        """
        parent = None
        if request.parent_id is not None:
            parent = await self.category_repo.get_scoped(household_id, request.parent_id)
            if parent is None:
                raise NotFoundError("Parent category not found")
        validate_parent(request.type, parent)

        return await self.category_repo.create(
            Category(
                household_id=household_id,
                name=request.name,
                type=request.type,
                parent_id=request.parent_id,
                icon=request.icon,
                sort_order=request.sort_order,
            )
        )

    async def get_tree(self, household_id: UUID) -> list[CategoryNode]:
        return build_category_tree(await self.category_repo.get_by_household(household_id))

    async def delete(self, household_id: UUID, category_id: UUID) -> int:
        """Delete a category and its subcategories.

        Rules pointing at deleted categories are kept and show up as broken.
        """
        categories = await self.category_repo.get_by_household(household_id)
        if category_id not in {c.id for c in categories}:
            raise NotFoundError("Category not found")
        deleted = await self.category_repo.delete_many(
            household_id, category_ids_to_delete(category_id, categories)
        )
        logger.info(
            "Deleted categories", extra={"household_id": household_id, "deleted": deleted}
        )
        return deleted
