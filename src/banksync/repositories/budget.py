"""Budget repository with upsert and month copy."""
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from banksync.budgets.evaluator import plan_budget_copy
from banksync.models.budget import Budget
from banksync.repositories.base import BaseRepository


class BudgetRepository(BaseRepository[Budget]):
    """Repository for Budget model."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, Budget)

    async def get_for_month(self, household_id: UUID, month: str) -> list[Budget]:
        result = await self.db.execute(
            select(Budget)
            .where(Budget.household_id == household_id, Budget.month == month)
            .order_by(Budget.created_at)
        )
        return list(result.scalars().all())

    async def get_one(self, household_id: UUID, category_id: UUID, month: str) -> Budget | None:
        result = await self.db.execute(
            select(Budget).where(
                Budget.household_id == household_id,
                Budget.category_id == category_id,
                Budget.month == month,
            )
        )
        return result.scalar_one_or_none()

    async def upsert(
        self,
        household_id: UUID,
        category_id: UUID,
        month: str,
        planned_amount: Decimal,
        limit_amount: Decimal | None = None,
        limit_type: str | None = None,
        alert_threshold_pct: Decimal = Decimal("0.8"),
    ) -> Budget:
        """Create or replace the budget for (household, category, month)."""
        budget = await self.get_one(household_id, category_id, month)
        if budget is None:
            budget = Budget(household_id=household_id, category_id=category_id, month=month)
            self.db.add(budget)

        budget.planned_amount = planned_amount
        budget.limit_amount = limit_amount
        budget.limit_type = limit_type
        budget.alert_threshold_pct = alert_threshold_pct

        await self.db.commit()
        await self.db.refresh(budget)
        return budget

    async def copy_month(self, household_id: UUID, from_month: str, to_month: str) -> int:
        """Copy budgets between months without touching existing target budgets.

        Returns:
            Number of budgets created
        """
        source = await self.get_for_month(household_id, from_month)
        existing = {b.category_id for b in await self.get_for_month(household_id, to_month)}
        drafts = plan_budget_copy(source, existing, to_month)

        self.db.add_all(
            [
                Budget(
                    household_id=household_id,
                    category_id=d.category_id,
                    month=d.month,
                    planned_amount=d.planned_amount,
                    limit_amount=d.limit_amount,
                    limit_type=d.limit_type,
                    alert_threshold_pct=d.alert_threshold_pct,
                )
                for d in drafts
            ]
        )
        await self.db.commit()
        return len(drafts)
