"""Budget service: upsert, monthly evaluation, alerts and month copy."""

import logging
import time
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from banksync.budgets.evaluator import (
    BudgetEvaluation,
    MonthlyKPIs,
    calculate_monthly_kpis,
    evaluate_monthly_budgets,
    get_alert_budgets,
    month_bounds,
)
from banksync.core.exceptions import NotFoundError
from banksync.models.budget import Budget
from banksync.monitoring.metrics import MetricsSink, NullMetricsSink
from banksync.repositories.budget import BudgetRepository
from banksync.repositories.category import CategoryRepository
from banksync.repositories.transaction import TransactionRepository
from banksync.schemas.budget import BudgetUpsertRequest

logger = logging.getLogger(__name__)


class BudgetService:
    """Service for budgets of one household.

    Evaluation results are reported to the injected metrics sink.
    """

    def __init__(self, db: AsyncSession, metrics: MetricsSink | None = None):
        self.db = db
        self.metrics = metrics or NullMetricsSink()
        self.budget_repo = BudgetRepository(db)
        self.category_repo = CategoryRepository(db)
        self.transaction_repo = TransactionRepository(db)

    async def upsert(self, household_id: UUID, request: BudgetUpsertRequest) -> Budget:
        """Create or replace the budget for a category and month.

        Raises:
            NotFoundError: If the category is not in the household
        """
        category = await self.category_repo.get_scoped(household_id, request.category_id)
        if category is None:
            raise NotFoundError("Category not found")

        return await self.budget_repo.upsert(
            household_id=household_id,
            category_id=category.id,
            month=request.month,
            planned_amount=request.planned_amount,
            limit_amount=request.limit_amount,
            limit_type=request.limit_type.value if request.limit_type else None,
            alert_threshold_pct=request.alert_threshold_pct,
        )

    async def evaluate_month(self, household_id: UUID, month: str) -> list[BudgetEvaluation]:
        """Evaluate every budget of ``month`` against actual spending."""
        start_time = time.time()
        start, end = month_bounds(month)

        budgets = await self.budget_repo.get_for_month(household_id, month)
        spending = await self.transaction_repo.get_expense_totals_by_category(
            household_id, start, end
        )
        evaluations = evaluate_monthly_budgets(budgets, spending, month)

        self.metrics.increment("budget.evaluated", len(evaluations))
        for evaluation in evaluations:
            self.metrics.increment(f"budget.status.{evaluation.status.value}")
        self.metrics.timing("budget.evaluate_month", (time.time() - start_time) * 1000)

        return evaluations

    async def get_alerts(self, household_id: UUID, month: str) -> list[BudgetEvaluation]:
        return get_alert_budgets(await self.evaluate_month(household_id, month))

    async def copy_month(self, household_id: UUID, from_month: str, to_month: str) -> int:
        """Copy budgets into ``to_month``; existing target budgets stay as they are."""
        created = await self.budget_repo.copy_month(household_id, from_month, to_month)
        logger.info(
            "Copied budgets",
            extra={
                "household_id": household_id,
                "from_month": from_month,
                "to_month": to_month,
                "created": created,
            },
        )
        return created

    async def get_monthly_kpis(self, household_id: UUID, month: str) -> MonthlyKPIs:
        start, end = month_bounds(month)
        transactions = await self.transaction_repo.get_by_date_range(household_id, start, end)
        return calculate_monthly_kpis(transactions, month)
