"""Budget endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Path

from banksync.api.deps import HouseholdId, get_budget_service
from banksync.budgets.evaluator import BudgetEvaluation, get_alert_budgets, parse_month
from banksync.schemas.budget import (
    BudgetCopyRequest,
    BudgetCopyResult,
    BudgetEvaluationResponse,
    BudgetUpsertRequest,
    MonthlyBudgetReport,
    MonthlyKPIsResponse,
)
from banksync.services.budget import BudgetService

router = APIRouter(prefix="/budgets", tags=["budgets"])

Month = Annotated[str, Path(description="Month in YYYY-MM format", examples=["2024-06"])]


def _to_response(evaluation: BudgetEvaluation) -> BudgetEvaluationResponse:
    budget = evaluation.budget
    return BudgetEvaluationResponse(
        budget_id=budget.id,
        category_id=budget.category_id,
        month=budget.month,
        planned_amount=budget.planned_amount,
        limit_amount=budget.limit_amount,
        limit_type=budget.limit_type,
        actual_amount=evaluation.actual_amount,
        percent_used=evaluation.percent_used,
        status=evaluation.status,
        remaining=evaluation.remaining,
        is_over_planned=evaluation.is_over_planned,
        is_over_limit=evaluation.is_over_limit,
    )


@router.put("", response_model=BudgetEvaluationResponse, summary="Create or replace a budget")
async def upsert_budget(
    household_id: HouseholdId,
    request: BudgetUpsertRequest,
    service: BudgetService = Depends(get_budget_service),
):
    """Upsert on (category, month) and return the budget's current evaluation."""
    budget = await service.upsert(household_id, request)
    evaluations = await service.evaluate_month(household_id, budget.month)
    return next(_to_response(e) for e in evaluations if e.budget.id == budget.id)


@router.get("/{month}", response_model=MonthlyBudgetReport)
async def evaluate_month(
    household_id: HouseholdId,
    month: Month,
    service: BudgetService = Depends(get_budget_service),
):
    parse_month(month)
    evaluations = await service.evaluate_month(household_id, month)
    return MonthlyBudgetReport(
        month=month,
        evaluations=[_to_response(e) for e in evaluations],
        alerts=len(get_alert_budgets(evaluations)),
    )


@router.get("/{month}/alerts", response_model=list[BudgetEvaluationResponse])
async def budget_alerts(
    household_id: HouseholdId,
    month: Month,
    service: BudgetService = Depends(get_budget_service),
):
    """Budgets whose status is not `ok`."""
    parse_month(month)
    return [_to_response(e) for e in await service.get_alerts(household_id, month)]


@router.get("/{month}/kpis", response_model=MonthlyKPIsResponse)
async def monthly_kpis(
    household_id: HouseholdId,
    month: Month,
    service: BudgetService = Depends(get_budget_service),
):
    """Income, expenses and savings for the month (ignored transactions excluded)."""
    parse_month(month)
    kpis = await service.get_monthly_kpis(household_id, month)
    return MonthlyKPIsResponse(
        month=month,
        total_income=kpis.total_income,
        total_expenses=kpis.total_expenses,
        net_savings=kpis.net_savings,
        savings_rate=kpis.savings_rate,
    )


@router.post("/copy", response_model=BudgetCopyResult)
async def copy_budgets(
    household_id: HouseholdId,
    request: BudgetCopyRequest,
    service: BudgetService = Depends(get_budget_service),
):
    """Copy a month's budgets; categories already budgeted in the target month are skipped."""
    created = await service.copy_month(household_id, request.from_month, request.to_month)
    return BudgetCopyResult(created=created)
