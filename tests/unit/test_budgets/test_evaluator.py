"""Unit tests for the budget evaluator."""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

import pytest

from banksync.budgets.evaluator import (
    BudgetStatus,
    calculate_category_spending,
    calculate_monthly_kpis,
    evaluate_budget_status,
    evaluate_monthly_budgets,
    get_alert_budgets,
    month_bounds,
    plan_budget_copy,
)
from banksync.core.exceptions import ValidationError

FOOD = uuid4()
FUN = uuid4()


@dataclass
class Budget:
    category_id: UUID = FOOD
    month: str = "2024-06"
    planned_amount: Decimal = Decimal("1000")
    limit_amount: Decimal | None = None
    limit_type: str | None = None
    alert_threshold_pct: Decimal = Decimal("0.8")


@dataclass
class Txn:
    amount: Decimal
    date: date
    category_id: UUID | None = FOOD
    direction: str = "expense"
    is_ignored: bool = False


class TestEvaluateBudgetStatus:
    def test_nearing_limit(self):
        evaluation = evaluate_budget_status(Budget(), Decimal("850"))

        assert evaluation.status == BudgetStatus.NEARING_LIMIT
        assert evaluation.percent_used == 85.0
        assert evaluation.remaining == Decimal("150")

    def test_hard_limit_reached(self):
        budget = Budget(limit_amount=Decimal("1200"), limit_type="hard")
        evaluation = evaluate_budget_status(budget, Decimal("1200"))

        assert evaluation.status == BudgetStatus.EXCEEDED_HARD
        assert evaluation.is_over_limit
        assert evaluation.is_over_planned

    def test_ok(self):
        evaluation = evaluate_budget_status(Budget(), Decimal("500"))

        assert evaluation.status == BudgetStatus.OK
        assert evaluation.percent_used == 50.0

    def test_soft_limit_reached(self):
        budget = Budget(limit_amount=Decimal("1100"), limit_type="soft")
        assert evaluate_budget_status(budget, Decimal("1150")).status == BudgetStatus.EXCEEDED_SOFT

    def test_over_plan_below_limit_is_nearing(self):
        budget = Budget(limit_amount=Decimal("1500"), limit_type="hard")
        evaluation = evaluate_budget_status(budget, Decimal("1100"))

        assert evaluation.status == BudgetStatus.NEARING_LIMIT
        assert not evaluation.is_over_limit

    def test_limit_without_type_is_ignored(self):
        evaluation = evaluate_budget_status(Budget(limit_amount=Decimal("100")), Decimal("200"))

        assert evaluation.status == BudgetStatus.OK
        assert not evaluation.is_over_limit

    def test_threshold_boundary(self):
        assert evaluate_budget_status(Budget(), Decimal("799.99")).status == BudgetStatus.OK
        assert evaluate_budget_status(Budget(), Decimal("800")).status == BudgetStatus.NEARING_LIMIT

    def test_zero_plan_nothing_spent(self):
        evaluation = evaluate_budget_status(Budget(planned_amount=Decimal("0")), Decimal("0"))

        assert evaluation.percent_used == 0.0
        assert evaluation.status == BudgetStatus.OK
        assert not evaluation.is_unbounded

    def test_zero_plan_with_spending_is_unbounded(self):
        evaluation = evaluate_budget_status(Budget(planned_amount=Decimal("0")), Decimal("10"))

        assert evaluation.percent_used is None
        assert evaluation.is_unbounded
        assert evaluation.status == BudgetStatus.NEARING_LIMIT

    def test_accepts_float_amounts(self):
        evaluation = evaluate_budget_status(Budget(), 850.0)
        assert evaluation.actual_amount == Decimal("850.0")


class TestSpending:
    def test_only_expense_non_ignored_in_category_and_month(self):
        txns = [
            Txn(Decimal("100"), date(2024, 6, 1)),
            Txn(Decimal("50"), date(2024, 6, 30)),
            Txn(Decimal("999"), date(2024, 7, 1)),
            Txn(Decimal("999"), date(2024, 5, 31)),
            Txn(Decimal("999"), date(2024, 6, 15), direction="income"),
            Txn(Decimal("999"), date(2024, 6, 15), is_ignored=True),
            Txn(Decimal("999"), date(2024, 6, 15), category_id=FUN),
        ]

        assert calculate_category_spending(txns, FOOD, "2024-06") == Decimal("150")

    def test_month_bounds_inclusive(self):
        assert month_bounds("2024-02") == (date(2024, 2, 1), date(2024, 2, 29))
        assert month_bounds("2023-12") == (date(2023, 12, 1), date(2023, 12, 31))

    @pytest.mark.parametrize("month", ["2024-13", "2024-6", "June", "", "2024-00"])
    def test_bad_month(self, month):
        with pytest.raises(ValidationError):
            month_bounds(month)


class TestMonthlyEvaluation:
    def test_alerts_keep_order(self):
        budgets = [
            Budget(category_id=FOOD),
            Budget(category_id=FUN, planned_amount=Decimal("100")),
            Budget(category_id=uuid4(), month="2024-07"),
        ]
        spending = {FOOD: Decimal("900"), FUN: Decimal("10")}

        evaluations = evaluate_monthly_budgets(budgets, spending, "2024-06")
        alerts = get_alert_budgets(evaluations)

        assert len(evaluations) == 2
        assert [e.status for e in evaluations] == [BudgetStatus.NEARING_LIMIT, BudgetStatus.OK]
        assert [a.budget.category_id for a in alerts] == [FOOD]

    def test_missing_spending_counts_as_zero(self):
        [evaluation] = evaluate_monthly_budgets([Budget()], {}, "2024-06")
        assert evaluation.actual_amount == Decimal("0")


class TestPlanBudgetCopy:
    def test_existing_target_category_is_skipped(self):
        source = [Budget(category_id=FOOD), Budget(category_id=FUN, planned_amount=Decimal("300"))]

        drafts = plan_budget_copy(source, {FOOD}, "2024-07")

        assert [d.category_id for d in drafts] == [FUN]
        assert drafts[0].month == "2024-07"
        assert drafts[0].planned_amount == Decimal("300")

    def test_copy_is_idempotent(self):
        source = [Budget(category_id=FOOD)]
        first = plan_budget_copy(source, set(), "2024-07")
        second = plan_budget_copy(source, {d.category_id for d in first}, "2024-07")

        assert len(first) == 1
        assert second == []


class TestMonthlyKPIs:
    def test_kpis(self):
        txns = [
            Txn(Decimal("10000"), date(2024, 6, 1), direction="income"),
            Txn(Decimal("2500"), date(2024, 6, 2)),
            Txn(Decimal("500"), date(2024, 6, 3), is_ignored=True),
        ]
        kpis = calculate_monthly_kpis(txns, "2024-06")

        assert kpis.total_income == Decimal("10000")
        assert kpis.total_expenses == Decimal("2500")
        assert kpis.net_savings == Decimal("7500")
        assert kpis.savings_rate == 0.75

    def test_no_income(self):
        assert calculate_monthly_kpis([], "2024-06").savings_rate == 0.0
