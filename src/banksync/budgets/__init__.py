"""Budget evaluation and alerting."""

from .evaluator import (
    BudgetEvaluation,
    BudgetStatus,
    LimitType,
    evaluate_budget_status,
    evaluate_monthly_budgets,
    get_alert_budgets,
    month_bounds,
    plan_budget_copy,
)

__all__ = [
    "BudgetEvaluation",
    "BudgetStatus",
    "LimitType",
    "evaluate_budget_status",
    "evaluate_monthly_budgets",
    "get_alert_budgets",
    "month_bounds",
    "plan_budget_copy",
]
