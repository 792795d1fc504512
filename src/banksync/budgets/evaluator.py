"""Budget evaluation for a category and month.

Status precedence:
1. hard limit reached  -> exceeded_hard
2. soft limit reached  -> exceeded_soft
3. actual >= planned * alert threshold -> nearing_limit
4. otherwise -> ok

Percent used is ``actual / planned * 100``. With a zero plan the percent is 0
when nothing was spent and unbounded (None, shown as "over") otherwise.
"""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, Mapping, Protocol
from uuid import UUID

from banksync.core.exceptions import ValidationError

DEFAULT_ALERT_THRESHOLD = Decimal("0.8")
_MONTH_RE = re.compile(r"^(\d{4})-(\d{2})$")


class BudgetStatus(str, Enum):
    OK = "ok"
    NEARING_LIMIT = "nearing_limit"
    EXCEEDED_SOFT = "exceeded_soft"
    EXCEEDED_HARD = "exceeded_hard"


class LimitType(str, Enum):
    SOFT = "soft"
    HARD = "hard"


class BudgetLike(Protocol):
    category_id: UUID
    month: str
    planned_amount: Decimal
    limit_amount: Decimal | None
    limit_type: str | None
    alert_threshold_pct: Decimal


class SpendingLike(Protocol):
    category_id: UUID | None
    date: date
    amount: Decimal
    direction: str
    is_ignored: bool


@dataclass(frozen=True)
class BudgetEvaluation:
    budget: Any
    actual_amount: Decimal
    percent_used: float | None
    status: BudgetStatus
    remaining: Decimal
    is_over_planned: bool
    is_over_limit: bool

    @property
    def is_unbounded(self) -> bool:
        """True when spending exists against a zero plan."""
        return self.percent_used is None


@dataclass(frozen=True)
class BudgetDraft:
    """A budget to be created by copying another month."""

    category_id: UUID
    month: str
    planned_amount: Decimal
    limit_amount: Decimal | None
    limit_type: str | None
    alert_threshold_pct: Decimal


def parse_month(month: str) -> tuple[int, int]:
    """Split ``YYYY-MM`` into (year, month).

    Raises:
        ValidationError: If the string is not a valid month
    """
    match = _MONTH_RE.match(month or "")
    if not match:
        raise ValidationError(f"Invalid month '{month}', expected YYYY-MM")
    year, month_num = int(match.group(1)), int(match.group(2))
    if not 1 <= month_num <= 12:
        raise ValidationError(f"Invalid month '{month}', expected YYYY-MM")
    return year, month_num


def month_bounds(month: str) -> tuple[date, date]:
    """First and last calendar day of ``month`` (both inclusive)."""
    year, month_num = parse_month(month)
    last_day = calendar.monthrange(year, month_num)[1]
    return date(year, month_num, 1), date(year, month_num, last_day)


def _as_decimal(value) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def _value(enum_or_str) -> str | None:
    return getattr(enum_or_str, "value", enum_or_str)


def calculate_category_spending(
    transactions: Iterable[SpendingLike], category_id: UUID, month: str
) -> Decimal:
    """Sum expense, non-ignored amounts in ``category_id`` during ``month``."""
    start, end = month_bounds(month)
    return sum(
        (
            _as_decimal(tx.amount)
            for tx in transactions
            if tx.category_id == category_id
            and _value(tx.direction) == "expense"
            and not tx.is_ignored
            and start <= tx.date <= end
        ),
        Decimal("0"),
    )


def calculate_percent_used(planned: Decimal, actual: Decimal) -> float | None:
    if planned == 0:
        return 0.0 if actual == 0 else None
    return float(actual / planned * 100)


def evaluate_budget_status(budget: BudgetLike, actual_amount) -> BudgetEvaluation:
    """Evaluate one budget against the actual spend for its month."""
    actual = _as_decimal(actual_amount)
    planned = _as_decimal(budget.planned_amount)
    threshold = _as_decimal(
        budget.alert_threshold_pct
        if budget.alert_threshold_pct is not None
        else DEFAULT_ALERT_THRESHOLD
    )
    limit = _as_decimal(budget.limit_amount) if budget.limit_amount is not None else None
    limit_type = _value(budget.limit_type)

    is_over_limit = limit is not None and limit_type is not None and actual >= limit

    if is_over_limit and limit_type == LimitType.HARD.value:
        status = BudgetStatus.EXCEEDED_HARD
    elif is_over_limit and limit_type == LimitType.SOFT.value:
        status = BudgetStatus.EXCEEDED_SOFT
    elif (planned > 0 and actual >= planned * threshold) or (planned == 0 and actual > 0):
        status = BudgetStatus.NEARING_LIMIT
    else:
        status = BudgetStatus.OK

    return BudgetEvaluation(
        budget=budget,
        actual_amount=actual,
        percent_used=calculate_percent_used(planned, actual),
        status=status,
        remaining=planned - actual,
        is_over_planned=actual > planned,
        is_over_limit=is_over_limit,
    )


def evaluate_monthly_budgets(
    budgets: Iterable[BudgetLike],
    spending_by_category: Mapping[UUID, Decimal],
    month: str,
) -> list[BudgetEvaluation]:
    """Evaluate every budget of ``month`` using pre-aggregated spending."""
    parse_month(month)
    return [
        evaluate_budget_status(b, spending_by_category.get(b.category_id, Decimal("0")))
        for b in budgets
        if b.month == month
    ]


def get_alert_budgets(evaluations: Iterable[BudgetEvaluation]) -> list[BudgetEvaluation]:
    """Evaluations that are not ``ok``, in their original order."""
    return [e for e in evaluations if e.status != BudgetStatus.OK]


def plan_budget_copy(
    source_budgets: Iterable[BudgetLike],
    existing_category_ids: set[UUID],
    to_month: str,
) -> list[BudgetDraft]:
    """Drafts for copying budgets into ``to_month``.

    Categories that already have a budget in the target month are skipped;
    existing target budgets are never overwritten.
    """
    parse_month(to_month)
    drafts = []
    seen = set(existing_category_ids)
    for budget in source_budgets:
        if budget.category_id in seen:
            continue
        seen.add(budget.category_id)
        drafts.append(
            BudgetDraft(
                category_id=budget.category_id,
                month=to_month,
                planned_amount=budget.planned_amount,
                limit_amount=budget.limit_amount,
                limit_type=_value(budget.limit_type),
                alert_threshold_pct=budget.alert_threshold_pct,
            )
        )
    return drafts


@dataclass(frozen=True)
class MonthlyKPIs:
    total_income: Decimal
    total_expenses: Decimal
    net_savings: Decimal
    savings_rate: float


def calculate_monthly_kpis(transactions: Iterable[SpendingLike], month: str) -> MonthlyKPIs:
    """Income, expenses, net savings and savings rate for ``month``."""
    start, end = month_bounds(month)
    income = Decimal("0")
    expenses = Decimal("0")
    for tx in transactions:
        if tx.is_ignored or not start <= tx.date <= end:
            continue
        if _value(tx.direction) == "income":
            income += _as_decimal(tx.amount)
        elif _value(tx.direction) == "expense":
            expenses += _as_decimal(tx.amount)

    net = income - expenses
    rate = float(net / income) if income > 0 else 0.0
    return MonthlyKPIs(income, expenses, net, rate)
