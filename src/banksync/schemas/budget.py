"""Request/response schemas for budgets."""

from decimal import Decimal
from typing import Annotated
from uuid import UUID

from pydantic import AfterValidator, BaseModel, Field, model_validator

from banksync.budgets.evaluator import BudgetStatus, LimitType, parse_month
from banksync.core.exceptions import ValidationError


def _check_month(value: str) -> str:
    try:
        parse_month(value)
    except ValidationError as e:
        raise ValueError(e.message) from e
    return value


Month = Annotated[str, AfterValidator(_check_month)]


class BudgetUpsertRequest(BaseModel):
    category_id: UUID
    month: Month = Field(description="Month in YYYY-MM format", examples=["2024-06"])
    planned_amount: Decimal = Field(ge=0)
    limit_amount: Decimal | None = Field(None, ge=0)
    limit_type: LimitType | None = None
    alert_threshold_pct: Decimal = Field(Decimal("0.8"), gt=0, le=1)

    @model_validator(mode="after")
    def limit_requires_type(self):
        if (self.limit_amount is None) != (self.limit_type is None):
            raise ValueError("limit_amount and limit_type must be set together")
        return self


class BudgetCopyRequest(BaseModel):
    from_month: Month
    to_month: Month


class BudgetCopyResult(BaseModel):
    created: int


class BudgetEvaluationResponse(BaseModel):
    """Budget evaluation for one category and month.

    ``percent_used`` is null when money was spent against a zero plan.
    """

    budget_id: UUID
    category_id: UUID
    month: str
    planned_amount: Decimal
    limit_amount: Decimal | None
    limit_type: str | None
    actual_amount: Decimal
    percent_used: float | None
    status: BudgetStatus
    remaining: Decimal
    is_over_planned: bool
    is_over_limit: bool


class MonthlyBudgetReport(BaseModel):
    month: str
    evaluations: list[BudgetEvaluationResponse]
    alerts: int


class MonthlyKPIsResponse(BaseModel):
    month: str
    total_income: Decimal
    total_expenses: Decimal
    net_savings: Decimal
    savings_rate: float = Field(description="Net savings as a share of income (0 when no income)")
