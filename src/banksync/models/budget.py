"""Monthly per-category budget model."""
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from banksync.models.base import BaseModel


class Budget(BaseModel):
    """Planned spending for one category in one month (``YYYY-MM``)."""

    __tablename__ = "budgets"

    household_id: Mapped[UUID] = mapped_column(
        ForeignKey("households.id", ondelete="CASCADE"), nullable=False, index=True
    )
    category_id: Mapped[UUID] = mapped_column(
        ForeignKey("categories.id", ondelete="CASCADE"), nullable=False
    )
    month: Mapped[str] = mapped_column(String(7), nullable=False)
    planned_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    limit_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    limit_type: Mapped[str | None] = mapped_column(String(10), nullable=True)
    alert_threshold_pct: Mapped[Decimal] = mapped_column(
        Numeric(4, 2), default=Decimal("0.80"), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("household_id", "category_id", "month", name="uq_budget_household_category_month"),
    )

    def __repr__(self) -> str:
        return f"<Budget(id={self.id}, category_id={self.category_id}, month={self.month})>"
