"""Transaction model representing one persisted bank transaction."""
import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Index, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from banksync.models.base import BaseModel


class Transaction(BaseModel):
    """Transaction imported from a bank connection or entered manually."""

    __tablename__ = "transactions"

    household_id: Mapped[UUID] = mapped_column(
        ForeignKey("households.id", ondelete="CASCADE"), nullable=False, index=True
    )
    account_id: Mapped[UUID] = mapped_column(
        ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    date: Mapped[datetime.date] = mapped_column(Date, nullable=False, index=True)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    merchant: Mapped[str | None] = mapped_column(String(255), nullable=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    direction: Mapped[str] = mapped_column(String(10), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    external_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    external_category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    dedup_hash: Mapped[str | None] = mapped_column(String(16), nullable=True)
    category_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("categories.id", ondelete="SET NULL"), nullable=True, index=True
    )
    categorization_source: Mapped[str] = mapped_column(
        String(30), default="none", nullable=False
    )
    needs_review: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_ignored: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    __table_args__ = (
        UniqueConstraint("household_id", "external_id", name="uq_transactions_household_external_id"),
        Index("ix_transactions_household_dedup_hash", "household_id", "dedup_hash"),
    )

    def __repr__(self) -> str:
        return f"<Transaction(id={self.id}, description={self.description}, amount={self.amount})>"
