"""Household-scoped categorization rules.

``category_id`` is nullable and set to NULL when the category is deleted; such
rules are reported as broken instead of being removed.
"""

from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from banksync.models.base import BaseModel


class CategoryRule(BaseModel):
    """Pattern that assigns a category to matching transactions."""

    __tablename__ = "category_rules"

    household_id: Mapped[UUID] = mapped_column(
        ForeignKey("households.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    pattern: Mapped[str] = mapped_column(String(255), nullable=False)
    category_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("categories.id", ondelete="SET NULL"), nullable=True
    )
    priority: Mapped[int] = mapped_column(Integer, default=5, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_from: Mapped[str] = mapped_column(String(30), default="manual", nullable=False)

    __table_args__ = (
        Index("ix_category_rules_household_priority", "household_id", "priority"),
    )

    def __repr__(self) -> str:
        return (
            f"<CategoryRule(id={self.id}, type={self.type}, "
            f"pattern={self.pattern}, priority={self.priority})>"
        )
