"""Household model: the scope boundary for all financial data."""
from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from banksync.models.base import BaseModel


class Household(BaseModel):
    """A group of users sharing accounts, categories and budgets."""

    __tablename__ = "households"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    base_currency: Mapped[str] = mapped_column(String(3), default="ILS", nullable=False)

    def __repr__(self) -> str:
        return f"<Household(id={self.id}, name={self.name})>"
