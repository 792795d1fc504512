"""Account model."""
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from banksync.models.base import BaseModel


class Account(BaseModel):
    """A bank account or card owned by a household."""

    __tablename__ = "accounts"

    household_id: Mapped[UUID] = mapped_column(
        ForeignKey("households.id", ondelete="CASCADE"), nullable=False, index=True
    )
    connection_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("bank_connections.id", ondelete="SET NULL"), nullable=True
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    type: Mapped[str] = mapped_column(String(30), default="checking", nullable=False)
    external_account_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    __table_args__ = (
        Index("ix_accounts_household_external", "household_id", "external_account_id"),
    )

    def __repr__(self) -> str:
        return f"<Account(id={self.id}, name={self.name})>"
