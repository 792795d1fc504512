"""Bank connection model holding encrypted scraper credentials."""
from datetime import datetime
from uuid import UUID

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from banksync.models.base import BaseModel


class BankConnection(BaseModel):
    """A household's link to one bank provider.

    ``encrypted_creds`` and ``long_term_token`` only ever hold vault
    ciphertext (``iv.ciphertext.tag``).
    """

    __tablename__ = "bank_connections"

    household_id: Mapped[UUID] = mapped_column(
        ForeignKey("households.id", ondelete="CASCADE"), nullable=False, index=True
    )
    provider: Mapped[str] = mapped_column(String(30), nullable=False)
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    encrypted_creds: Mapped[str] = mapped_column(Text, nullable=False)
    long_term_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_sync_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_sync_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    account_mappings: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<BankConnection(id={self.id}, provider={self.provider}, "
            f"display_name={self.display_name})>"
        )
