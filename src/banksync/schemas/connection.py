"""Schemas for bank connection registration."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from banksync.scraper.types import BankProvider


class ConnectionCreateRequest(BaseModel):
    """Register a connection. Credentials are encrypted before storage."""

    provider: BankProvider
    display_name: str = Field(min_length=1, max_length=100)
    credentials: dict[str, Any] = Field(description="Provider-specific login fields")
    long_term_token: str | None = Field(None, description="Saved 2FA token, if any")


class ConnectionResponse(BaseModel):
    """Connection metadata; never includes credentials."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    provider: str
    display_name: str
    is_active: bool
    last_sync_at: datetime | None
    last_sync_status: str | None


class SyncJobResponse(BaseModel):
    """One entry of a connection's sync history."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    status: str
    started_at: datetime | None
    completed_at: datetime | None
    transactions_found: int
    transactions_new: int
    error_message: str | None
