"""Pydantic schemas for sync cycle results."""

from uuid import UUID

from pydantic import BaseModel, Field


class SyncRequest(BaseModel):
    """Trigger a sync for one connection, or all active ones when omitted."""

    connection_id: UUID | None = Field(None, description="Connection to sync (default: all)")


class ConnectionSyncDetail(BaseModel):
    """Outcome of syncing a single connection."""

    connection_id: UUID
    display_name: str
    success: bool
    transactions_found: int = 0
    transactions_new: int = 0
    needs_review: int = Field(0, description="New rows that look like near-duplicates")
    error: str | None = None


class SyncCycleResult(BaseModel):
    """Aggregate result of one sync cycle."""

    success: bool
    message: str
    synced_connections: int = 0
    total_connections: int = 0
    total_transactions_found: int = 0
    total_transactions_new: int = 0
    errors: list[str] = Field(default_factory=list)
    details: list[ConnectionSyncDetail] = Field(default_factory=list)
    duration_ms: int = 0

    @property
    def is_partial(self) -> bool:
        """Some, but not necessarily all, connections failed."""
        return bool(self.errors)
