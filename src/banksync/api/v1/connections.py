"""Bank connection endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from banksync.api.deps import HouseholdId, get_connection_service
from banksync.schemas.connection import (
    ConnectionCreateRequest,
    ConnectionResponse,
    SyncJobResponse,
)
from banksync.services.connections import ConnectionService

router = APIRouter(prefix="/connections", tags=["connections"])


@router.post("", response_model=ConnectionResponse, status_code=status.HTTP_201_CREATED)
async def create_connection(
    household_id: HouseholdId,
    request: ConnectionCreateRequest,
    service: ConnectionService = Depends(get_connection_service),
):
    """Register a bank connection; credentials are stored encrypted."""
    return await service.register(household_id, request)


@router.get("", response_model=list[ConnectionResponse])
async def list_connections(
    household_id: HouseholdId,
    service: ConnectionService = Depends(get_connection_service),
):
    return await service.list_connections(household_id)


@router.get("/{connection_id}/jobs", response_model=list[SyncJobResponse])
async def connection_sync_history(
    connection_id: UUID,
    household_id: HouseholdId,
    limit: int = Query(20, ge=1, le=100),
    service: ConnectionService = Depends(get_connection_service),
):
    """Sync attempts of a connection, newest first."""
    return await service.get_sync_history(household_id, connection_id, limit)
