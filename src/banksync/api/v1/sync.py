"""Sync trigger endpoint."""

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from banksync.api.deps import HouseholdId, get_sync_orchestrator
from banksync.schemas.sync import SyncCycleResult, SyncRequest
from banksync.services.sync import SyncOrchestrator

router = APIRouter(prefix="/sync", tags=["sync"])


@router.post(
    "",
    response_model=SyncCycleResult,
    summary="Run a sync cycle",
    description="""
    Sync one connection (when `connection_id` is given) or every active
    connection of the household.

    - **200**: every connection synced
    - **207**: some connections failed; see `errors` and `details`
    - **409** (`SYNC_001`): the requested connection is already syncing
    - **500** (`CFG_001`): the server has no credentials secret configured
    """,
    responses={207: {"model": SyncCycleResult, "description": "Partial failure"}},
)
async def trigger_sync(
    household_id: HouseholdId,
    request: SyncRequest | None = None,
    orchestrator: SyncOrchestrator = Depends(get_sync_orchestrator),
):
    connection_id = request.connection_id if request else None
    result = await orchestrator.sync_household(household_id, connection_id)

    status_code = status.HTTP_207_MULTI_STATUS if result.errors else status.HTTP_200_OK
    return JSONResponse(status_code=status_code, content=result.model_dump(mode="json"))


@router.post("/stale", response_model=SyncCycleResult, summary="Sync stale connections")
async def trigger_stale_sync(
    household_id: HouseholdId,
    orchestrator: SyncOrchestrator = Depends(get_sync_orchestrator),
):
    """Sync connections that were never synced or not synced recently."""
    result = await orchestrator.sync_stale_connections(household_id)
    status_code = status.HTTP_207_MULTI_STATUS if result.errors else status.HTTP_200_OK
    return JSONResponse(status_code=status_code, content=result.model_dump(mode="json"))
