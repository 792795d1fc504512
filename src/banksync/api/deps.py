"""FastAPI dependency injection for household scope, database and services."""

from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from banksync.db.session import AsyncSessionLocal, get_db
from banksync.services.budget import BudgetService
from banksync.services.categories import CategoryService
from banksync.services.categorization import CategorizationService
from banksync.services.connections import ConnectionService
from banksync.services.rules import RuleService
from banksync.services.sync import SyncOrchestrator


async def get_household_id(
    x_household_id: Annotated[UUID, Header(description="Household scope key")],
) -> UUID:
    """
    Household the request is scoped to.

    Authentication is handled in front of this service; the caller's
    household arrives in the ``X-Household-ID`` header.
    """
    return x_household_id


HouseholdId = Annotated[UUID, Depends(get_household_id)]


async def get_rule_service(db: AsyncSession = Depends(get_db)) -> RuleService:
    return RuleService(db)


async def get_budget_service(request: Request, db: AsyncSession = Depends(get_db)) -> BudgetService:
    return BudgetService(db, metrics=request.app.state.metrics)


async def get_categorization_service(
    db: AsyncSession = Depends(get_db),
) -> CategorizationService:
    return CategorizationService(db)


async def get_category_service(db: AsyncSession = Depends(get_db)) -> CategoryService:
    return CategoryService(db)


async def get_connection_service(db: AsyncSession = Depends(get_db)) -> ConnectionService:
    return ConnectionService(db)


async def get_sync_orchestrator(request: Request) -> SyncOrchestrator:
    """
    Build an orchestrator sharing the application's scrapers, metrics sink
    and per-connection locks.

    The orchestrator opens its own sessions (one per connection), so it
    receives the session factory rather than a request-scoped session.
    """
    state = request.app.state
    return SyncOrchestrator(
        session_factory=getattr(state, "session_factory", AsyncSessionLocal),
        scrapers=state.scrapers,
        metrics=state.metrics,
        locks=state.sync_locks,
    )
