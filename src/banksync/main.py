from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import IntegrityError

from banksync.api.middleware.error_handler import (
    handle_banksync_error,
    handle_generic_error,
    handle_integrity_error,
    handle_validation_error,
)
from banksync.api.middleware.logging import RequestLoggingMiddleware
from banksync.api.v1 import router as v1_router
from banksync.api.v1.health import router as health_router
from banksync.config import settings
from banksync.core.exceptions import BankSyncError
from banksync.db.session import init_db
from banksync.monitoring.metrics import InMemoryMetricsSink, MetricsSink
from banksync.scraper.registry import ScraperRegistry
from banksync.services.sync import ConnectionLockRegistry
from banksync.utils.logger import setup_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup. Other environments are migrated with `alembic upgrade head`.
    if settings.app_env.lower() == "development":
        await init_db()
    yield
    # Shutdown


def create_app(
    scrapers: ScraperRegistry | None = None,
    metrics: MetricsSink | None = None,
) -> FastAPI:
    """Build the API application.

    Args:
        scrapers: Registered bank scrapers (none by default)
        metrics: Metrics sink shared by sync and budget services
    """
    setup_logging(settings.log_level, json_format=settings.log_json)

    app = FastAPI(
        title="Bank Sync API",
        description="Household bank transaction sync, categorization and budgets",
        version="0.1.0",
        debug=settings.debug,
        lifespan=lifespan,
    )

    app.state.scrapers = scrapers or ScraperRegistry()
    app.state.metrics = metrics or InMemoryMetricsSink()
    app.state.sync_locks = ConnectionLockRegistry()

    # Add request logging middleware
    app.add_middleware(RequestLoggingMiddleware)

    # Register exception handlers (order matters - most specific first)
    app.add_exception_handler(BankSyncError, handle_banksync_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(IntegrityError, handle_integrity_error)
    app.add_exception_handler(Exception, handle_generic_error)

    # Register routers
    app.include_router(health_router)
    app.include_router(v1_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("banksync.main:app", host=settings.host, port=settings.port)
