import os
import sys
import tempfile
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

sys.path.append(str(Path(__file__).parents[1] / "src"))

_TEST_DB_DIR = tempfile.mkdtemp(prefix="banksync-tests-")
TEST_DATABASE_URL = os.getenv(
    "TEST_DATABASE_URL",
    f"sqlite+aiosqlite:///{Path(_TEST_DB_DIR) / 'test.db'}",
)
TEST_SECRET = "test-master-secret"

# Settings are read on import; configure the environment first.
os.environ.setdefault("DATABASE_URL", TEST_DATABASE_URL)
os.environ.setdefault("CREDENTIALS_SECRET", TEST_SECRET)
os.environ.setdefault("APP_ENV", "test")

from banksync.core.vault import CredentialVault  # noqa: E402
from banksync.db.session import get_db  # noqa: E402
from banksync.main import create_app  # noqa: E402
from banksync.models import (  # noqa: E402
    Account,
    BankConnection,
    Category,
    Household,
)
from banksync.models.base import BaseModel  # noqa: E402
from banksync.monitoring.metrics import InMemoryMetricsSink  # noqa: E402
from banksync.scraper.registry import ScraperRegistry  # noqa: E402

test_engine = create_async_engine(TEST_DATABASE_URL, echo=False)
TestSessionLocal = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture(scope="function")
async def setup_database():
    """Create tables for tests that need the database, and drop them after.

    Not autouse so pure unit tests run without touching the database.
    """
    async with test_engine.begin() as conn:
        await conn.run_sync(BaseModel.metadata.create_all)

    yield

    async with test_engine.begin() as conn:
        await conn.run_sync(BaseModel.metadata.drop_all)

    # aiosqlite connections are bound to the loop that opened them
    await test_engine.dispose()


@pytest.fixture
async def db_session(setup_database):
    """Provide test database session with fresh connection per test."""
    async with TestSessionLocal() as session:
        yield session
        await session.rollback()


@pytest.fixture
def session_factory(setup_database):
    return TestSessionLocal


@pytest.fixture
def vault() -> CredentialVault:
    return CredentialVault(TEST_SECRET)


@pytest.fixture
def metrics() -> InMemoryMetricsSink:
    return InMemoryMetricsSink()


@pytest.fixture
async def household(db_session: AsyncSession) -> Household:
    household = Household(name="Cohen family")
    db_session.add(household)
    await db_session.commit()
    await db_session.refresh(household)
    return household


@pytest.fixture
async def other_household(db_session: AsyncSession) -> Household:
    household = Household(name="Levi family")
    db_session.add(household)
    await db_session.commit()
    await db_session.refresh(household)
    return household


@pytest.fixture
def household_headers(household: Household) -> dict:
    return {"X-Household-ID": str(household.id)}


@pytest.fixture
async def groceries(db_session: AsyncSession, household: Household) -> Category:
    category = Category(household_id=household.id, name="Groceries", type="expense")
    db_session.add(category)
    await db_session.commit()
    await db_session.refresh(category)
    return category


@pytest.fixture
async def coffee(db_session: AsyncSession, household: Household) -> Category:
    category = Category(household_id=household.id, name="Coffee", type="expense")
    db_session.add(category)
    await db_session.commit()
    await db_session.refresh(category)
    return category


@pytest.fixture
async def account(db_session: AsyncSession, household: Household) -> Account:
    account = Account(
        household_id=household.id,
        name="Main checking",
        type="checking",
        external_account_id="12-345-678",
    )
    db_session.add(account)
    await db_session.commit()
    await db_session.refresh(account)
    return account


@pytest.fixture
def make_connection(db_session: AsyncSession, vault: CredentialVault):
    """Factory creating a stored connection with encrypted Isracard credentials."""

    async def _make(household_id, display_name="Isracard", provider="isracard", **fields):
        creds = fields.pop(
            "credentials",
            {"id": "123456789", "card6_digits": "123456", "password": "s3cret"},
        )
        connection = BankConnection(
            household_id=household_id,
            provider=provider,
            display_name=display_name,
            encrypted_creds=fields.pop("encrypted_creds", None) or vault.encrypt(creds),
            account_mappings={},
            **fields,
        )
        db_session.add(connection)
        await db_session.commit()
        await db_session.refresh(connection)
        return connection

    return _make


@pytest.fixture
def scrapers() -> ScraperRegistry:
    return ScraperRegistry()


@pytest.fixture
def app(scrapers: ScraperRegistry, metrics: InMemoryMetricsSink):
    app = create_app(scrapers=scrapers, metrics=metrics)
    app.state.session_factory = TestSessionLocal
    return app


@pytest.fixture
async def client(db_session: AsyncSession, app):
    """Provide test client with database override."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
