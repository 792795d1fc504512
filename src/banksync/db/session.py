from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from banksync.config import settings
from banksync.models.base import Base

# Do not log SQL statement parameters by default (they can contain account
# numbers and ciphertext).
#
# Even if someone accidentally sets DB_ECHO=true in non-dev, keep it off to avoid
# logging queries/params in shared environments.
async_engine = create_async_engine(
    settings.database_url,
    echo=(settings.db_echo if settings.app_env.lower() == "development" else False),
    future=True,
)

AsyncSessionLocal = async_sessionmaker(
    async_engine, class_=AsyncSession, expire_on_commit=False
)


async def get_db() -> AsyncSession:
    async with AsyncSessionLocal() as session:
        yield session


async def init_db() -> None:
    """Create all tables that do not exist yet."""
    import banksync.models  # noqa: F401  (registers every model on Base.metadata)

    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
