"""
Database engine and session management
"""
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.engine import make_url
from sqlalchemy.pool import StaticPool
from typing import Any, AsyncGenerator

from core.config import settings
from infrastructure.models import Base


def _build_async_url(database_url: str) -> str:
    """Make sure the URL names an async driver."""
    url = make_url(database_url)
    drivername = url.drivername

    if "+" in drivername:
        return database_url

    driver_map = {
        "mysql": "mysql+aiomysql",
        "sqlite": "sqlite+aiosqlite",
    }

    if drivername not in driver_map:
        raise ValueError(f"Unsupported database driver: {drivername}. Use an async driver in DATABASE__URL")

    async_driver = driver_map[drivername]
    return url.set(drivername=async_driver).render_as_string(hide_password=False)


def _engine_options(async_url: str) -> dict[str, Any]:
    url = make_url(async_url)
    if url.get_backend_name() == "sqlite":
        if url.database in (None, "", ":memory:"):
            # one shared connection, otherwise every checkout sees an empty database
            return {"poolclass": StaticPool}
        return {}
    return {"pool_pre_ping": True, "pool_recycle": 3600}


_async_url = _build_async_url(settings.database.url)

engine = create_async_engine(
    _async_url,
    echo=settings.database.echo,
    **_engine_options(_async_url),
)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    expire_on_commit=False,
)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield a session; the caller controls the transaction."""
    async with AsyncSessionLocal() as session:
        yield session


async def create_tables():
    """Create every table declared on the models' metadata."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_tables():
    """
    Drop every table.

    Test environments only.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
