"""SQLAlchemy async engine and session factory.

Actions on the same item from different sessions meet at the database;
on SQLite a writer waits up to ``db_busy_timeout`` for the other to commit
instead of failing with "database is locked".
"""

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from quickroll.infra.config import settings


def make_engine(url: str, echo: bool = False) -> AsyncEngine:
    connect_args = {}
    if make_url(url).get_backend_name() == "sqlite":
        connect_args["timeout"] = settings.db_busy_timeout
    return create_async_engine(url, echo=echo, connect_args=connect_args)


def make_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


engine = make_engine(settings.database_url, echo=settings.app_debug)
async_session_factory = make_session_factory(engine)


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """FastAPI dependency: one session per request, committed when the handler returns."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db(bind: AsyncEngine | None = None) -> None:
    """Create the actor and item tables if they are missing."""
    from quickroll.models.db_models import Base

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
