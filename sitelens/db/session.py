# sitelens/db/session.py
# -----------------------------------------------------------------------------
# SQLAlchemy async engine / session factory / declarative base
# - the analysis service opens short-lived sessions from AsyncSessionLocal
# - SQLite by default, any async URL in DATABASE_URL works
# -----------------------------------------------------------------------------
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from sitelens.core.config import settings

engine = create_async_engine(settings.DATABASE_URL, echo=False)
AsyncSessionLocal = async_sessionmaker(engine, expire_on_commit=False)
Base = declarative_base()


async def create_tables(bind: AsyncEngine = engine) -> None:
    """Create every table registered on Base (no-op for existing ones)."""
    from sitelens.db import models  # noqa: F401  (registers tables on Base)

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
