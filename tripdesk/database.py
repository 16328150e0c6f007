from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from .config import settings

# Use the DATABASE_URL from settings
engine = create_async_engine(settings.DATABASE_URL)
SessionLocal = async_sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

Base = declarative_base()


def make_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(bind=bind, autoflush=False, expire_on_commit=False)


def get_session_factory() -> async_sessionmaker:
    """
    Every store call opens its own short-lived session from this factory,
    so independent reads of one request can run side by side.
    """
    return SessionLocal


async def create_tables(bind: AsyncEngine = engine) -> None:
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
