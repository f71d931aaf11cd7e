import logging

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from pipeline.config import DATABASE_SSL, DATABASE_URL

logger = logging.getLogger(__name__)

connect_args = {"ssl": "require"} if DATABASE_SSL else {}

engine = create_async_engine(
    DATABASE_URL,
    echo=False,
    pool_pre_ping=True,
    connect_args=connect_args,
)
AsyncSessionLocal = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


class Base(DeclarativeBase):
    pass


async def init_db() -> None:
    """Create the key-value table if it does not exist yet."""
    # Register the mapped tables before create_all
    from backend.models import StoreEntry  # noqa: F401

    logger.info("Creating tables on %s...", DATABASE_URL.split("@")[-1])
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
