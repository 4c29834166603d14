from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool
import structlog

from donation_checkout.core.config import get_settings
from donation_checkout.models import Base

settings = get_settings()
logger = structlog.get_logger(__name__)

# Create engine - asyncpg driver for PostgreSQL
engine = create_async_engine(
    settings.database_url,
    echo=False,
    poolclass=NullPool,
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def init_db():
    """Initialize database tables"""
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created successfully")
    except Exception as e:
        logger.error("Failed to create database tables", error=str(e))
        raise


async def ping_db() -> None:
    """Raise if the database does not answer a trivial query"""
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))


async def get_db():
    """Dependency to get database session"""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception as e:
            await session.rollback()
            logger.error("Database session error", error=str(e))
            raise


async def close_db():
    """Close database connection"""
    await engine.dispose()
    logger.info("Database connection closed")
