"""
Database connection and session management.

SQLite notes:
-------------
1. WAL Mode (Write-Ahead Logging):
   - Lets the HTTP layer read while the scheduler appends to the notification log
   - Checkpointed after the daily notification log cleanup

2. NullPool:
   - Creates new connection for each operation (required for async SQLite)

3. Busy Timeout (5 seconds):
   - Prevents "database is locked" errors when a scheduler run and an API
     request write at the same time
"""
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool
from sqlalchemy import event, text, select
from mechmate.config import settings
from mechmate.constants import SQLITE_BUSY_TIMEOUT_MS

# Create async engine
engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    poolclass=NullPool,
    future=True
)

# Create session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
    autocommit=False
)

# Base class for models
Base = declarative_base()


def set_sqlite_pragma(dbapi_conn, connection_record):
    """
    Enable SQLite-specific optimizations when using SQLite.
    - PRAGMA foreign_keys=ON: Enable foreign key constraints (disabled by default in SQLite)
    - PRAGMA journal_mode=WAL: Use Write-Ahead Logging for better concurrency
    - PRAGMA busy_timeout=5000: Wait up to 5s for locks to release
    - PRAGMA synchronous=NORMAL: Balance between safety and performance for WAL mode
    """
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute(f"PRAGMA busy_timeout={SQLITE_BUSY_TIMEOUT_MS}")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.close()


# aiosqlite wraps the sqlite3 connection; bind to this engine only
if engine.dialect.name == "sqlite":
    event.listen(engine.sync_engine, "connect", set_sqlite_pragma)


async def init_db():
    """Initialize database tables and seed the notification settings row."""
    # Import models so they register with Base.metadata
    from mechmate import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    await seed_notification_settings()


async def seed_notification_settings():
    """Create the single global notification settings row if it is missing."""
    from loguru import logger
    from mechmate.models import NotificationSettings

    async with AsyncSessionLocal() as session:
        existing = await session.execute(
            select(NotificationSettings).where(NotificationSettings.id == 1)
        )
        if existing.scalar_one_or_none() is None:
            session.add(NotificationSettings(id=1))
            await session.commit()
            logger.info("Created default notification settings")


async def checkpoint_wal():
    """
    Run a WAL checkpoint to consolidate the write-ahead log.
    Call this periodically (e.g., during retention cleanup) to prevent WAL file growth.
    """
    from loguru import logger
    try:
        async with engine.begin() as conn:
            await conn.execute(text("PRAGMA wal_checkpoint(TRUNCATE)"))
            logger.debug("WAL checkpoint completed")
    except Exception as e:
        logger.warning(f"WAL checkpoint failed: {e}")


async def close_db():
    """Close database connections."""
    # Run final checkpoint before closing
    await checkpoint_wal()
    await engine.dispose()
