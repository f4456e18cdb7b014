"""
Async Database Manager for the todo service
- One process-wide engine and connection pool
- Automatic database creation if missing (PostgreSQL)
- Table initialization from the registered models
- One session block per transaction
"""
import logging
from importlib import import_module
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional
from sqlalchemy import event, text
import sqlalchemy
from sqlalchemy.engine.url import make_url
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
    AsyncEngine
)
import asyncpg
from todoapp.core.config import settings
from todoapp.models.base import Base

logger = logging.getLogger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class DatabaseSessionManager:
    """Manages the async engine and hands out transactional sessions."""

    def __init__(self, database_url: Optional[str] = None):
        self.database_url = database_url or settings.DATABASE_URL
        self.engine: Optional[AsyncEngine] = None
        self.session_factory: Optional[async_sessionmaker] = None

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    async def init(self):
        """Initialize the connection pool and create tables, creating the database if needed"""
        if self.engine is not None:
            logger.warning("DatabaseSessionManager already initialized, reusing pool")
            return

        try:
            self.engine = self._create_engine(self.database_url)

            try:
                async with self.engine.begin() as conn:
                    await self._setup_database(conn)
            except asyncpg.exceptions.InvalidCatalogNameError:
                if not await self._create_database():
                    raise
                await self._setup_database_after_creation()

            self.session_factory = async_sessionmaker(
                bind=self.engine,
                expire_on_commit=False,
                autoflush=False
            )

        except Exception as e:
            logger.critical(f"❌ Database initialization failed: {e}")
            await self.close()
            raise

    def _create_engine(self, db_url: str) -> AsyncEngine:
        if self.is_sqlite:
            engine = create_async_engine(db_url, echo=settings.DB_ECHO)
            event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
            return engine

        # Postgres: bounded pool shared by every request in the process
        return create_async_engine(
            db_url,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_timeout=settings.DB_POOL_TIMEOUT,
            pool_recycle=settings.DB_POOL_RECYCLE,
            pool_pre_ping=True,
            echo=settings.DB_ECHO,
            connect_args={"prepared_statement_cache_size": 0},
        )

    async def _setup_database(self, conn):
        """Initialize database schema"""
        await conn.execute(text("SELECT 1"))
        for model in settings.DB_MODELS:
            import_module(model)

        logger.info(f"📝 Models registered: {list(Base.metadata.tables.keys())}")
        await conn.run_sync(Base.metadata.create_all)

    async def _setup_database_after_creation(self):
        """Reinitialize after database creation"""
        logger.info("🔄 Setting up newly created database...")
        await self.engine.dispose()
        self.engine = self._create_engine(self.database_url)
        async with self.engine.begin() as conn:
            await self._setup_database(conn)

    async def _create_database(self) -> bool:
        """Create the database if it does not exist"""
        try:
            db_url = make_url(self.database_url)
            db_name = db_url.database

            # Connect to the default database (usually 'postgres')
            default_url = db_url.set(database="postgres")
            engine = create_async_engine(default_url, isolation_level="AUTOCOMMIT")
            async with engine.connect() as conn:
                await conn.execute(text(f'CREATE DATABASE "{db_name}"'))
            await engine.dispose()
            logger.info(f"✅ Database '{db_name}' created successfully.")
            return True
        except (asyncpg.exceptions.PostgresError, sqlalchemy.exc.SQLAlchemyError) as e:
            logger.error(f"❌ Failed to create database: {e}")
            return False

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """One session, one transaction: commit on success, roll back on error"""
        if not self.session_factory:
            raise RuntimeError("DatabaseSessionManager not initialized")
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def close(self):
        """Dispose the engine, waiting for checked-out connections to be returned"""
        if self.engine:
            await self.engine.dispose()
            self.engine = None
            self.session_factory = None


# Initialize session manager
session_manager = DatabaseSessionManager()


async def aget_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency for read-only database sessions
    Usage:
    @router.get("/")
    async def endpoint(db: AsyncSession = Depends(aget_db)):
        ...
    """
    async with session_manager.get_session() as session:
        yield session
