"""Async SQLAlchemy engine and session handling for the tracking index."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from ..config.models import TrackingIndexConfig
from ..models.base import Base

logger = logging.getLogger(__name__)


class DatabaseConnectionManager:
    """Owns the engine and hands out sessions.

    The engine is created lazily on first use so that constructing an
    ``AppContext`` never touches the filesystem or network.
    """

    def __init__(self, config: TrackingIndexConfig | None = None):
        self.config = config or TrackingIndexConfig()
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    @property
    def engine(self) -> AsyncEngine:
        """Get or create async database engine."""
        if self._engine is None:
            self._engine = self._create_engine()
        return self._engine

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        """Get or create async session factory."""
        if self._session_factory is None:
            self._session_factory = async_sessionmaker(
                bind=self.engine,
                class_=AsyncSession,
                expire_on_commit=False,  # Keep objects usable after commit
            )
        return self._session_factory

    def _create_engine(self) -> AsyncEngine:
        url = make_url(self.config.url)
        if url.get_backend_name() == "sqlite" and url.database not in (
            None,
            "",
            ":memory:",
        ):
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)

        engine = create_async_engine(url, echo=self.config.echo)
        logger.info(f"Created tracking index engine for {url.get_backend_name()}")
        return engine

    async def create_all(self) -> None:
        """Create the index tables if they do not exist yet."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get database session with automatic commit and cleanup.

        Usage:
            async with connection_manager.get_session() as session:
                result = await session.execute(query)
        """
        session = self.session_factory()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def health_check(self) -> bool:
        """Return True if a trivial query succeeds."""
        try:
            async with self.get_session() as session:
                result = await session.execute(text("SELECT 1"))
                return result.scalar() == 1
        except SQLAlchemyError as e:
            logger.error(f"Tracking index health check failed: {e}")
            return False

    async def close(self) -> None:
        """Dispose of the engine and its connections."""
        if self._engine:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None
            logger.info("Tracking index engine disposed")
