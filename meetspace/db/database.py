"""
Database connection and session management for Meetspace.
"""

import logging
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool, StaticPool

from ..core.config import config
from ..models.base import Base
# Imported for table registration on Base.metadata
from ..models import event, order, payment, subscription  # noqa: F401

logger = logging.getLogger(__name__)


class DatabaseManager:
    """
    Database manager for Meetspace.
    Owns the engine and session factory shared by requests and workers.
    """

    def __init__(self):
        self.engine = None
        self.session_factory = None
        self._initialized = False

    async def initialize(self, database_url: Optional[str] = None):
        """Initialize the engine from configuration."""
        if self._initialized:
            return

        try:
            db_url = database_url or await config.get_database_url()
            self.initialize_sync(db_url, await config.get_database_config())
        except Exception as e:
            logger.error(f"Could not configure the Meetspace database: {e}")
            raise

    def initialize_sync(self, database_url: str, pool_config: Optional[dict] = None):
        """Initialize without the event loop (Celery workers, scripts)."""
        if self._initialized:
            return

        if database_url.startswith("sqlite"):
            self.engine = create_engine(
                database_url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
                echo=False
            )
        else:
            pool_config = pool_config or {}
            self.engine = create_engine(
                database_url,
                poolclass=QueuePool,
                pool_size=pool_config.get("pool_size", 10),
                max_overflow=pool_config.get("max_overflow", 20),
                pool_timeout=pool_config.get("pool_timeout", 30),
                pool_recycle=pool_config.get("pool_recycle", 1800),
                pool_pre_ping=True,
                echo=False
            )

        self.session_factory = sessionmaker(
            bind=self.engine,
            class_=Session,
            autocommit=False,
            autoflush=False,
            expire_on_commit=False
        )

        self._initialized = True
        logger.info(f"Database engine ready ({self.engine.dialect.name})")

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        """
        Unit of work: commit when the block succeeds, roll back when it raises.
        """
        if not self._initialized:
            raise RuntimeError("Database is not configured; call initialize() first")

        session = self.session_factory()
        try:
            yield session
            session.commit()
        except Exception as e:
            session.rollback()
            logger.error(f"Rolled back database session: {e}")
            raise
        finally:
            session.close()

    def create_tables(self):
        """Create missing tables for all Meetspace models."""
        if not self._initialized:
            raise RuntimeError("Database is not configured; call initialize() first")

        Base.metadata.create_all(bind=self.engine)
        logger.info("Database tables ensured")

    def health_check(self) -> bool:
        if not self._initialized:
            return False

        try:
            with self.engine.connect() as connection:
                connection.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"Database ping failed: {e}")
            return False

    def close(self):
        """Dispose of pooled connections."""
        if self.engine:
            self.engine.dispose()
        logger.info("Database connections closed")


# Global database manager instance
db_manager = DatabaseManager()


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency for getting a database session."""
    with db_manager.get_session() as session:
        yield session
