# app/core/db.py - Engine, session factory and the FastAPI session dependency
from sqlalchemy import create_engine, text, event
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool, QueuePool
from typing import Generator, Optional
import logging
import time
import threading
from contextlib import contextmanager

from app.core.config import settings

logger = logging.getLogger(__name__)

SLOW_QUERY_SECONDS = 0.1


class DatabaseManager:
    """
    Lazily builds one engine per process for PostgreSQL or SQLite.

    SQLite runs in WAL mode with foreign keys enforced so cascades behave
    as they do on PostgreSQL.
    """

    def __init__(self, url: Optional[str] = None):
        self.url = url or settings.DATABASE_URL
        self.engine: Optional[Engine] = None
        self.SessionLocal: Optional[sessionmaker] = None
        self._initialized = False
        self._lock = threading.Lock()

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    def initialize(self):
        if self._initialized:
            return

        with self._lock:
            if self._initialized:
                return
            try:
                self.engine = self._create_engine()
                self.SessionLocal = sessionmaker(
                    bind=self.engine,
                    autoflush=False,
                    expire_on_commit=False,
                )
                self._install_listeners()
                self._initialized = True
                logger.info(f"Database engine ready ({'sqlite' if self.is_sqlite else 'postgresql'})")
            except Exception as e:
                logger.error(f"Failed to initialize database: {e}")
                raise

    def _create_engine(self) -> Engine:
        if self.is_sqlite:
            kwargs = {"connect_args": {"check_same_thread": False, "timeout": 30}}
            if ":memory:" in self.url or self.url == "sqlite://":
                kwargs["poolclass"] = StaticPool
        else:
            # connect_timeout keeps the liveness probe inside its own timeout
            kwargs = {
                "poolclass": QueuePool,
                "pool_size": settings.DATABASE_POOL_SIZE,
                "max_overflow": settings.DATABASE_MAX_OVERFLOW,
                "pool_timeout": settings.DATABASE_POOL_TIMEOUT,
                "pool_recycle": settings.DATABASE_POOL_RECYCLE,
                "pool_pre_ping": True,
                "connect_args": {
                    "connect_timeout": max(1, int(settings.SYSTEM_CHECK_TIMEOUT_SECONDS)),
                    "application_name": f"accounting_api_{settings.ENV}",
                    "options": "-c timezone=UTC",
                },
            }
        return create_engine(self.url, echo=settings.DATABASE_ECHO, **kwargs)

    def _install_listeners(self):
        @event.listens_for(self.engine, "connect")
        def sqlite_pragmas(dbapi_connection, connection_record):
            if self.is_sqlite:
                cursor = dbapi_connection.cursor()
                cursor.execute("PRAGMA journal_mode=WAL")
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.execute("PRAGMA synchronous=NORMAL")
                cursor.close()

        @event.listens_for(self.engine, "before_cursor_execute")
        def start_timer(conn, cursor, statement, parameters, context, executemany):
            if settings.is_development:
                context._query_start_time = time.time()

        @event.listens_for(self.engine, "after_cursor_execute")
        def log_slow_query(conn, cursor, statement, parameters, context, executemany):
            started = getattr(context, "_query_start_time", None)
            if started is not None and time.time() - started > SLOW_QUERY_SECONDS:
                logger.warning(f"Slow query ({time.time() - started:.3f}s): {statement[:100]}...")

    def get_session(self) -> Generator[Session, None, None]:
        if not self._initialized:
            self.initialize()

        session = self.SessionLocal()
        try:
            yield session
        except Exception as e:
            session.rollback()
            logger.debug(f"Session rolled back: {e}")
            raise
        finally:
            session.close()

    @contextmanager
    def transaction(self):
        """Session that commits on success and rolls back on any error; used by scripts"""
        if not self._initialized:
            self.initialize()

        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception as e:
            session.rollback()
            logger.error(f"Transaction error: {e}")
            raise
        finally:
            session.close()

    def ping(self) -> None:
        """Run SELECT 1, raising if the database cannot be reached"""
        if not self._initialized:
            self.initialize()
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()

    def health_check(self) -> dict:
        try:
            started = time.time()
            self.ping()
            return {"status": "healthy", "response_time_ms": round((time.time() - started) * 1000, 2)}
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return {"status": "unhealthy", "error": str(e)}

    def close(self):
        """Dispose of pooled connections; the next use reconnects"""
        if self.engine:
            self.engine.dispose()
            logger.info("Database connections closed")


db_manager = DatabaseManager()


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency yielding one session per request"""
    yield from db_manager.get_session()


def get_engine() -> Engine:
    if not db_manager._initialized:
        db_manager.initialize()
    return db_manager.engine


def get_session_maker() -> sessionmaker:
    if not db_manager._initialized:
        db_manager.initialize()
    return db_manager.SessionLocal


__all__ = [
    "DatabaseManager",
    "get_db",
    "get_engine",
    "get_session_maker",
    "db_manager",
]
