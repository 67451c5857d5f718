"""
Database session configuration.

The :class:`Database` handle owns the engine and session factory. It is created
once at application startup (or by the test suite) and injected into services;
nothing connects at import time.
"""
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional
import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.core.exceptions import PersistenceError
from app.db.base import Base

logger = logging.getLogger(__name__)


def engine_options(
    url: str,
    isolation_level: Optional[str] = None,
    timeout_seconds: Optional[int] = None,
    echo: bool = False,
) -> Dict[str, Any]:
    """Build create_engine keyword arguments for the given backend."""
    options: Dict[str, Any] = {"echo": echo}
    if url.startswith("sqlite"):
        connect_args: Dict[str, Any] = {"check_same_thread": False}
        if timeout_seconds:
            connect_args["timeout"] = timeout_seconds
        options["connect_args"] = connect_args
    else:
        options.update(pool_pre_ping=True, pool_size=10, max_overflow=20)
        if timeout_seconds:
            timeout_ms = timeout_seconds * 1000
            options["pool_timeout"] = timeout_seconds
            options["connect_args"] = {
                "connect_timeout": timeout_seconds,
                "options": f"-c statement_timeout={timeout_ms} -c lock_timeout={timeout_ms}",
            }
    if isolation_level:
        options["isolation_level"] = isolation_level
    return options


class Database:
    """Process-wide store handle with explicit lifecycle."""

    def __init__(
        self,
        url: Optional[str] = None,
        *,
        engine: Optional[Engine] = None,
        isolation_level: Optional[str] = None,
        timeout_seconds: Optional[int] = None,
        echo: bool = False,
    ):
        if engine is None:
            if url is None:
                raise ValueError("Either a database url or an engine is required")
            engine = create_engine(url, **engine_options(url, isolation_level, timeout_seconds, echo))
        self.engine = engine
        # Records stay readable after commit so events can be built from them
        self.SessionLocal = sessionmaker(
            autocommit=False, autoflush=False, expire_on_commit=False, bind=self.engine
        )

    @classmethod
    def from_settings(cls, settings) -> "Database":
        return cls(
            settings.database_url,
            isolation_level=settings.database_isolation_level,
            timeout_seconds=settings.database_timeout_seconds,
            echo=settings.database_echo,
        )

    def session(self) -> Session:
        """Open a plain session; the caller is responsible for closing it."""
        return self.SessionLocal()

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """
        Scoped transaction: commits when the block exits normally, rolls back on
        any exception. Storage failures are re-raised as PersistenceError.
        """
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Transaction rolled back after storage failure: {str(e)}")
            raise PersistenceError(f"Storage operation failed: {e.__class__.__name__}") from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def create_all(self) -> None:
        # Import models so they are registered with the metadata
        import app.db.models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)

    def dispose(self) -> None:
        self.engine.dispose()
