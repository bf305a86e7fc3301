# src/models/database.py
"""Storage handle shared by the loader and the query layer."""
import logging
import os
from enum import Enum

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker

from config.config import cfg
from src.models.models import clear_all, define_schema

logger = logging.getLogger(__name__)


class LoadStatus(str, Enum):
    NOT_LOADED = "not_loaded"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"
    FAILED = "failed"


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """
    Explicitly opened and closed database handle.

    Owns the engine and session factory and records the status of the most
    recent load so readers can tell a finished load from one in progress.
    """

    def __init__(self, db_url: str = None, echo: bool = False):
        self.db_url = db_url or cfg.database_url
        self.echo = echo
        self.load_status = LoadStatus.NOT_LOADED
        self._engine = None
        self._session_factory = None

    def open(self) -> "Database":
        if self._engine is not None:
            return self

        url = make_url(self.db_url)
        if url.get_backend_name() == "sqlite" and url.database not in (None, "", ":memory:"):
            os.makedirs(os.path.dirname(os.path.abspath(url.database)), exist_ok=True)

        self._engine = create_engine(self.db_url, echo=self.echo, future=True)
        if self._engine.dialect.name == "sqlite":
            event.listen(self._engine, "connect", _enable_sqlite_foreign_keys)

        self._session_factory = sessionmaker(bind=self._engine, future=True)
        define_schema(self._engine)
        logger.info(f"Opened database {self._engine.url!r}")
        return self

    def close(self):
        if self._engine is None:
            return
        self._engine.dispose()
        logger.info(f"Closed database {self._engine.url!r}")
        self._engine = None
        self._session_factory = None

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise RuntimeError("Database is not open; call open() first")
        return self._engine

    def session(self) -> Session:
        """Create a new ORM session bound to this database."""
        if self._session_factory is None:
            raise RuntimeError("Database is not open; call open() first")
        return self._session_factory()

    def clear_all(self):
        """Empty all relations and reset the load status."""
        clear_all(self.engine)
        self.load_status = LoadStatus.NOT_LOADED

    def __enter__(self) -> "Database":
        return self.open()

    def __exit__(self, exc_type, exc, tb):
        self.close()
