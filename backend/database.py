"""Database setup, connection provider and session management."""

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import Engine, create_engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from config import ConfigWatcher, Settings, settings
from services.exceptions import TransactionError

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


DIALECT_MYSQL = "mysql"
DIALECT_POSTGRES = "postgresql"
DIALECT_SQLITE = "sqlite"

# Fragments of driver messages that identify a primary-key violation on the
# preferences table, per backend.
PREFERENCES_KEY_MARKERS = (
    "preferences_pkey",  # PostgreSQL constraint name
    "UNIQUE constraint failed: preferences.",  # SQLite
    "for key 'PRIMARY'",  # MySQL < 8.0.19
    "for key 'preferences.PRIMARY'",  # MySQL >= 8.0.19
)


def is_unique_constraint_error(exc: Exception, markers=PREFERENCES_KEY_MARKERS) -> bool:
    """Return True if ``exc`` is an IntegrityError raised by one of ``markers``."""
    if not isinstance(exc, IntegrityError):
        return False
    message = str(exc.orig) if exc.orig is not None else str(exc)
    return any(marker in message for marker in markers)


def _connect_args(database_url: str, timeout: int) -> dict:
    """Driver-level connect arguments for the given URL."""
    if database_url.startswith("sqlite"):
        return {"check_same_thread": False, "timeout": timeout}
    if database_url.startswith(("mysql", "postgresql")):
        return {"connect_timeout": timeout}
    return {}


def build_engine(database_url: str, timeout: int = 30) -> Engine:
    """Create an engine for ``database_url`` with the configured timeout."""
    return create_engine(
        database_url,
        connect_args=_connect_args(database_url, timeout),
        pool_pre_ping=not database_url.startswith("sqlite"),
        echo=False,
    )


class ConnectionProvider:
    """Supplies primary (writable) and replica (read) sessions.

    The replica defaults to the primary when no replica engine is given.
    Sessions are never shared: every call returns a new Session that the
    caller owns and must close (use it as a context manager).
    """

    def __init__(self, primary: Engine, replica: Engine | None = None):
        self._primary = primary
        self._replica = replica or primary
        self._primary_factory = sessionmaker(autocommit=False, autoflush=False, bind=self._primary)
        self._replica_factory = sessionmaker(autocommit=False, autoflush=False, bind=self._replica)

    @classmethod
    def from_settings(cls, config: Settings | None = None) -> "ConnectionProvider":
        config = config or settings
        primary = build_engine(config.DATABASE_URL, config.DATABASE_TIMEOUT_SECONDS)
        replica = None
        if config.DATABASE_REPLICA_URL:
            replica = build_engine(config.DATABASE_REPLICA_URL, config.DATABASE_TIMEOUT_SECONDS)
        logger.info(
            "Database engines created (dialect=%s, replica=%s)",
            primary.dialect.name,
            bool(replica),
        )
        return cls(primary, replica)

    @property
    def dialect(self) -> str:
        """Name of the backend dialect, e.g. ``mysql`` or ``postgresql``."""
        return self._primary.dialect.name

    def primary_session(self) -> Session:
        return self._primary_factory()

    def replica_session(self) -> Session:
        return self._replica_factory()

    def watch(self, watcher: ConfigWatcher) -> str:
        """Dispose pooled connections whenever a database URL changes."""
        return watcher.add_listener(self._on_config_change)

    def _on_config_change(self, old: Settings, new: Settings) -> None:
        if (
            old.DATABASE_URL == new.DATABASE_URL
            and old.DATABASE_REPLICA_URL == new.DATABASE_REPLICA_URL
        ):
            return
        logger.warning(
            "Database URL changed; disposing pooled connections. "
            "Rebuild the ConnectionProvider to connect to the new database."
        )
        self.dispose()

    def dispose(self) -> None:
        self._primary.dispose()
        if self._replica is not self._primary:
            self._replica.dispose()


@contextmanager
def session_scope(provider: ConnectionProvider) -> Iterator[Session]:
    """Provide a primary session that commits on success and rolls back on error.

    Transaction conventions:
    - Query-surface and retention deletes use this scope
    - ``PreferenceStore.save_all()`` manages its own transaction so that
      begin failures are reported too
    - A failed commit or rollback raises ``TransactionError``; errors from
      the body are re-raised unchanged after the rollback
    """
    db = provider.primary_session()
    try:
        try:
            yield db
        except Exception as original:
            rollback_or_raise(db, original)
            raise
        try:
            db.commit()
        except SQLAlchemyError as exc:
            raise TransactionError("commit_transaction") from exc
    finally:
        db.close()


def rollback_or_raise(db: Session, original: BaseException) -> None:
    """Roll back after ``original``; a failed rollback raises TransactionError."""
    try:
        db.rollback()
    except SQLAlchemyError as exc:
        raise TransactionError("rollback_transaction", original=original) from exc
