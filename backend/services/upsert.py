"""Insert-or-update strategies for preference rows.

The strategy is picked once per connection provider from its dialect:

- MySQL and SQLite resolve key conflicts atomically in one statement.
- PostgreSQL counts the key inside the open transaction and then updates
  or inserts. This keeps servers without ``ON CONFLICT`` working; a
  concurrent insert of the same key is rejected by the primary key and
  surfaces as :class:`ConflictError`.
"""

import logging

from sqlalchemy import and_, func, insert, select, update
from sqlalchemy.dialects import mysql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from database import DIALECT_MYSQL, DIALECT_POSTGRES, DIALECT_SQLITE, is_unique_constraint_error
from models.preference import Preference
from services.exceptions import ConflictError, StorageError, UnsupportedBackendError

logger = logging.getLogger(__name__)


def _key_filter(preference: Preference):
    return and_(
        Preference.user_id == preference.user_id,
        Preference.category == preference.category,
        Preference.name == preference.name,
    )


def _key_context(preference: Preference) -> dict:
    return {
        "user_id": preference.user_id,
        "category": preference.category,
        "name": preference.name,
    }


class UpsertStrategy:
    """Writes one preference inside a transaction the caller already opened."""

    def upsert(self, db: Session, preference: Preference) -> None:
        raise NotImplementedError


class NativeUpsert(UpsertStrategy):
    """Single-statement upsert for dialects with atomic conflict resolution."""

    def __init__(self, dialect: str):
        if dialect not in (DIALECT_MYSQL, DIALECT_SQLITE):
            raise UnsupportedBackendError(dialect, operation="upsert")
        self.dialect = dialect

    def statement(self, preference: Preference):
        """Build the dialect's insert-or-replace-value statement."""
        row = preference.to_row()
        if self.dialect == DIALECT_MYSQL:
            stmt = mysql.insert(Preference).values(**row)
            return stmt.on_duplicate_key_update(
                value=stmt.inserted.value,
                update_at=stmt.inserted.update_at,
            )
        stmt = sqlite.insert(Preference).values(**row)
        return stmt.on_conflict_do_update(
            index_elements=[Preference.user_id, Preference.category, Preference.name],
            set_={"value": stmt.excluded.value, "update_at": stmt.excluded.update_at},
        )

    def upsert(self, db: Session, preference: Preference) -> None:
        try:
            db.execute(self.statement(preference))
        except SQLAlchemyError as exc:
            raise StorageError("save Preference", **_key_context(preference)) from exc


class EmulatedUpsert(UpsertStrategy):
    """Count-then-branch upsert for dialects without ``ON CONFLICT``."""

    def count(self, db: Session, preference: Preference) -> int:
        try:
            return db.scalar(
                select(func.count()).select_from(Preference).where(_key_filter(preference))
            )
        except SQLAlchemyError as exc:
            raise StorageError("count Preferences", **_key_context(preference)) from exc

    def upsert(self, db: Session, preference: Preference) -> None:
        if self.count(db, preference) == 1:
            self.update(db, preference)
        else:
            self.insert(db, preference)

    def insert(self, db: Session, preference: Preference) -> None:
        try:
            db.execute(insert(Preference).values(**preference.to_row()))
        except SQLAlchemyError as exc:
            if is_unique_constraint_error(exc):
                raise ConflictError(preference.key) from exc
            raise StorageError("save Preference", **_key_context(preference)) from exc

    def update(self, db: Session, preference: Preference) -> None:
        try:
            db.execute(
                update(Preference)
                .where(_key_filter(preference))
                .values(value=preference.value, update_at=preference.update_at),
                execution_options={"synchronize_session": False},
            )
        except SQLAlchemyError as exc:
            raise StorageError("update Preference", **_key_context(preference)) from exc


def get_upsert_strategy(dialect: str) -> UpsertStrategy:
    """Return the upsert strategy for ``dialect``.

    Raises:
        UnsupportedBackendError: for any dialect other than MySQL,
            PostgreSQL or SQLite.
    """
    if dialect in (DIALECT_MYSQL, DIALECT_SQLITE):
        strategy = NativeUpsert(dialect)
    elif dialect == DIALECT_POSTGRES:
        strategy = EmulatedUpsert()
    else:
        raise UnsupportedBackendError(dialect, operation="upsert")
    logger.debug("Using %s for dialect %s", type(strategy).__name__, dialect)
    return strategy
