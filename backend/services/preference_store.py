"""Preference store - persists per-user preferences and prunes retained flags."""

import logging
from datetime import datetime
from functools import cached_property
from typing import Iterable

from sqlalchemy import and_, delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from database import ConnectionProvider, rollback_or_raise, session_scope
from models.preference import (
    FEATURE_TOGGLE_PREFIX,
    PREFERENCE_CATEGORY_ADVANCED_SETTINGS,
    Preference,
)
from models.utils import to_millis
from schemas.preference import validate_preference
from services.exceptions import StorageError, TransactionError
from services.retention import (
    DeleteExecutor,
    RetentionBatchDeleter,
    get_delete_executor,
    unretained_flags_for_policies_query,
    unretained_flags_query,
)
from services.upsert import UpsertStrategy, get_upsert_strategy

logger = logging.getLogger(__name__)

_NO_DELETE_SYNC = {"synchronize_session": False}


class PreferenceStore:
    """Reads and writes the ``preferences`` table through a ConnectionProvider.

    Writes go to the primary and reads to the replica. The upsert strategy
    and delete executor are chosen from the provider's dialect on first
    use; pass them explicitly to override the choice.

    Example:
        store = PreferenceStore(ConnectionProvider.from_settings())
        store.save(Preference(user_id=uid, category="flagged_post", name=post_id, value="true"))
        while store.delete_unretained_flags_for_policies("flagged_post", now, 1000):
            pass
    """

    def __init__(
        self,
        provider: ConnectionProvider,
        upsert_strategy: UpsertStrategy | None = None,
        delete_executor: DeleteExecutor | None = None,
    ):
        self.provider = provider
        if upsert_strategy is not None:
            self.upsert_strategy = upsert_strategy
        if delete_executor is not None:
            self.delete_executor = delete_executor

    @cached_property
    def upsert_strategy(self) -> UpsertStrategy:
        return get_upsert_strategy(self.provider.dialect)

    @cached_property
    def delete_executor(self) -> DeleteExecutor:
        return get_delete_executor(self.provider.dialect)

    # ------------------------------------------------------------------
    # Save
    # ------------------------------------------------------------------

    def save(self, preference: Preference) -> None:
        """Create or update a single preference."""
        self.save_all([preference])

    def save_all(self, preferences: Iterable[Preference]) -> None:
        """Upsert every preference in one transaction, in order.

        The first failing record rolls back the whole batch and its error
        is re-raised. Nothing is durable until the commit succeeds; a
        failed commit raises ``TransactionError("commit_transaction")``.
        """
        preferences = list(preferences)
        strategy = self.upsert_strategy

        with self.provider.primary_session() as db:
            try:
                db.begin()
            except SQLAlchemyError as exc:
                raise TransactionError("begin_transaction") from exc

            try:
                for preference in preferences:
                    self._save(db, strategy, preference)
            except Exception as original:
                rollback_or_raise(db, original)
                raise

            try:
                db.commit()
            except SQLAlchemyError as exc:
                raise TransactionError("commit_transaction") from exc

        logger.info("Saved %d preference(s)", len(preferences))

    @staticmethod
    def _save(db: Session, strategy: UpsertStrategy, preference: Preference) -> None:
        preference.pre_update()
        validate_preference(preference)
        strategy.upsert(db, preference)
        logger.debug(
            "Upserted preference: user_id=%s category=%s name=%s",
            preference.user_id,
            preference.category,
            preference.name,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, user_id: str, category: str, name: str) -> Preference | None:
        """Get a single preference by its key, or None if not found."""
        return self._select_one(
            "find Preference",
            select(Preference).where(
                Preference.user_id == user_id,
                Preference.category == category,
                Preference.name == name,
            ),
            user_id=user_id,
            category=category,
            name=name,
        )

    def get_category(self, user_id: str, category: str) -> list[Preference]:
        """Get all of a user's preferences in one category."""
        return self._select_all(
            "find Preferences",
            select(Preference).where(
                Preference.user_id == user_id,
                Preference.category == category,
            ),
            user_id=user_id,
            category=category,
        )

    def get_all(self, user_id: str) -> list[Preference]:
        """Get every preference belonging to a user."""
        return self._select_all(
            "find Preferences",
            select(Preference).where(Preference.user_id == user_id),
            user_id=user_id,
        )

    def _select_one(self, operation: str, stmt, **context) -> Preference | None:
        try:
            with self.provider.replica_session() as db:
                return db.scalars(stmt).first()
        except SQLAlchemyError as exc:
            raise StorageError(operation, **context) from exc

    def _select_all(self, operation: str, stmt, **context) -> list[Preference]:
        try:
            with self.provider.replica_session() as db:
                return list(db.scalars(stmt).all())
        except SQLAlchemyError as exc:
            raise StorageError(operation, **context) from exc

    # ------------------------------------------------------------------
    # Deletes
    # ------------------------------------------------------------------

    def delete_by_user(self, user_id: str) -> int:
        """Permanently delete all of a user's preferences. Returns rows deleted."""
        return self._delete(
            "delete Preference",
            Preference.user_id == user_id,
            user_id=user_id,
        )

    def delete(self, user_id: str, category: str, name: str) -> int:
        """Delete one preference by key. Returns 1 if it existed, else 0."""
        return self._delete(
            "delete Preference",
            and_(
                Preference.user_id == user_id,
                Preference.category == category,
                Preference.name == name,
            ),
            user_id=user_id,
            category=category,
            name=name,
        )

    def delete_category(self, user_id: str, category: str) -> int:
        """Delete all of a user's preferences in one category."""
        return self._delete(
            "delete Preference",
            and_(Preference.user_id == user_id, Preference.category == category),
            user_id=user_id,
            category=category,
        )

    def delete_category_and_name(self, category: str, name: str) -> int:
        """Delete a (category, name) preference for every user.

        Used when the referenced entity (e.g. a post) is removed.
        """
        return self._delete(
            "delete Preference",
            and_(Preference.category == category, Preference.name == name),
            category=category,
            name=name,
        )

    def _delete(self, operation: str, criteria, **context) -> int:
        try:
            with session_scope(self.provider) as db:
                result = db.execute(
                    delete(Preference).where(criteria),
                    execution_options=_NO_DELETE_SYNC,
                )
                deleted = result.rowcount
        except SQLAlchemyError as exc:
            raise StorageError(operation, **context) from exc
        logger.info("Deleted %d preference(s): %s", deleted, context)
        return deleted

    def delete_unused_features(self) -> int:
        """Remove disabled pre-release feature toggles.

        Best-effort housekeeping run at startup: a failure is logged and
        reported as 0 rows deleted.
        """
        logger.debug("Deleting any unused pre-release features")
        criteria = and_(
            Preference.category == PREFERENCE_CATEGORY_ADVANCED_SETTINGS,
            Preference.value == "false",
            Preference.name.startswith(FEATURE_TOGGLE_PREFIX, autoescape=True),
        )
        try:
            return self._delete("delete unused features", criteria)
        except (StorageError, TransactionError):
            logger.warning("Failed to delete unused features", exc_info=True)
            return 0

    # ------------------------------------------------------------------
    # Retention
    # ------------------------------------------------------------------

    def get_unretained_flags(
        self, category: str, cutoff: datetime | int, limit: int
    ) -> list[tuple[str, str, str]]:
        """Keys :meth:`delete_unretained_flags` would delete with the same arguments."""
        eligible = unretained_flags_query(category, to_millis(cutoff), limit)
        with self.provider.primary_session() as db:
            return self._retention().inspect(db, eligible, category=category)

    def get_unretained_flags_for_policies(
        self, category: str, now: datetime | int, limit: int
    ) -> list[tuple[str, str, str]]:
        """Keys :meth:`delete_unretained_flags_for_policies` would delete."""
        eligible = unretained_flags_for_policies_query(category, to_millis(now), limit)
        with self.provider.primary_session() as db:
            return self._retention().inspect(db, eligible, category=category)

    def delete_unretained_flags(self, category: str, cutoff: datetime | int, limit: int) -> int:
        """Delete up to ``limit`` preferences whose post predates ``cutoff``
        and is not covered by a channel or team retention policy.

        Returns the number of rows deleted; 0 means the sweep is complete.
        """
        eligible = unretained_flags_query(category, to_millis(cutoff), limit)
        return self._delete_batch("delete unretained flags", eligible, category)

    def delete_unretained_flags_for_policies(
        self, category: str, now: datetime | int, limit: int
    ) -> int:
        """Delete up to ``limit`` preferences whose post exceeded its policy's
        duration (channel policy over team policy) or no longer exists.

        Returns the number of rows deleted; 0 means the sweep is complete.
        """
        eligible = unretained_flags_for_policies_query(category, to_millis(now), limit)
        return self._delete_batch("delete unretained flags for policies", eligible, category)

    def _retention(self) -> RetentionBatchDeleter:
        return RetentionBatchDeleter(self.delete_executor)

    def _delete_batch(self, operation: str, eligible, category: str) -> int:
        deleter = self._retention()
        try:
            with session_scope(self.provider) as db:
                deleted = deleter.delete(db, eligible, category=category)
        except SQLAlchemyError as exc:
            raise StorageError(operation, category=category) from exc
        logger.info("%s: category=%s deleted=%d", operation, category, deleted)
        return deleted

