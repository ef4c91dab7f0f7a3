"""Retention-driven batch deletion of preferences that reference posts.

Each call removes at most ``limit`` preference rows and returns the number
deleted; a scheduler calls again until it gets 0 back.

Eligibility is computed by one ``Select`` over
preference -> post -> channel -> team -> policies that yields the
(user_id, category, name) keys of eligible rows. The same fragment feeds
both :meth:`RetentionBatchDeleter.inspect` and the dialect-specific
:class:`DeleteExecutor`.
"""

import logging

from sqlalchemy import Select, and_, delete, or_, select, tuple_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from database import DIALECT_MYSQL, DIALECT_POSTGRES, DIALECT_SQLITE
from models.channel import Channel
from models.post import Post
from models.preference import Preference
from models.retention_policy import RetentionPolicy, RetentionPolicyChannel, RetentionPolicyTeam
from models.team import Team
from services.exceptions import InvalidInputError, StorageError, UnsupportedBackendError

logger = logging.getLogger(__name__)

MILLIS_PER_DAY = 24 * 60 * 60 * 1000


def _check_limit(limit: int, operation: str) -> None:
    if limit < 0:
        raise InvalidInputError("limit", limit, reason="must be >= 0", operation=operation)


def _eligible_keys() -> Select:
    # Never correlate: the DELETE that embeds this query targets the same table.
    return (
        select(Preference.user_id, Preference.category, Preference.name)
        .select_from(Preference)
        .correlate(None)
    )


def unretained_flags_query(category: str, cutoff: int, limit: int) -> Select:
    """Keys of ``category`` preferences whose post was created before ``cutoff``
    and whose channel and team are not covered by any granular policy.

    Preferences pointing at posts that no longer exist are not matched.
    """
    _check_limit(limit, "delete unretained flags")
    return (
        _eligible_keys()
        .outerjoin(Post, Preference.name == Post.id)
        .outerjoin(Channel, Post.channel_id == Channel.id)
        .outerjoin(Team, Channel.team_id == Team.id)
        .outerjoin(RetentionPolicyChannel, Post.channel_id == RetentionPolicyChannel.channel_id)
        .outerjoin(RetentionPolicyTeam, Channel.team_id == RetentionPolicyTeam.team_id)
        .where(
            Preference.category == category,
            RetentionPolicyChannel.channel_id.is_(None),
            RetentionPolicyTeam.team_id.is_(None),
            Post.create_at < cutoff,
        )
        .limit(limit)
    )


def unretained_flags_for_policies_query(category: str, now: int, limit: int) -> Select:
    """Keys of ``category`` preferences whose post outlived its policy, or is gone.

    A channel's own policy wins over its team's policy.
    """
    _check_limit(limit, "delete unretained flags for policies")
    return (
        _eligible_keys()
        .outerjoin(Post, Preference.name == Post.id)
        .outerjoin(Channel, Post.channel_id == Channel.id)
        .outerjoin(RetentionPolicyChannel, Post.channel_id == RetentionPolicyChannel.channel_id)
        .outerjoin(RetentionPolicyTeam, Channel.team_id == RetentionPolicyTeam.team_id)
        .outerjoin(
            RetentionPolicy,
            or_(
                RetentionPolicyChannel.policy_id == RetentionPolicy.id,
                and_(
                    RetentionPolicyChannel.policy_id.is_(None),
                    RetentionPolicyTeam.policy_id == RetentionPolicy.id,
                ),
            ),
        )
        .where(
            Preference.category == category,
            or_(
                now - Post.create_at >= RetentionPolicy.post_duration * MILLIS_PER_DAY,
                Post.id.is_(None),
            ),
        )
        .limit(limit)
    )


class DeleteExecutor:
    """Deletes the preference rows whose keys an eligibility query selects."""

    def statement(self, eligible: Select):
        raise NotImplementedError

    def execute(self, db: Session, eligible: Select) -> int:
        result = db.execute(
            self.statement(eligible),
            execution_options={"synchronize_session": False},
        )
        return result.rowcount


class SubqueryDeleteExecutor(DeleteExecutor):
    """``DELETE ... WHERE (user_id, category, name) IN (<eligible LIMIT n>)``."""

    def statement(self, eligible: Select):
        return delete(Preference).where(
            tuple_(Preference.user_id, Preference.category, Preference.name).in_(eligible)
        )


class JoinDeleteExecutor(DeleteExecutor):
    """Multi-table delete against the pre-limited eligible rows.

    MySQL rejects ``LIMIT`` inside an ``IN`` subquery, so the eligible keys
    are materialized as a derived table and joined on the full key.
    """

    def statement(self, eligible: Select):
        eligible_rows = eligible.subquery("A")
        return delete(Preference).where(
            Preference.user_id == eligible_rows.c.user_id,
            Preference.category == eligible_rows.c.category,
            Preference.name == eligible_rows.c.name,
        )


def get_delete_executor(dialect: str) -> DeleteExecutor:
    if dialect in (DIALECT_POSTGRES, DIALECT_SQLITE):
        return SubqueryDeleteExecutor()
    if dialect == DIALECT_MYSQL:
        return JoinDeleteExecutor()
    raise UnsupportedBackendError(dialect, operation="delete unretained flags")


class RetentionBatchDeleter:
    """Runs eligibility queries against a session: inspect or delete one batch."""

    def __init__(self, executor: DeleteExecutor):
        self.executor = executor

    def inspect(self, db: Session, eligible: Select, **context) -> list[tuple[str, str, str]]:
        """Return the keys a delete with the same query would remove."""
        try:
            return [tuple(row) for row in db.execute(eligible).all()]
        except SQLAlchemyError as exc:
            raise StorageError("find unretained Preferences", **context) from exc

    def delete(self, db: Session, eligible: Select, **context) -> int:
        """Delete one batch and return the driver's affected-row count unchanged."""
        try:
            deleted = self.executor.execute(db, eligible)
        except SQLAlchemyError as exc:
            raise StorageError("delete Preferences", **context) from exc
        logger.debug("Retention batch removed %d preference(s)", deleted)
        return deleted
