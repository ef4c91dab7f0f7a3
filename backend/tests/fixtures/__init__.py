"""Test fixtures and sample data."""
import pytest
from datetime import datetime, timedelta, timezone

from models import (
    Channel,
    Post,
    Preference,
    RetentionPolicy,
    RetentionPolicyChannel,
    RetentionPolicyTeam,
    Team,
    to_millis,
)
from models.preference import PREFERENCE_CATEGORY_FLAGGED_POST
from sqlalchemy.orm import Session

NOW = datetime(2026, 6, 1, tzinfo=timezone.utc)
NOW_MS = to_millis(NOW)


def days_ago(days: int) -> int:
    """Epoch milliseconds ``days`` before NOW."""
    return to_millis(NOW - timedelta(days=days))


def create_post(db: Session, channel_id: str, age_days: int, post_id: str | None = None) -> Post:
    """Create a post in ``channel_id`` created ``age_days`` before NOW."""
    post = Post(channel_id=channel_id, create_at=days_ago(age_days))
    if post_id is not None:
        post.id = post_id
    db.add(post)
    db.commit()
    db.refresh(post)
    return post


def flag(db: Session, user_id: str, post_id: str, value: str = "true") -> None:
    """Insert a flagged_post preference directly, bypassing the store."""
    db.add(
        Preference(
            user_id=user_id,
            category=PREFERENCE_CATEGORY_FLAGGED_POST,
            name=post_id,
            value=value,
            update_at=NOW_MS,
        )
    )
    db.commit()


def count_preferences(db: Session, **filters) -> int:
    """Count preference rows matching ``filters`` as currently stored."""
    db.expire_all()
    return db.query(Preference).filter_by(**filters).count()


@pytest.fixture
def team(db: Session) -> Team:
    """Create a test team."""
    t = Team()
    db.add(t)
    db.commit()
    db.refresh(t)
    return t


@pytest.fixture
def channel(db: Session, team: Team) -> Channel:
    """Create a test channel in ``team``."""
    ch = Channel(team_id=team.id)
    db.add(ch)
    db.commit()
    db.refresh(ch)
    return ch


@pytest.fixture
def old_post(db: Session, channel: Channel) -> Post:
    """A post created 100 days before NOW."""
    return create_post(db, channel.id, age_days=100)


@pytest.fixture
def channel_policy(db: Session, channel: Channel) -> RetentionPolicy:
    """A 30-day policy assigned to ``channel``."""
    policy = RetentionPolicy(display_name="Channel policy", post_duration=30)
    db.add(policy)
    db.flush()
    db.add(RetentionPolicyChannel(policy_id=policy.id, channel_id=channel.id))
    db.commit()
    db.refresh(policy)
    return policy


@pytest.fixture
def team_policy(db: Session, team: Team) -> RetentionPolicy:
    """A 365-day policy assigned to ``team``."""
    policy = RetentionPolicy(display_name="Team policy", post_duration=365)
    db.add(policy)
    db.flush()
    db.add(RetentionPolicyTeam(policy_id=policy.id, team_id=team.id))
    db.commit()
    db.refresh(policy)
    return policy
