"""SQLAlchemy ORM models."""

from .channel import Channel
from .post import Post
from .preference import Preference
from .retention_policy import RetentionPolicy, RetentionPolicyChannel, RetentionPolicyTeam
from .team import Team
from .utils import generate_id, get_millis, to_millis

__all__ = ["Channel", "Post", "Preference", "RetentionPolicy", "RetentionPolicyChannel", "RetentionPolicyTeam", "Team", "generate_id", "get_millis", "to_millis"]
