"""Granular data retention policies and their channel/team assignments."""

from sqlalchemy import BigInteger, Column, ForeignKey, String

from database import Base
from models.utils import generate_id


class RetentionPolicy(Base):
    """A retention rule keeping posts for ``post_duration`` days.

    A policy applies to the channels and teams assigned to it; a channel
    assignment takes precedence over the assignment of the channel's team.
    """

    __tablename__ = "retention_policies"

    id = Column(String(26), primary_key=True, default=generate_id)
    display_name = Column(String(64), nullable=False, default="")
    post_duration = Column(BigInteger, nullable=False)  # days


class RetentionPolicyChannel(Base):
    __tablename__ = "retention_policies_channels"

    policy_id = Column(String(26), ForeignKey("retention_policies.id"), index=True, nullable=False)
    channel_id = Column(String(26), primary_key=True)


class RetentionPolicyTeam(Base):
    __tablename__ = "retention_policies_teams"

    policy_id = Column(String(26), ForeignKey("retention_policies.id"), index=True, nullable=False)
    team_id = Column(String(26), primary_key=True)
