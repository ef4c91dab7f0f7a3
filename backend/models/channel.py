"""Channel model."""

from sqlalchemy import Column, String

from database import Base
from models.utils import generate_id


class Channel(Base):
    """A channel, optionally belonging to a team (empty team_id for DMs)."""

    __tablename__ = "channels"

    id = Column(String(26), primary_key=True, default=generate_id)
    team_id = Column(String(26), index=True, nullable=False, default="")
