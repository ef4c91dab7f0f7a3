"""Post model - the entity a flagged-post preference refers to."""

from sqlalchemy import BigInteger, Column, String

from database import Base
from models.utils import generate_id


class Post(Base):
    """A message in a channel. Only the columns retention needs are mapped."""

    __tablename__ = "posts"

    id = Column(String(26), primary_key=True, default=generate_id)
    channel_id = Column(String(26), index=True, nullable=False)
    create_at = Column(BigInteger, index=True, nullable=False)  # epoch ms
