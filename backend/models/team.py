"""Team model."""

from sqlalchemy import Column, String

from database import Base
from models.utils import generate_id


class Team(Base):
    __tablename__ = "teams"

    id = Column(String(26), primary_key=True, default=generate_id)
