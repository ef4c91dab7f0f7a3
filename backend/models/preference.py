"""Preference model - per-user key/value preference records."""

from sqlalchemy import BigInteger, Column, String

from database import Base
from models.utils import get_millis

PREFERENCE_CATEGORY_FLAGGED_POST = "flagged_post"
PREFERENCE_CATEGORY_ADVANCED_SETTINGS = "advanced_settings"
FEATURE_TOGGLE_PREFIX = "feature_enabled_"


class Preference(Base):
    """A single preference identified by (user_id, category, name).

    ``name`` frequently references another entity; for the
    ``flagged_post`` category it is the id of the flagged post.
    """

    __tablename__ = "preferences"

    user_id = Column(String(26), primary_key=True, index=True)
    category = Column(String(32), primary_key=True, index=True)
    name = Column(String(32), primary_key=True, index=True)
    value = Column(String(2000), nullable=False, default="")
    update_at = Column(BigInteger, nullable=False, default=0)  # epoch ms

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.user_id, self.category, self.name)

    def pre_update(self) -> None:
        """Refresh the last-updated marker; call immediately before persisting.

        A value that was never set takes the column default of ``""``.
        """
        if self.value is None:
            self.value = ""
        self.update_at = get_millis()

    def to_row(self) -> dict:
        """Column values for a Core insert/update."""
        return {
            "user_id": self.user_id,
            "category": self.category,
            "name": self.name,
            "value": self.value,
            "update_at": self.update_at,
        }

    def __repr__(self) -> str:
        return (
            f"Preference(user_id={self.user_id!r}, category={self.category!r}, "
            f"name={self.name!r}, value={self.value!r})"
        )
