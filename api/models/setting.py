"""
Key/value settings persisted by the admin panel.
"""
from sqlalchemy import Column, String, Text

from api.models.database import Base


class Setting(Base):
    """A single admin setting."""
    __tablename__ = "settings"

    key = Column(String(255), primary_key=True)
    value = Column(Text, nullable=False, default="")

    def __repr__(self):
        return f"<Setting {self.key}>"
