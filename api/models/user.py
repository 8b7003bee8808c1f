"""
Admin user model and authentication schemas.
"""
from datetime import datetime
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel
from sqlalchemy import Column, DateTime, String

from api.models.database import Base


class User(Base):
    """Admin account allowed to manage the gallery."""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    username = Column(String(255), nullable=False, unique=True, index=True)
    password = Column(String(255), nullable=False)  # bcrypt hash
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<User {self.username}>"


class LoginRequest(BaseModel):
    """Login payload; fields are checked in the route for a clearer error."""
    username: Optional[str] = None
    password: Optional[str] = None
