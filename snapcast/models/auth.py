# snapcast/models/auth.py

import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Uuid
from pydantic import BaseModel, ConfigDict, EmailStr

from snapcast.shared.db.database import Base
from snapcast.models.video import utcnow


# =================================================================
# SQLAlchemy ORM Model (Database)
# =================================================================
class User(Base):
    """
    Represents the User model in our public.users table.
    This table stores public information related to a user from Supabase Auth.
    """
    __tablename__ = "users"

    # This ID should correspond to the ID from Supabase's auth.users table.
    id = Column(Uuid(as_uuid=True), primary_key=True)
    email = Column(String, unique=True, index=True, nullable=True)
    full_name = Column(String, nullable=True)
    image = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)


# =================================================================
# Pydantic Schemas (API / session)
# =================================================================
class SessionUser(BaseModel):
    """The verified principal behind a request."""
    user_id: uuid.UUID
    email: str | None = None

    model_config = ConfigDict(frozen=True)


class UserResponse(BaseModel):
    """User response schema"""
    id: uuid.UUID
    email: EmailStr | None = None
    full_name: str | None = None
    image: str | None = None
    created_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)
