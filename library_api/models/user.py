# library_api/models/user.py
from typing import Optional
from beanie import Document
from pydantic import BaseModel, Field, EmailStr, ConfigDict
from pymongo import IndexModel, ASCENDING
from datetime import datetime, timezone

from .enum import UserRole


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Document):
    username: str
    email: Optional[EmailStr] = None
    full_name: Optional[str] = None
    hashed_password: str
    disabled: bool = Field(default=False)
    role: UserRole = Field(default=UserRole.USER)

    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    class Settings:
        name = "users"
        indexes = [
            IndexModel([("username", ASCENDING)], name="username_unique_index", unique=True),
            IndexModel([("email", ASCENDING)], name="email_unique_index", unique=True, sparse=True),
            IndexModel([("role", ASCENDING)], name="role_index"),
        ]


class UserRef(BaseModel):
    """User fields embedded in a populated borrowing record."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    username: str
    email: Optional[str] = None
