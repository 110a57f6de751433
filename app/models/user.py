"""User SQLModel definition."""
from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel

from app.models.base import timestamp_field


class User(SQLModel, table=True):
    """
    Application profile linked to an auth-provider identity.

    Created lazily on the first authenticated request.
    """
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    auth_id: str = Field(index=True, unique=True, nullable=False)
    is_premium: bool = Field(default=False)
    name: Optional[str] = Field(default=None, max_length=255)
    email: Optional[str] = Field(default=None, max_length=255)
    created_at: datetime = timestamp_field()
