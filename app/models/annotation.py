"""Annotation SQLModel definition."""
from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel

from app.models.base import timestamp_field


class Annotation(SQLModel, table=True):
    """
    Reader note attached to a user's tracked copy of a book (UserBook).

    Inserted and deleted only, never edited in place.
    """
    __tablename__ = "annotations"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True, nullable=False)
    user_book_id: int = Field(foreign_key="user_books.id", index=True, nullable=False)
    content: str = Field()
    created_at: datetime = timestamp_field()
