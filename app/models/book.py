"""Book catalog and per-user library SQLModel definitions.

Models:
- Book: canonical catalog entry, shared by all users
- UserBook: a user tracking a book (soft-deleted via `active`)
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

from app.models.base import timestamp_field


class Book(SQLModel, table=True):
    """
    Catalog entry.

    Created once per distinct (title, author) or ISBN, then reused.
    """
    __tablename__ = "books"

    id: Optional[int] = Field(default=None, primary_key=True)
    title: str = Field(index=True, max_length=500)
    author: str = Field(index=True, max_length=500)
    year: Optional[int] = None
    isbn: Optional[str] = Field(default=None, index=True, max_length=20)
    thumbnail: Optional[str] = None
    description: Optional[str] = None
    amazon_link: Optional[str] = None
    audible_link: Optional[str] = None
    created_at: datetime = timestamp_field()


class UserBook(SQLModel, table=True):
    """
    Association between a user and a book they are reading.

    `active=False` is a soft delete; rows are never removed by normal flows.
    """
    __tablename__ = "user_books"
    __table_args__ = (
        UniqueConstraint("user_id", "book_id", name="uq_user_books_user_book"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True, nullable=False)
    book_id: int = Field(foreign_key="books.id", nullable=False)
    progress: int = Field(default=0, ge=0, le=100)
    active: bool = Field(default=True)
    created_at: datetime = timestamp_field()
    updated_at: datetime = timestamp_field()
