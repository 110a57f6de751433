"""Book-related request/response schemas."""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class CandidateBook(BaseModel):
    """
    A search result that may be added to a library.

    `id` is the local Book id for catalog hits and None for external results.
    """
    id: Optional[int] = None
    title: str = Field(..., min_length=1)
    author: str = Field(..., min_length=1)
    year: Optional[int] = None
    isbn: Optional[str] = None
    thumbnail: Optional[str] = None
    description: str = ""
    amazon_link: Optional[str] = None
    audible_link: Optional[str] = None
    source: str = "catalog"


class LibraryEntry(BaseModel):
    """A tracked book as shown on the library page."""
    user_book_id: int
    book_id: int
    title: str
    author: str
    year: Optional[int] = None
    isbn: Optional[str] = None
    thumbnail: Optional[str] = None
    description: Optional[str] = None
    amazon_link: Optional[str] = None
    audible_link: Optional[str] = None
    progress: int
    active: bool
    updated_at: datetime


class ProgressUpdate(BaseModel):
    progress: int = Field(..., ge=0, le=100)
