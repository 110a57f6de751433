"""Annotation schemas."""
from datetime import datetime

from pydantic import BaseModel, Field


class AnnotationCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=10000)


class AnnotationRead(BaseModel):
    id: int
    user_book_id: int
    content: str
    created_at: datetime
