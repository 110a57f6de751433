"""Conversation thread and message models for the book chat.

Models:
- ChatMessage: one role-tagged entry in a thread
- ConversationThread: session-scoped chat about one book

Neither is a table: threads live for the session lifetime only.
"""
from datetime import datetime
from enum import Enum
from typing import Literal
from uuid import uuid4

from sqlmodel import Field, SQLModel

from app.models.base import utc_now


class ThreadStatus(str, Enum):
    EMPTY = "empty"
    PENDING = "pending"
    ACTIVE = "active"


class ChatMessage(SQLModel):
    """Role is "user" or "assistant"."""
    role: Literal["user", "assistant"]
    content: str


class ConversationThread(SQLModel):
    """
    In-memory conversation scoped to one tracked book.

    Status moves Empty -> Pending while a completion is in flight, then
    Active; there is no terminal state.
    """
    id: str = Field(default_factory=lambda: uuid4().hex)
    book_id: int
    title: str
    book_title: str
    book_author: str
    messages: list[ChatMessage] = Field(default_factory=list)
    status: ThreadStatus = ThreadStatus.EMPTY
    created_at: datetime = Field(default_factory=utc_now)
