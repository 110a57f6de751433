"""Chat endpoint routes for the book assistant.

Provides:
- POST /api/conversations - Start a conversation about a tracked book
- GET /api/conversations - List this session's conversations
- POST /api/conversations/{id}/select - Make a conversation current
- POST /api/chat - Send a message on the current conversation
- DELETE /api/session - Release the session's conversations
"""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel
from sqlmodel import Session

from app.core.container import ServiceContainer
from app.core.deps import (
    AuthSession,
    get_conversation_manager,
    get_current_user,
    get_db,
    get_services,
    require_session,
)
from app.models.conversation import ChatMessage, ConversationThread
from app.models.user import User
from app.schemas.quota import QuotaStatus
from app.services.conversation_manager import ConversationManager
from app.services.errors import PersistenceError

router = APIRouter(prefix="/api", tags=["chat"])


class StartConversationRequest(BaseModel):
    """Request model for opening a conversation."""
    book_id: int


class ChatRequest(BaseModel):
    """Request model for sending chat message."""
    message: str


class ConversationSummary(BaseModel):
    """Response model for conversation list."""
    id: str
    book_id: int
    title: str
    status: str
    created_at: datetime
    message_count: int
    is_current: bool


class ConversationDetail(BaseModel):
    """Response model for conversation with messages."""
    id: str
    book_id: int
    title: str
    status: str
    created_at: datetime
    messages: list[ChatMessage]
    quota: Optional[QuotaStatus] = None


def to_detail(thread: ConversationThread, quota: Optional[QuotaStatus] = None) -> ConversationDetail:
    return ConversationDetail(
        id=thread.id,
        book_id=thread.book_id,
        title=thread.title,
        status=thread.status.value,
        created_at=thread.created_at,
        messages=list(thread.messages),
        quota=quota,
    )


@router.post("/conversations", response_model=ConversationDetail, status_code=status.HTTP_201_CREATED)
def start_conversation(
    request: StartConversationRequest,
    manager: ConversationManager = Depends(get_conversation_manager),
    session: Session = Depends(get_db),
) -> ConversationDetail:
    """
    Start a new conversation about a book in the user's library.

    Raises:
        InvalidBookError (400): If the book is not tracked by the user
    """
    thread = manager.start_conversation(session, request.book_id)
    return to_detail(thread)


@router.get("/conversations", response_model=list[ConversationSummary])
def list_conversations(
    manager: ConversationManager = Depends(get_conversation_manager),
) -> list[ConversationSummary]:
    current = manager.current
    return [
        ConversationSummary(
            id=thread.id,
            book_id=thread.book_id,
            title=thread.title,
            status=thread.status.value,
            created_at=thread.created_at,
            message_count=len(thread.messages),
            is_current=current is not None and current.id == thread.id,
        )
        for thread in manager.list_conversations()
    ]


@router.post("/conversations/{conversation_id}/select", response_model=ConversationDetail)
def select_conversation(
    conversation_id: str,
    manager: ConversationManager = Depends(get_conversation_manager),
) -> ConversationDetail:
    return to_detail(manager.select_conversation(conversation_id))


@router.post("/chat", response_model=ConversationDetail)
def send_chat_message(
    request: ChatRequest,
    manager: ConversationManager = Depends(get_conversation_manager),
    user: User = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
    session: Session = Depends(get_db),
) -> ConversationDetail:
    """
    Send a message on the current conversation.

    Flow:
    1. Validate message and current conversation
    2. Check daily quota (before any completion call)
    3. Call the assistant with the full conversation history
    4. Return the updated conversation and quota

    Raises:
        InvalidMessageError (400): Empty message
        NotFoundError (404): No conversation selected
        Busy (409): A reply is still being generated
        DailyLimitReached (429): Daily message quota used up
    """
    thread = manager.send_message(session, request.message)
    try:
        quota = services.quota.status(session, user.id)
    except PersistenceError:
        # The reply is already in the thread; report it without quota info
        quota = None
    return to_detail(thread, quota=quota)


@router.delete("/session", status_code=status.HTTP_204_NO_CONTENT)
def end_session(
    auth: AuthSession = Depends(require_session),
    services: ServiceContainer = Depends(get_services),
) -> Response:
    """Discard the conversations held for this session."""
    services.sessions.release(auth.session_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
