"""Session-scoped book conversations (chat with the assistant about a book).

Handles:
- One set of conversation threads per authenticated session
- Current-thread selection
- Daily quota check before each completion
- One in-flight completion per thread
- Fallback assistant reply when the completion service fails
"""
from datetime import datetime, timedelta
from threading import Lock
from typing import Callable, Dict, Optional, Tuple
import logging

from sqlmodel import Session, select

from app.models.base import utc_now
from app.models.book import Book, UserBook
from app.models.conversation import ChatMessage, ConversationThread, ThreadStatus
from app.services.completion import CompletionClient
from app.services.errors import (
    Busy,
    DailyLimitReached,
    ExternalServiceError,
    InvalidBookError,
    InvalidMessageError,
    NotFoundError,
    PersistenceError,
)
from app.services.quota_service import DailyQuotaTracker, utc_today

logger = logging.getLogger(__name__)

FALLBACK_REPLY = (
    "Sorry, an error occurred while getting a response. Please try sending your message again."
)


def build_system_prompt(title: str, author: str) -> str:
    """
    Build the system instruction for a book conversation.

    The assistant may take on different voices but stays on the book.
    """
    return (
        f'You are an AI assistant specialized in discussing the book "{title}" by {author}. '
        "Provide insightful answers and engage in meaningful conversations about this book. "
        "You can act as a reader, a writer, or a critic, depending on the user's question, "
        "but you can also be the author or even a character from the book.\n\n"
        "Only discuss topics related to this book, its author, its themes, its context "
        "and the user's reading of it. If the user asks about something unrelated, "
        "politely decline and steer the conversation back to the book."
    )


class ConversationManager:
    """
    Conversation threads for one session.

    Threads are never persisted; they are dropped when the session is released.
    """

    def __init__(
        self,
        user_id: int,
        quota: DailyQuotaTracker,
        completion: CompletionClient,
    ):
        self.user_id = user_id
        self.quota = quota
        self.completion = completion
        self._threads: Dict[str, ConversationThread] = {}
        self._thread_locks: Dict[str, Lock] = {}
        self._current_id: Optional[str] = None
        self._lock = Lock()

    @property
    def current(self) -> Optional[ConversationThread]:
        with self._lock:
            if self._current_id is None:
                return None
            return self._threads.get(self._current_id)

    def start_conversation(self, session: Session, book_id: int) -> ConversationThread:
        """
        Open a new empty thread about a tracked book and make it current.

        Raises:
            InvalidBookError: If the book is not active in the user's library
        """
        statement = (
            select(Book)
            .join(UserBook, UserBook.book_id == Book.id)
            .where(
                UserBook.user_id == self.user_id,
                UserBook.book_id == book_id,
                UserBook.active == True,  # noqa: E712
            )
        )
        book = session.exec(statement).first()
        if book is None:
            raise InvalidBookError(f"Book {book_id} is not in your library")

        thread = ConversationThread(
            book_id=book.id,
            title=f"Conversation about {book.title}",
            book_title=book.title,
            book_author=book.author,
        )
        with self._lock:
            self._threads[thread.id] = thread
            self._thread_locks[thread.id] = Lock()
            self._current_id = thread.id

        logger.info(f"Conversation started: user={self.user_id}, book={book.id}, thread={thread.id}")
        return thread

    def select_conversation(self, thread_id: str) -> ConversationThread:
        """
        Raises:
            NotFoundError: If the thread is unknown in this session
        """
        with self._lock:
            thread = self._threads.get(thread_id)
            if thread is None:
                raise NotFoundError(f"Conversation {thread_id} not found")
            self._current_id = thread_id
            return thread

    def list_conversations(self) -> list[ConversationThread]:
        """Newest first."""
        with self._lock:
            threads = list(self._threads.values())
        return list(reversed(threads))

    def send_message(self, session: Session, text: str) -> ConversationThread:
        """
        Send a user message on the current thread and append the reply.

        Flow:
        1. Validate text and current thread
        2. Take the thread's send lock (reject with Busy if held)
        3. Check the daily quota before calling the completion service
        4. Append the user message
        5. Call the completion service with the full history
        6. Append the reply (or a fallback) and count it against the quota

        Raises:
            InvalidMessageError: If text is blank
            NotFoundError: If no thread is current
            Busy: If a completion is already in flight for the thread
            DailyLimitReached: If today's quota is used up
        """
        if not text or not text.strip():
            raise InvalidMessageError("Message cannot be empty")

        with self._lock:
            thread = self._threads.get(self._current_id) if self._current_id else None
            if thread is None:
                raise NotFoundError("No conversation selected")
            send_lock = self._thread_locks[thread.id]

        if not send_lock.acquire(blocking=False):
            raise Busy("A reply is still being generated for this conversation")

        try:
            day = utc_today()
            count = self.quota.get_count(session, self.user_id, day)
            if self.quota.is_limit_reached(count):
                raise DailyLimitReached(self.quota.limit)

            thread.messages.append(ChatMessage(role="user", content=text))
            thread.status = ThreadStatus.PENDING

            history = [{"role": m.role, "content": m.content} for m in thread.messages]
            system_prompt = build_system_prompt(thread.book_title, thread.book_author)

            try:
                reply = self.completion.complete(system_prompt, history)
            except ExternalServiceError as e:
                logger.warning(
                    f"Completion failed for user {self.user_id}, thread {thread.id}: {e.message}"
                )
                thread.messages.append(ChatMessage(role="assistant", content=FALLBACK_REPLY))
                return thread
            except Exception:
                logger.exception(
                    f"Unexpected completion error for user {self.user_id}, thread {thread.id}"
                )
                thread.messages.append(ChatMessage(role="assistant", content=FALLBACK_REPLY))
                return thread

            thread.messages.append(ChatMessage(role="assistant", content=reply))

            try:
                new_count = self.quota.increment(session, self.user_id, day)
            except PersistenceError as e:
                # Reply was already delivered; accounting is best effort
                logger.error(
                    f"Daily count not updated for user {self.user_id} on {day}: {e.message}"
                )
            else:
                logger.info(
                    f"Chat message processed: user={self.user_id}, thread={thread.id}, "
                    f"daily_count={new_count}"
                )
            return thread
        finally:
            if thread.messages:
                thread.status = ThreadStatus.ACTIVE
            send_lock.release()


class SessionRegistry:
    """
    Conversation managers keyed by auth session.

    Managers are created on first use and dropped when the session is
    released or its access token expires. Sessions without a known expiry
    live for `default_ttl` after their last use.
    """

    def __init__(
        self,
        factory: Callable[[int], ConversationManager],
        default_ttl: timedelta = timedelta(hours=12),
        clock: Callable[[], datetime] = utc_now,
    ):
        self._factory = factory
        self._default_ttl = default_ttl
        self._clock = clock
        self._managers: Dict[str, Tuple[ConversationManager, datetime]] = {}
        self._lock = Lock()

    def get_or_create(
        self,
        session_key: str,
        user_id: int,
        expires_at: Optional[datetime] = None,
    ) -> ConversationManager:
        """
        Return the session's manager, evicting every expired session first.

        A later token for the same session (refresh) extends its expiry.
        """
        now = self._clock()
        expires_at = expires_at or now + self._default_ttl
        with self._lock:
            self._evict_expired(now)
            entry = self._managers.get(session_key)
            if entry is None or entry[0].user_id != user_id:
                manager = self._factory(user_id)
            else:
                manager = entry[0]
            self._managers[session_key] = (manager, expires_at)
            return manager

    def release(self, session_key: str) -> bool:
        with self._lock:
            return self._managers.pop(session_key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._managers.clear()

    def _evict_expired(self, now: datetime) -> None:
        expired = [key for key, (_, expires_at) in self._managers.items() if expires_at <= now]
        for key in expired:
            del self._managers[key]
        if expired:
            logger.info(f"Released {len(expired)} expired chat session(s)")

    def __len__(self) -> int:
        with self._lock:
            return len(self._managers)
