from datetime import datetime, timedelta, timezone

import pytest

from app.models.conversation import ThreadStatus
from app.models.usage import DailyMessageCount
from app.services.conversation_manager import FALLBACK_REPLY, SessionRegistry
from app.services.errors import (
    Busy,
    DailyLimitReached,
    InvalidBookError,
    InvalidMessageError,
    NotFoundError,
    PersistenceError,
)
from app.services.quota_service import utc_today
from tests.conftest import candidate


@pytest.fixture
def tracked_book(services, session, user):
    user_book = services.catalog.add_to_library(session, user, candidate())
    return user_book.book_id


@pytest.fixture
def manager(services, user):
    return services.sessions.get_or_create("session-1", user.id)


def roles(thread):
    return [m.role for m in thread.messages]


def test_start_conversation_makes_thread_current(manager, session, tracked_book):
    thread = manager.start_conversation(session, tracked_book)

    assert thread.title == "Conversation about Dom Casmurro"
    assert thread.status == ThreadStatus.EMPTY
    assert thread.messages == []
    assert manager.current.id == thread.id


def test_start_conversation_requires_tracked_book(services, manager, session, user, tracked_book):
    with pytest.raises(InvalidBookError):
        manager.start_conversation(session, tracked_book + 100)

    user_book = services.catalog.list_active_user_books(session, user.id)[0][0]
    services.catalog.remove_from_library(session, user, user_book.id)
    with pytest.raises(InvalidBookError):
        manager.start_conversation(session, tracked_book)


def test_select_conversation(manager, session, tracked_book):
    first = manager.start_conversation(session, tracked_book)
    second = manager.start_conversation(session, tracked_book)
    assert manager.current.id == second.id

    assert manager.select_conversation(first.id).id == first.id
    assert manager.current.id == first.id
    assert [t.id for t in manager.list_conversations()] == [second.id, first.id]

    with pytest.raises(NotFoundError):
        manager.select_conversation("missing")


def test_messages_alternate_and_carry_full_history(manager, session, completion, tracked_book):
    manager.start_conversation(session, tracked_book)

    manager.send_message(session, "Who is Capitu?")
    thread = manager.send_message(session, "Did she betray Bento?")

    assert roles(thread) == ["user", "assistant", "user", "assistant"]
    assert thread.messages[1].content == "reply 1"
    assert thread.status == ThreadStatus.ACTIVE

    system_prompt, history = completion.calls[1]
    assert '"Dom Casmurro" by Machado de Assis' in system_prompt
    assert [m["content"] for m in history] == ["Who is Capitu?", "reply 1", "Did she betray Bento?"]


def test_successful_reply_is_counted(services, manager, session, user, tracked_book):
    manager.start_conversation(session, tracked_book)
    manager.send_message(session, "Hello")

    assert services.quota.get_count(session, user.id) == 1
    assert not services.quota.is_limit_reached(1)


def test_completion_failure_appends_fallback_without_counting(
    services, manager, session, user, completion, tracked_book
):
    manager.start_conversation(session, tracked_book)
    completion.fail = True

    thread = manager.send_message(session, "Hello")

    assert roles(thread) == ["user", "assistant"]
    assert thread.messages[-1].content == FALLBACK_REPLY
    assert services.quota.get_count(session, user.id) == 0

    completion.fail = False
    thread = manager.send_message(session, "Again")
    assert roles(thread) == ["user", "assistant", "user", "assistant"]


@pytest.mark.parametrize("text", ["", "   ", "\n"])
def test_blank_message_rejected(manager, session, completion, tracked_book, text):
    manager.start_conversation(session, tracked_book)

    with pytest.raises(InvalidMessageError):
        manager.send_message(session, text)
    assert completion.calls == []


def test_send_requires_current_thread(manager, session):
    with pytest.raises(NotFoundError):
        manager.send_message(session, "Hello")


def test_daily_limit_checked_before_completion(manager, session, user, completion, tracked_book):
    session.add(DailyMessageCount(user_id=user.id, date=utc_today(), count=99))
    session.commit()
    thread = manager.start_conversation(session, tracked_book)

    manager.send_message(session, "Message 100")
    assert len(completion.calls) == 1

    with pytest.raises(DailyLimitReached):
        manager.send_message(session, "Message 101")
    assert len(completion.calls) == 1
    assert len(thread.messages) == 2


def test_concurrent_send_on_same_thread_is_busy(manager, session, completion, tracked_book):
    manager.start_conversation(session, tracked_book)
    rejected = []

    def send_while_pending():
        assert manager.current.status == ThreadStatus.PENDING
        with pytest.raises(Busy):
            manager.send_message(session, "Interleaved")
        rejected.append(True)

    completion.on_call = send_while_pending
    thread = manager.send_message(session, "First")

    assert rejected == [True]
    assert roles(thread) == ["user", "assistant"]

    completion.on_call = None
    manager.send_message(session, "Second")
    assert len(thread.messages) == 4


def test_quota_persistence_failure_keeps_reply(manager, session, tracked_book, monkeypatch):
    manager.start_conversation(session, tracked_book)

    def broken_increment(*args, **kwargs):
        raise PersistenceError("database unavailable")

    monkeypatch.setattr(manager.quota, "increment", broken_increment)

    thread = manager.send_message(session, "Hello")

    assert roles(thread) == ["user", "assistant"]
    assert thread.messages[-1].content == "reply 1"


def test_sessions_are_isolated_and_releasable(services, user):
    a = services.sessions.get_or_create("tab-a", user.id)
    b = services.sessions.get_or_create("tab-b", user.id)

    assert a is not b
    assert services.sessions.get_or_create("tab-a", user.id) is a
    assert services.sessions.release("tab-a")
    assert not services.sessions.release("tab-a")
    assert services.sessions.get_or_create("tab-a", user.id) is not a


def test_unexpected_completion_error_appends_fallback(services, manager, session, user, completion, tracked_book):
    manager.start_conversation(session, tracked_book)

    def explode():
        raise RuntimeError("malformed payload")

    completion.on_call = explode
    thread = manager.send_message(session, "Hello")

    assert roles(thread) == ["user", "assistant"]
    assert thread.messages[-1].content == FALLBACK_REPLY
    assert thread.status == ThreadStatus.ACTIVE
    assert services.quota.get_count(session, user.id) == 0


class Clock:
    def __init__(self):
        self.now = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now


def test_expired_sessions_are_evicted(services, user):
    clock = Clock()
    registry = SessionRegistry(services.new_conversation_manager, clock=clock)
    for i in range(50):
        registry.get_or_create(f"login-{i}", user.id, expires_at=clock.now + timedelta(hours=1))
    assert len(registry) == 50

    clock.now += timedelta(hours=2)
    registry.get_or_create("fresh-login", user.id, expires_at=clock.now + timedelta(hours=1))

    assert len(registry) == 1


def test_refreshed_token_extends_session(services, user):
    clock = Clock()
    registry = SessionRegistry(services.new_conversation_manager, clock=clock)
    manager = registry.get_or_create("tab", user.id, expires_at=clock.now + timedelta(hours=1))
    registry.get_or_create("tab", user.id, expires_at=clock.now + timedelta(hours=3))

    clock.now += timedelta(hours=2)

    assert registry.get_or_create("tab", user.id, expires_at=clock.now + timedelta(hours=1)) is manager


def test_sessions_without_expiry_use_default_ttl(services, user):
    clock = Clock()
    registry = SessionRegistry(services.new_conversation_manager, default_ttl=timedelta(minutes=30), clock=clock)
    registry.get_or_create("no-exp", user.id)

    clock.now += timedelta(minutes=31)
    registry.get_or_create("other", user.id)

    assert len(registry) == 1
