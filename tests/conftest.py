"""Shared fixtures: in-memory database, fake collaborators, authenticated client."""
import time
from typing import Optional

import jwt
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session

from app.config import Settings
from app.core.container import build_services
from app.database import build_engine, init_db
from app.main import create_app
from app.models.user import User
from app.schemas.book import CandidateBook
from app.services.errors import ExternalServiceError

JWT_SECRET = "test-secret"


class FakeCompletion:
    """Records every request; replies "reply N" unless told to fail."""

    def __init__(self):
        self.calls = []
        self.fail = False
        self.on_call = None

    def complete(self, system_prompt, messages):
        self.calls.append((system_prompt, [dict(m) for m in messages]))
        if self.on_call is not None:
            self.on_call()
        if self.fail:
            raise ExternalServiceError("completion unavailable")
        return f"reply {len(self.calls)}"

    def close(self):
        pass


class FakeBookSearch:
    def __init__(self):
        self.calls = []
        self.results: list[CandidateBook] = []

    def search(self, query, limit=5):
        self.calls.append(query)
        return self.results[:limit]

    def close(self):
        pass


def candidate(title="Dom Casmurro", author="Machado de Assis", isbn: Optional[str] = None, **extra):
    return CandidateBook(title=title, author=author, isbn=isbn, source="external", **extra)


def make_token(auth_id="auth-1", session_id="session-1", expires_in=3600, **claims):
    payload = {
        "sub": auth_id,
        "session_id": session_id,
        "aud": "authenticated",
        "exp": int(time.time()) + expires_in,
        "email": f"{auth_id}@example.com",
        **claims,
    }
    return jwt.encode(payload, JWT_SECRET, algorithm="HS256")


def auth_headers(**kwargs):
    return {"Authorization": f"Bearer {make_token(**kwargs)}"}


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        DATABASE_URL="sqlite://",
        AUTH_JWT_SECRET=JWT_SECRET,
        OPENAI_API_KEY="sk-test",
    )


@pytest.fixture
def completion():
    return FakeCompletion()


@pytest.fixture
def book_search():
    return FakeBookSearch()


@pytest.fixture
def services(settings, completion, book_search):
    engine = build_engine("sqlite://", poolclass=StaticPool)
    init_db(engine)
    container = build_services(settings, engine=engine, completion=completion, book_search=book_search)
    yield container
    engine.dispose()


@pytest.fixture
def session(services):
    with Session(services.engine) as session:
        yield session


@pytest.fixture
def user(session):
    user = User(auth_id="auth-1", email="reader@example.com")
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture
def premium_user(session):
    user = User(auth_id="auth-premium", is_premium=True)
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture
def client(services):
    with TestClient(create_app(services)) as client:
        yield client
