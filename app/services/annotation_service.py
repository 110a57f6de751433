"""Annotation operations, scoped to a user's tracked copy of a book."""
from typing import Optional
import logging

from sqlmodel import Session, select

from app.models.annotation import Annotation
from app.models.book import UserBook
from app.models.user import User
from app.services.errors import NotFoundError

logger = logging.getLogger(__name__)


def _owned_user_book(session: Session, user: User, user_book_id: int) -> UserBook:
    user_book = session.get(UserBook, user_book_id)
    if user_book is None or user_book.user_id != user.id:
        raise NotFoundError(f"Library entry {user_book_id} not found")
    return user_book


def list_annotations(
    session: Session,
    user: User,
    user_book_id: int,
    limit: Optional[int] = None,
) -> list[Annotation]:
    """Newest first."""
    _owned_user_book(session, user, user_book_id)
    statement = (
        select(Annotation)
        .where(Annotation.user_book_id == user_book_id)
        .order_by(Annotation.created_at.desc(), Annotation.id.desc())
    )
    if limit is not None:
        statement = statement.limit(limit)
    return list(session.exec(statement).all())


def recent_annotations(session: Session, user: User, limit: int = 5) -> list[Annotation]:
    """Latest annotations across all of the user's books (dashboard)."""
    statement = (
        select(Annotation)
        .where(Annotation.user_id == user.id)
        .order_by(Annotation.created_at.desc(), Annotation.id.desc())
        .limit(limit)
    )
    return list(session.exec(statement).all())


def add_annotation(session: Session, user: User, user_book_id: int, content: str) -> Annotation:
    _owned_user_book(session, user, user_book_id)
    annotation = Annotation(user_id=user.id, user_book_id=user_book_id, content=content)
    session.add(annotation)
    session.commit()
    session.refresh(annotation)
    logger.info(f"Annotation created: user={user.id}, user_book={user_book_id}, id={annotation.id}")
    return annotation


def delete_annotation(session: Session, user: User, annotation_id: int) -> None:
    annotation = session.get(Annotation, annotation_id)
    if annotation is None or annotation.user_id != user.id:
        raise NotFoundError(f"Annotation {annotation_id} not found")
    session.delete(annotation)
    session.commit()
