"""Book catalog resolution and library management.

Handles:
- Title search against the local catalog with external fallback
- Book de-duplication on add (title+author or ISBN)
- Free-tier limit on active books
- Soft delete / reactivation of tracked books
- Reading progress
"""
from typing import Optional
import logging

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from app.models.base import utc_now
from app.models.book import Book, UserBook
from app.models.user import User
from app.schemas.book import CandidateBook
from app.services.book_search import BookSearchClient
from app.services.errors import (
    AlreadyAdded,
    NotFoundError,
    PersistenceError,
    QuotaExceeded,
)

logger = logging.getLogger(__name__)


class BookCatalogResolver:
    """Resolves free-text titles to canonical books and manages user libraries."""

    def __init__(
        self,
        book_search: BookSearchClient,
        min_query_length: int = 3,
        result_limit: int = 5,
        free_tier_limit: int = 2,
        dedup_key: str = "title_author",
        placeholder_thumbnail: str = "/placeholder.svg?height=200&width=150",
    ):
        self.book_search = book_search
        self.min_query_length = min_query_length
        self.result_limit = result_limit
        self.free_tier_limit = free_tier_limit
        self.dedup_key = dedup_key
        self.placeholder_thumbnail = placeholder_thumbnail

    def search(self, session: Session, query: str) -> list[CandidateBook]:
        """
        Return up to `result_limit` candidates for a title query.

        Queries shorter than `min_query_length` return [] without any lookup.
        Local catalog matches win; the external search runs only when the
        catalog has none.

        Raises:
            ExternalServiceError: If the fallback search fails
            PersistenceError: If the catalog query fails
        """
        query = (query or "").strip()
        if len(query) < self.min_query_length:
            return []

        statement = (
            select(Book)
            .where(func.lower(Book.title).contains(query.lower(), autoescape=True))
            .order_by(Book.title)
            .limit(self.result_limit)
        )
        try:
            books = session.exec(statement).all()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not search the catalog: {e}") from e
        if books:
            return [self._to_candidate(book) for book in books]

        logger.debug(f"No catalog match for {query!r}, using external search")
        return self.book_search.search(query, limit=self.result_limit)

    def add_to_library(self, session: Session, user: User, candidate: CandidateBook) -> UserBook:
        """
        Track a book for the user, reusing catalog and library rows.

        Raises:
            QuotaExceeded: Non-premium user already at the active-book limit
            AlreadyAdded: Book is already active in the user's library
            PersistenceError: If a write fails
        """
        try:
            book = self.find_existing_book(session, candidate)
            user_book = None
            if book is not None:
                user_book = session.exec(
                    select(UserBook).where(
                        UserBook.user_id == user.id,
                        UserBook.book_id == book.id,
                    )
                ).first()

            if user_book is not None and user_book.active:
                raise AlreadyAdded(f"'{book.title}' is already in your library")

            self._check_tier_limit(session, user)

            if book is None:
                book = self._insert_book(session, candidate)

            if user_book is not None:
                user_book.active = True
                user_book.updated_at = utc_now()
            else:
                user_book = UserBook(user_id=user.id, book_id=book.id, progress=0, active=True)
            session.add(user_book)
            session.commit()
            session.refresh(user_book)
        except SQLAlchemyError as e:
            session.rollback()
            raise PersistenceError(f"Could not add book to library: {e}") from e

        logger.info(f"Book added to library: user={user.id}, book={book.id}, user_book={user_book.id}")
        return user_book

    def remove_from_library(self, session: Session, user: User, user_book_id: int) -> None:
        """
        Soft-delete a tracked book. The Book row and annotations are kept.

        Raises:
            NotFoundError: If the entry is not the user's
            PersistenceError: If the update fails
        """
        try:
            user_book = self.get_user_book(session, user, user_book_id)
            user_book.active = False
            user_book.updated_at = utc_now()
            session.add(user_book)
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise PersistenceError(f"Could not remove book from library: {e}") from e
        logger.info(f"Book removed from library: user={user.id}, user_book={user_book_id}")

    def update_progress(self, session: Session, user: User, user_book_id: int, progress: int) -> UserBook:
        try:
            user_book = self.get_user_book(session, user, user_book_id)
            if not user_book.active:
                raise NotFoundError(f"Library entry {user_book_id} not found")
            user_book.progress = progress
            user_book.updated_at = utc_now()
            session.add(user_book)
            session.commit()
            session.refresh(user_book)
        except SQLAlchemyError as e:
            session.rollback()
            raise PersistenceError(f"Could not update reading progress: {e}") from e
        return user_book

    def list_active_user_books(self, session: Session, user_id: int) -> list[tuple[UserBook, Book]]:
        statement = (
            select(UserBook, Book)
            .join(Book, UserBook.book_id == Book.id)
            .where(UserBook.user_id == user_id, UserBook.active == True)  # noqa: E712
            .order_by(UserBook.created_at)
        )
        return list(session.exec(statement).all())

    def get_user_book(self, session: Session, user: User, user_book_id: int) -> UserBook:
        user_book = session.get(UserBook, user_book_id)
        if user_book is None or user_book.user_id != user.id:
            raise NotFoundError(f"Library entry {user_book_id} not found")
        return user_book

    def find_existing_book(self, session: Session, candidate: CandidateBook) -> Optional[Book]:
        """Look up the catalog row for a candidate using the configured dedup key."""
        if self.dedup_key == "isbn" and candidate.isbn:
            return session.exec(select(Book).where(Book.isbn == candidate.isbn)).first()

        return session.exec(
            select(Book).where(
                Book.title == candidate.title,
                Book.author == candidate.author,
            )
        ).first()

    def _check_tier_limit(self, session: Session, user: User) -> None:
        if user.is_premium:
            return
        statement = select(func.count()).select_from(UserBook).where(
            UserBook.user_id == user.id,
            UserBook.active == True,  # noqa: E712
        )
        active_count = session.exec(statement).one()
        if active_count >= self.free_tier_limit:
            raise QuotaExceeded(self.free_tier_limit)

    def _insert_book(self, session: Session, candidate: CandidateBook) -> Book:
        book = Book(
            title=candidate.title,
            author=candidate.author,
            year=candidate.year,
            isbn=candidate.isbn,
            thumbnail=candidate.thumbnail,
            description=candidate.description,
            amazon_link=candidate.amazon_link,
            audible_link=candidate.audible_link,
        )
        session.add(book)
        session.flush()
        return book

    def _to_candidate(self, book: Book) -> CandidateBook:
        return CandidateBook(
            id=book.id,
            title=book.title,
            author=book.author,
            year=book.year,
            isbn=book.isbn,
            thumbnail=book.thumbnail or self.placeholder_thumbnail,
            description=book.description or "",
            amazon_link=book.amazon_link,
            audible_link=book.audible_link,
            source="catalog",
        )
