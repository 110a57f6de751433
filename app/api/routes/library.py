"""Library routes: the books a user is tracking.

Provides:
- GET /api/library - Active tracked books
- POST /api/library - Add a candidate book
- PATCH /api/library/{id}/progress - Update reading progress
- DELETE /api/library/{id} - Soft-delete a tracked book
"""
from fastapi import APIRouter, Depends, Response, status
from sqlmodel import Session

from app.core.container import ServiceContainer
from app.core.deps import get_current_user, get_db, get_services
from app.models.book import Book, UserBook
from app.models.user import User
from app.schemas.book import CandidateBook, LibraryEntry, ProgressUpdate

router = APIRouter(prefix="/api/library", tags=["library"])


def to_entry(user_book: UserBook, book: Book) -> LibraryEntry:
    return LibraryEntry(
        user_book_id=user_book.id,
        book_id=book.id,
        title=book.title,
        author=book.author,
        year=book.year,
        isbn=book.isbn,
        thumbnail=book.thumbnail,
        description=book.description,
        amazon_link=book.amazon_link,
        audible_link=book.audible_link,
        progress=user_book.progress,
        active=user_book.active,
        updated_at=user_book.updated_at,
    )


@router.get("", response_model=list[LibraryEntry])
def list_library(
    user: User = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
    session: Session = Depends(get_db),
) -> list[LibraryEntry]:
    return [
        to_entry(user_book, book)
        for user_book, book in services.catalog.list_active_user_books(session, user.id)
    ]


@router.post("", response_model=LibraryEntry, status_code=status.HTTP_201_CREATED)
def add_to_library(
    candidate: CandidateBook,
    user: User = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
    session: Session = Depends(get_db),
) -> LibraryEntry:
    """
    Add a book to the user's library.

    Raises:
        AlreadyAdded (409): Book already active in the library
        QuotaExceeded (403): Free-tier active book limit reached
    """
    user_book = services.catalog.add_to_library(session, user, candidate)
    return to_entry(user_book, session.get(Book, user_book.book_id))


@router.patch("/{user_book_id}/progress", response_model=LibraryEntry)
def update_progress(
    user_book_id: int,
    request: ProgressUpdate,
    user: User = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
    session: Session = Depends(get_db),
) -> LibraryEntry:
    user_book = services.catalog.update_progress(session, user, user_book_id, request.progress)
    return to_entry(user_book, session.get(Book, user_book.book_id))


@router.delete("/{user_book_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_from_library(
    user_book_id: int,
    user: User = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
    session: Session = Depends(get_db),
) -> Response:
    services.catalog.remove_from_library(session, user, user_book_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
