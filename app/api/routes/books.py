"""Catalog search route."""
from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from app.core.container import ServiceContainer
from app.core.deps import get_current_user, get_db, get_services
from app.models.user import User
from app.schemas.book import CandidateBook

router = APIRouter(prefix="/api/books", tags=["books"])


@router.get("/search", response_model=list[CandidateBook])
def search_books(
    q: str = Query("", max_length=200),
    _: User = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
    session: Session = Depends(get_db),
) -> list[CandidateBook]:
    """
    Suggest books for a title query.

    Local catalog first, external search when the catalog has no match.
    Queries under the minimum length return an empty list.
    """
    return services.catalog.search(session, q)
