"""Annotation routes (notes on a tracked book)."""
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlmodel import Session

from app.core.deps import get_current_user, get_db
from app.models.annotation import Annotation
from app.models.user import User
from app.schemas.annotation import AnnotationCreate, AnnotationRead
from app.services import annotation_service

router = APIRouter(prefix="/api", tags=["annotations"])


def to_read(annotation: Annotation) -> AnnotationRead:
    return AnnotationRead(
        id=annotation.id,
        user_book_id=annotation.user_book_id,
        content=annotation.content,
        created_at=annotation.created_at,
    )


@router.get("/library/{user_book_id}/annotations", response_model=list[AnnotationRead])
def list_annotations(
    user_book_id: int,
    limit: Optional[int] = Query(None, ge=1, le=500),
    user: User = Depends(get_current_user),
    session: Session = Depends(get_db),
) -> list[AnnotationRead]:
    annotations = annotation_service.list_annotations(session, user, user_book_id, limit=limit)
    return [to_read(a) for a in annotations]


@router.post(
    "/library/{user_book_id}/annotations",
    response_model=AnnotationRead,
    status_code=status.HTTP_201_CREATED,
)
def add_annotation(
    user_book_id: int,
    request: AnnotationCreate,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_db),
) -> AnnotationRead:
    annotation = annotation_service.add_annotation(session, user, user_book_id, request.content)
    return to_read(annotation)


@router.get("/annotations/recent", response_model=list[AnnotationRead])
def recent_annotations(
    limit: int = Query(5, ge=1, le=50),
    user: User = Depends(get_current_user),
    session: Session = Depends(get_db),
) -> list[AnnotationRead]:
    return [to_read(a) for a in annotation_service.recent_annotations(session, user, limit=limit)]


@router.delete("/annotations/{annotation_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_annotation(
    annotation_id: int,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_db),
) -> Response:
    annotation_service.delete_annotation(session, user, annotation_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
