"""Current user profile and daily quota."""
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlmodel import Session

from app.core.container import ServiceContainer
from app.core.deps import get_current_user, get_db, get_services
from app.models.user import User
from app.schemas.quota import QuotaStatus

router = APIRouter(prefix="/api", tags=["users"])


class UserProfile(BaseModel):
    id: int
    auth_id: str
    is_premium: bool
    name: Optional[str] = None
    email: Optional[str] = None


@router.get("/me", response_model=UserProfile)
def read_me(user: User = Depends(get_current_user)) -> UserProfile:
    return UserProfile(
        id=user.id,
        auth_id=user.auth_id,
        is_premium=user.is_premium,
        name=user.name,
        email=user.email,
    )


@router.get("/quota", response_model=QuotaStatus)
def read_quota(
    user: User = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
    session: Session = Depends(get_db),
) -> QuotaStatus:
    """Today's (UTC) assistant message count and limit state."""
    return services.quota.status(session, user.id)
