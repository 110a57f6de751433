"""FastAPI dependencies: services, database session, auth session, current user."""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterator, Optional
import logging

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlmodel import Session

from app.core.container import ServiceContainer
from app.models.user import User
from app.services.conversation_manager import ConversationManager
from app.services.user_service import get_or_create_user

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass
class AuthSession:
    """Identity established by the auth provider's access token."""
    auth_id: str
    session_id: str
    expires_at: Optional[datetime] = None
    email: Optional[str] = None
    name: Optional[str] = None


def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services


def get_db(services: ServiceContainer = Depends(get_services)) -> Iterator[Session]:
    with Session(services.engine) as session:
        yield session


def get_session(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    services: ServiceContainer = Depends(get_services),
) -> Optional[AuthSession]:
    """
    Decode the bearer token into an AuthSession.

    Returns None when the token is missing, expired or invalid.
    """
    if credentials is None:
        return None

    settings = services.settings
    try:
        claims = jwt.decode(
            credentials.credentials,
            settings.AUTH_JWT_SECRET,
            algorithms=[settings.AUTH_JWT_ALGORITHM],
            audience=settings.AUTH_JWT_AUDIENCE,
            options={
                "require": ["sub", "exp"],
                "verify_aud": settings.AUTH_JWT_AUDIENCE is not None,
            },
        )
    except jwt.PyJWTError as e:
        logger.info(f"Rejected access token: {e}")
        return None

    metadata = claims.get("user_metadata") or {}
    return AuthSession(
        auth_id=claims["sub"],
        session_id=claims.get("session_id") or claims["sub"],
        expires_at=datetime.fromtimestamp(claims["exp"], tz=timezone.utc),
        email=claims.get("email"),
        name=metadata.get("full_name") or metadata.get("name"),
    )


def require_session(auth: Optional[AuthSession] = Depends(get_session)) -> AuthSession:
    if auth is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return auth


def get_current_user(
    auth: AuthSession = Depends(require_session),
    session: Session = Depends(get_db),
) -> User:
    return get_or_create_user(session, auth.auth_id, email=auth.email, name=auth.name)


def get_conversation_manager(
    auth: AuthSession = Depends(require_session),
    user: User = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
) -> ConversationManager:
    return services.sessions.get_or_create(auth.session_id, user.id, expires_at=auth.expires_at)
