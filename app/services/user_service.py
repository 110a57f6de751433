"""User profile lookup."""
from typing import Optional
import logging

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from app.models.user import User

logger = logging.getLogger(__name__)


def get_user_by_auth_id(session: Session, auth_id: str) -> Optional[User]:
    return session.exec(select(User).where(User.auth_id == auth_id)).first()


def get_or_create_user(
    session: Session,
    auth_id: str,
    email: Optional[str] = None,
    name: Optional[str] = None,
) -> User:
    """
    Return the profile for an auth identity, creating a free-tier one if missing.

    A concurrent first request may insert the same auth_id; the unique
    constraint wins and the existing row is returned.
    """
    user = get_user_by_auth_id(session, auth_id)
    if user is not None:
        return user

    user = User(auth_id=auth_id, email=email, name=name, is_premium=False)
    session.add(user)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        return get_user_by_auth_id(session, auth_id)

    session.refresh(user)
    logger.info(f"User profile created: id={user.id}")
    return user
