"""Daily assistant-message quota.

Handles:
- Reading today's count for a user
- Atomic increment via INSERT ... ON CONFLICT DO UPDATE
- Deriving limit state from the count
"""
import logging
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from app.models.usage import DailyMessageCount
from app.schemas.quota import QuotaStatus
from app.services.errors import PersistenceError

logger = logging.getLogger(__name__)


def utc_today() -> date:
    """The authoritative quota day: server UTC calendar date."""
    return datetime.now(timezone.utc).date()


class DailyQuotaTracker:
    """
    Per-user, per-UTC-day cap on assistant messages.

    The count row is the only source of truth; limit state is always derived.
    """

    def __init__(self, limit: int = 100, warning_threshold: Optional[int] = None):
        self.limit = limit
        self.warning_threshold = warning_threshold if warning_threshold is not None else limit

    def is_limit_reached(self, count: int) -> bool:
        return count >= self.limit

    def get_count(self, session: Session, user_id: int, day: Optional[date] = None) -> int:
        """
        Return the persisted count for the day, 0 when no row exists yet.

        Raises:
            PersistenceError: If the read fails
        """
        day = day or utc_today()
        statement = select(DailyMessageCount.count).where(
            DailyMessageCount.user_id == user_id,
            DailyMessageCount.date == day,
        )
        try:
            count = session.exec(statement).first()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not read daily message count: {e}") from e
        return count or 0

    def increment(self, session: Session, user_id: int, day: Optional[date] = None) -> int:
        """
        Add one to the day's count in a single upsert and return the new value.

        Concurrent increments from other sessions are resolved by the
        database's conflict handling on (user_id, date), not by reading first.

        Raises:
            PersistenceError: If the upsert fails (the increment is not applied)
        """
        day = day or utc_today()
        try:
            statement = self._upsert_statement(session, user_id, day)
            new_count = session.exec(statement).scalar_one()
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise PersistenceError(f"Could not update daily message count: {e}") from e
        return new_count

    def status(self, session: Session, user_id: int) -> QuotaStatus:
        day = utc_today()
        count = self.get_count(session, user_id, day)
        return QuotaStatus(
            date=day,
            count=count,
            limit=self.limit,
            remaining=max(self.limit - count, 0),
            is_limit_reached=self.is_limit_reached(count),
            is_near_limit=count >= self.warning_threshold,
        )

    def _upsert_statement(self, session: Session, user_id: int, day: date):
        dialect = session.get_bind().dialect.name
        if dialect == "postgresql":
            insert = postgresql.insert
        elif dialect == "sqlite":
            insert = sqlite.insert
        else:
            raise PersistenceError(f"Atomic upsert not supported for dialect '{dialect}'")

        table = DailyMessageCount.__table__
        statement = insert(table).values(user_id=user_id, date=day, count=1)
        return statement.on_conflict_do_update(
            index_elements=[table.c.user_id, table.c.date],
            set_={"count": table.c["count"] + 1},
        ).returning(table.c["count"])
