"""Daily assistant-message counter."""
import datetime as dt
from typing import Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel


class DailyMessageCount(SQLModel, table=True):
    """
    Assistant messages sent to a user on one UTC calendar day.

    Unique per (user_id, date); only ever incremented through an upsert.
    """
    __tablename__ = "daily_message_count"
    __table_args__ = (
        UniqueConstraint("user_id", "date", name="uq_daily_message_count_user_date"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True, nullable=False)
    date: dt.date
    count: int = Field(default=0, ge=0)
