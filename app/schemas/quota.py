"""Daily quota schema."""
import datetime as dt

from pydantic import BaseModel


class QuotaStatus(BaseModel):
    """Derived view of a user's daily message count."""
    date: dt.date
    count: int
    limit: int
    remaining: int
    is_limit_reached: bool
    is_near_limit: bool
