from datetime import date, timedelta

import pytest
from sqlmodel import select

from app.models.usage import DailyMessageCount
from app.services.errors import PersistenceError
from app.services.quota_service import DailyQuotaTracker, utc_today


def test_count_is_zero_without_a_row(services, session, user):
    assert services.quota.get_count(session, user.id) == 0


def test_sequential_increments_share_one_row(services, session, user):
    day = date(2024, 5, 1)
    assert services.quota.increment(session, user.id, day) == 1
    assert services.quota.increment(session, user.id, day) == 2
    assert services.quota.get_count(session, user.id, day) == 2

    rows = session.exec(
        select(DailyMessageCount).where(DailyMessageCount.user_id == user.id)
    ).all()
    assert len(rows) == 1


def test_days_are_counted_separately(services, session, user):
    today = utc_today()
    services.quota.increment(session, user.id, today - timedelta(days=1))
    services.quota.increment(session, user.id, today)
    services.quota.increment(session, user.id, today)

    assert services.quota.get_count(session, user.id, today - timedelta(days=1)) == 1
    assert services.quota.get_count(session, user.id) == 2


@pytest.mark.parametrize("count,expected", [(0, False), (99, False), (100, True), (150, True)])
def test_limit_boundary(count, expected):
    assert DailyQuotaTracker(limit=100).is_limit_reached(count) is expected


def test_status_is_derived_from_count(services, session, user):
    session.add(DailyMessageCount(user_id=user.id, date=utc_today(), count=95))
    session.commit()

    status = services.quota.status(session, user.id)
    assert status.count == 95
    assert status.remaining == 5
    assert status.is_near_limit
    assert not status.is_limit_reached


def test_failed_upsert_raises_persistence_error(services, session, user):
    DailyMessageCount.__table__.drop(services.engine)

    with pytest.raises(PersistenceError):
        services.quota.increment(session, user.id)
