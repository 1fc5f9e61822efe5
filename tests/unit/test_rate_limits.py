from datetime import datetime, timedelta, timezone

from techdeputies.db import models
from techdeputies.db.repositories.rate_limits import check_rate_limit, clear_rate_limits


def _check(db, ip="10.0.0.1", endpoint="password-reset"):
    return check_rate_limit(db, ip_address=ip, endpoint=endpoint, max_attempts=3, window_minutes=60)


def test_allows_until_budget_spent(db_session):
    assert [_check(db_session) for _ in range(4)] == [True, True, True, False]
    # keys are independent
    assert _check(db_session, ip="10.0.0.2") is True
    assert _check(db_session, endpoint="bmad") is True


def test_window_resets_after_expiry(db_session):
    for _ in range(3):
        _check(db_session)
    row = db_session.query(models.RateLimit).filter_by(ip_address="10.0.0.1").one()
    row.window_start = datetime.now(timezone.utc) - timedelta(minutes=61)
    db_session.commit()
    assert _check(db_session) is True
    db_session.refresh(row)
    assert row.attempts == 1


def test_clear_by_endpoint(db_session):
    _check(db_session)
    _check(db_session, endpoint="bmad")
    assert clear_rate_limits(db_session, endpoint="bmad") == 1
    assert clear_rate_limits(db_session) == 1
