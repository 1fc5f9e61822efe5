"""
Fixed-window rate limiting keyed on (ip address, endpoint).
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.orm import Session

from techdeputies.db import models


def _now() -> datetime:
    return datetime.now(timezone.utc)


def check_rate_limit(
    db: Session,
    *,
    ip_address: str,
    endpoint: str,
    max_attempts: int,
    window_minutes: int,
) -> bool:
    """Record an attempt and return True when it is within the allowed budget."""
    now = _now()
    window_floor = now - timedelta(minutes=window_minutes)
    row = (
        db.query(models.RateLimit)
        .filter(models.RateLimit.ip_address == ip_address, models.RateLimit.endpoint == endpoint)
        .first()
    )
    if row is None:
        db.add(models.RateLimit(ip_address=ip_address, endpoint=endpoint, attempts=1, window_start=now))
        db.commit()
        return True

    if models.as_utc(row.window_start) < window_floor:
        row.attempts = 1
        row.window_start = now
        db.commit()
        return True

    if row.attempts >= max_attempts:
        return False

    row.attempts = row.attempts + 1
    db.commit()
    return True


def clear_rate_limits(db: Session, *, endpoint: Optional[str] = None) -> int:
    query = db.query(models.RateLimit)
    if endpoint:
        query = query.filter(models.RateLimit.endpoint == endpoint)
    removed = query.delete(synchronize_session=False)
    db.commit()
    return removed
