"""
Repositories for subscription plan enrollments.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.orm import Session

from techdeputies.db import models

STATUS_ACTIVE = "active"
STATUS_CANCELLED = "cancelled"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def create_subscription(db: Session, *, user_id: int, tier: str) -> models.Subscription:
    sub = models.Subscription(user_id=user_id, tier=tier, status=STATUS_ACTIVE, current_period_start=_now())
    db.add(sub)
    db.commit()
    db.refresh(sub)
    return sub


def get_by_id(db: Session, subscription_id: int) -> Optional[models.Subscription]:
    return db.get(models.Subscription, subscription_id)


def list_active(db: Session, *, user_id: int) -> List[models.Subscription]:
    return (
        db.query(models.Subscription)
        .filter(models.Subscription.user_id == user_id, models.Subscription.status == STATUS_ACTIVE)
        .order_by(models.Subscription.created_at.desc(), models.Subscription.id.desc())
        .all()
    )


def get_active(db: Session, *, user_id: int) -> Optional[models.Subscription]:
    active = list_active(db, user_id=user_id)
    return active[0] if active else None


def cancel(db: Session, *, subscription: models.Subscription) -> models.Subscription:
    subscription.status = STATUS_CANCELLED
    subscription.cancelled_at = _now()
    db.commit()
    db.refresh(subscription)
    return subscription


def list_all(db: Session) -> List[models.Subscription]:
    return db.query(models.Subscription).order_by(models.Subscription.created_at.desc()).all()
