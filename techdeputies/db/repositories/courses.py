"""
Repositories for course purchases.
"""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from techdeputies.db import models

STATUS_ACTIVE = "active"


def create_purchase(
    db: Session,
    *,
    user_id: int,
    course_slug: str,
    amount_paid: int,
    gift_card_code: Optional[str] = None,
    gift_card_amount: int = 0,
    expires_at: Optional[datetime] = None,
    commit: bool = True,
) -> models.CoursePurchase:
    purchase = models.CoursePurchase(
        user_id=user_id,
        course_slug=course_slug,
        amount_paid=amount_paid,
        gift_card_code=gift_card_code,
        gift_card_amount=gift_card_amount,
        status=STATUS_ACTIVE,
        expires_at=expires_at,
    )
    db.add(purchase)
    if commit:
        db.commit()
        db.refresh(purchase)
    else:
        db.flush()
    return purchase


def get_by_id(db: Session, purchase_id: int) -> Optional[models.CoursePurchase]:
    return db.get(models.CoursePurchase, purchase_id)


def get_purchase(db: Session, *, user_id: int, course_slug: str) -> Optional[models.CoursePurchase]:
    return (
        db.query(models.CoursePurchase)
        .filter(models.CoursePurchase.user_id == user_id, models.CoursePurchase.course_slug == course_slug)
        .first()
    )


def list_user_courses(db: Session, *, user_id: int) -> List[models.CoursePurchase]:
    return (
        db.query(models.CoursePurchase)
        .filter(models.CoursePurchase.user_id == user_id, models.CoursePurchase.status == STATUS_ACTIVE)
        .order_by(models.CoursePurchase.purchased_at.desc(), models.CoursePurchase.id.desc())
        .all()
    )


def has_purchased(db: Session, *, user_id: int, course_slug: str) -> bool:
    return (
        db.query(models.CoursePurchase.id)
        .filter(
            models.CoursePurchase.user_id == user_id,
            models.CoursePurchase.course_slug == course_slug,
            models.CoursePurchase.status == STATUS_ACTIVE,
        )
        .first()
        is not None
    )


def list_all(db: Session) -> List[models.CoursePurchase]:
    return db.query(models.CoursePurchase).order_by(models.CoursePurchase.purchased_at.desc()).all()


def get_stats(db: Session) -> dict:
    purchases = db.query(models.CoursePurchase).filter(models.CoursePurchase.status == STATUS_ACTIVE).all()
    return {
        "totalPurchases": len(purchases),
        "totalRevenue": sum(p.amount_paid for p in purchases),
        "uniqueCourses": len({p.course_slug for p in purchases}),
    }
