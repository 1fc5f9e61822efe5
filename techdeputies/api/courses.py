"""
Course catalog browsing, purchases and access checks.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from techdeputies.api.deps import get_current_user, get_notifications
from techdeputies.catalog import courses as catalog
from techdeputies.catalog.plans import plan_includes_all_courses
from techdeputies.db import models, schemas
from techdeputies.db.database import get_db
from techdeputies.db.repositories import courses as course_repo
from techdeputies.db.repositories import gift_cards as gift_card_repo
from techdeputies.db.repositories import subscriptions as subscription_repo

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/courses", tags=["courses"])


@router.get("")
def list_courses(category: Optional[str] = None, featured: bool = False):
    if featured:
        items = catalog.get_featured_courses()
    elif category:
        items = catalog.get_courses_by_category(category)
    else:
        items = list(catalog.get_all_courses())
    return {
        "courses": [c.to_dict() for c in items],
        "categories": catalog.get_all_categories(),
    }


@router.get("/my-courses")
def my_courses(
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    items = []
    for purchase in course_repo.list_user_courses(db, user_id=user.id):
        course = catalog.get_course_by_slug(purchase.course_slug)
        if course is None:
            logger.warning("purchase_for_unknown_course id=%s slug=%s", purchase.id, purchase.course_slug)
            continue
        entry = schemas.CoursePurchase.model_validate(purchase).model_dump(mode="json", by_alias=True)
        entry["course"] = course.to_dict()
        items.append(entry)
    return {"courses": items}


@router.get("/access")
def course_access(
    courseSlug: str,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    if catalog.get_course_by_slug(courseSlug) is None:
        raise HTTPException(status_code=404, detail="Course not found")
    if course_repo.has_purchased(db, user_id=user.id, course_slug=courseSlug):
        return {"hasAccess": True, "reason": "purchased"}
    subscription = subscription_repo.get_active(db, user_id=user.id)
    if subscription and plan_includes_all_courses(subscription.tier):
        return {"hasAccess": True, "reason": "subscription"}
    return {"hasAccess": False, "reason": "none"}


@router.get("/{slug}")
def get_course(slug: str):
    course = catalog.get_course_by_slug(slug)
    if course is None:
        raise HTTPException(status_code=404, detail="Course not found")
    return course.to_dict()


@router.post("/purchase", status_code=status.HTTP_201_CREATED)
def purchase_course(
    payload: schemas.CoursePurchaseRequest,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
    notifications=Depends(get_notifications),
):
    course = catalog.get_course_by_slug(payload.course_slug)
    if course is None:
        raise HTTPException(status_code=404, detail="Course not found")
    if course_repo.get_purchase(db, user_id=user.id, course_slug=course.slug):
        raise HTTPException(status_code=400, detail="You already own this course")

    gift_card_code = None
    gift_card_amount = 0
    if payload.gift_card_code:
        card = gift_card_repo.get_by_code(db, payload.gift_card_code)
        if card is None:
            raise HTTPException(status_code=400, detail="Gift card not found")
        if card.remaining_amount <= 0:
            raise HTTPException(status_code=400, detail="Gift card has no balance")
        gift_card_amount = min(card.remaining_amount, course.price_in_cents)
        gift_card_code = card.code

    # Gift card debit and purchase row commit together
    try:
        if gift_card_code:
            result = gift_card_repo.redeem_gift_card(
                db,
                code=gift_card_code,
                amount_cents=gift_card_amount,
                description=f"Course purchase: {course.title}",
                user_id=user.id,
                commit=False,
            )
            if not result.success:
                db.rollback()
                raise HTTPException(status_code=400, detail=result.error)
        purchase = course_repo.create_purchase(
            db,
            user_id=user.id,
            course_slug=course.slug,
            amount_paid=course.price_in_cents,
            gift_card_code=gift_card_code,
            gift_card_amount=gift_card_amount,
            commit=False,
        )
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=400, detail="You already own this course") from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("course_purchase_failed user=%s course=%s", user.id, course.slug)
        raise HTTPException(status_code=500, detail="Failed to record course purchase") from exc
    db.refresh(purchase)
    logger.info(
        "course_purchased user=%s course=%s gift_card_amount=%s",
        user.id, course.slug, gift_card_amount,
    )
    notifications.notify_course_purchase(
        user,
        course_title=course.title,
        course_slug=course.slug,
        amount_cents=course.price_in_cents,
        gift_card_amount_cents=gift_card_amount,
    )
    return {
        "purchase": schemas.CoursePurchase.model_validate(purchase).model_dump(mode="json", by_alias=True),
        "amountDue": course.price_in_cents - gift_card_amount,
    }
