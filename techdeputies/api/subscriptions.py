"""
Subscription plans and the signed-in user's subscriptions.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from techdeputies.api.deps import get_current_user, get_notifications
from techdeputies.catalog.plans import get_all_plans, get_plan, get_plan_features
from techdeputies.db import models, schemas
from techdeputies.db.database import get_db
from techdeputies.db.repositories import subscriptions as subscription_repo

logger = logging.getLogger(__name__)

plans_router = APIRouter(prefix="/plans", tags=["subscriptions"])
router = APIRouter(prefix="/subscriptions", tags=["subscriptions"])


@plans_router.get("")
def list_plans():
    return {"plans": [p.to_dict() for p in get_all_plans()]}


def _subscription_out(subscription: models.Subscription) -> dict:
    data = schemas.Subscription.model_validate(subscription).model_dump(mode="json", by_alias=True)
    plan = get_plan(subscription.tier)
    data["plan"] = plan.to_dict() if plan else None
    return data


@router.get("")
def list_subscriptions(
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    return {"subscriptions": [_subscription_out(s) for s in subscription_repo.list_active(db, user_id=user.id)]}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_subscription(
    payload: schemas.SubscriptionCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
    notifications=Depends(get_notifications),
):
    if subscription_repo.get_active(db, user_id=user.id):
        raise HTTPException(status_code=409, detail="You already have an active subscription")
    plan = get_plan(payload.tier)
    subscription = subscription_repo.create_subscription(db, user_id=user.id, tier=plan.tier)
    logger.info("subscription_created id=%s user=%s tier=%s", subscription.id, user.id, plan.tier)
    notifications.notify_subscription_confirmed(user, plan.display_name, get_plan_features(plan.tier))
    return _subscription_out(subscription)


@router.delete("/{subscription_id}")
def cancel_subscription(
    subscription_id: int,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
    notifications=Depends(get_notifications),
):
    subscription = subscription_repo.get_by_id(db, subscription_id)
    if subscription is None or (subscription.user_id != user.id and user.role != models.ROLE_ADMIN):
        raise HTTPException(status_code=404, detail="Subscription not found")
    if subscription.status != subscription_repo.STATUS_ACTIVE:
        raise HTTPException(status_code=400, detail="Subscription is not active")
    subscription = subscription_repo.cancel(db, subscription=subscription)
    plan = get_plan(subscription.tier)
    notifications.notify_subscription_cancelled(subscription.user, plan.display_name if plan else subscription.tier)
    return {"message": "Subscription cancelled", "subscription": _subscription_out(subscription)}
