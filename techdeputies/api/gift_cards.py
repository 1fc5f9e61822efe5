"""
Gift card purchase, listing, redemption and public balance checks.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from techdeputies.api.deps import get_current_user, get_notifications
from techdeputies.catalog.courses import format_price
from techdeputies.db import models, schemas
from techdeputies.db.database import get_db
from techdeputies.db.repositories import gift_cards as gift_card_repo

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/gift-cards", tags=["gift-cards"])


def _card_out(card: models.GiftCard) -> dict:
    return schemas.GiftCard.model_validate(card).model_dump(mode="json", by_alias=True)


@router.post("", status_code=status.HTTP_201_CREATED)
def purchase_gift_card(
    payload: schemas.GiftCardCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
    notifications=Depends(get_notifications),
):
    card = gift_card_repo.create_gift_card(
        db,
        amount_cents=payload.amount,
        purchaser_email=user.email,
        purchaser_name=user.name,
        purchaser_id=user.id,
        recipient_email=payload.recipient_email,
        recipient_name=payload.recipient_name,
        message=payload.message,
    )
    if card.recipient_email:
        notifications.notify_gift_card(card)
    return {"giftCard": _card_out(card)}


@router.get("")
def list_my_gift_cards(
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    return {
        "purchased": [_card_out(c) for c in gift_card_repo.list_purchased_by(db, email=user.email)],
        "received": [_card_out(c) for c in gift_card_repo.list_received_by(db, email=user.email)],
    }


@router.post("/redeem")
def redeem_gift_card(
    payload: schemas.GiftCardRedeem,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    result = gift_card_repo.redeem_gift_card(
        db,
        code=payload.code,
        amount_cents=payload.amount,
        description="Gift card redemption",
        user_id=user.id,
    )
    if not result.success:
        status_code = 404 if result.gift_card is None else 400
        detail = result.error
        if result.remaining_balance is not None:
            detail = f"{result.error}. Remaining balance: {format_price(result.remaining_balance)}"
        raise HTTPException(status_code=status_code, detail=detail)

    if result.remaining_balance == 0:
        message = "Gift card fully redeemed"
    else:
        message = f"{format_price(payload.amount)} redeemed. Remaining balance: {format_price(result.remaining_balance)}"
    return {"success": True, "message": message, "remainingBalance": result.remaining_balance}


@router.get("/check")
def check_gift_card(code: Optional[str] = None, db: Session = Depends(get_db)):
    if not code:
        raise HTTPException(status_code=400, detail="Gift card code is required")
    card = gift_card_repo.get_by_code(db, code)
    if card is None:
        return {"found": False}
    expired = card.status == gift_card_repo.STATUS_EXPIRED or gift_card_repo.is_expired(card)
    return {
        "found": True,
        "status": gift_card_repo.STATUS_EXPIRED if expired else card.status,
        "balance": card.remaining_amount,
        "originalAmount": card.original_amount,
        "expiresAt": card.expires_at.isoformat() if card.expires_at else None,
        "expired": expired,
        "redeemed": card.status == gift_card_repo.STATUS_REDEEMED,
        "cancelled": card.status == gift_card_repo.STATUS_CANCELLED,
    }
