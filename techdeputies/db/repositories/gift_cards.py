"""
Repositories for gift cards and their balance transactions.

Every balance change writes a transaction row in the same commit.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.orm import Session

from techdeputies.db import models
from techdeputies.utils import gift_codes

logger = logging.getLogger(__name__)

STATUS_ACTIVE = "active"
STATUS_REDEEMED = "redeemed"
STATUS_EXPIRED = "expired"
STATUS_CANCELLED = "cancelled"


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class RedemptionResult:
    success: bool
    error: Optional[str] = None
    remaining_balance: Optional[int] = None
    gift_card: Optional[models.GiftCard] = None


def _unique_code(db: Session) -> str:
    for _ in range(10):
        code = gift_codes.generate_code()
        if not db.query(models.GiftCard.id).filter(models.GiftCard.code == code).first():
            return code
    raise RuntimeError("Unable to allocate a unique gift card code")


def create_gift_card(
    db: Session,
    *,
    amount_cents: int,
    purchaser_email: str,
    purchaser_name: Optional[str] = None,
    purchaser_id: Optional[int] = None,
    recipient_email: Optional[str] = None,
    recipient_name: Optional[str] = None,
    message: Optional[str] = None,
    expires_at: Optional[datetime] = None,
) -> models.GiftCard:
    card = models.GiftCard(
        code=_unique_code(db),
        original_amount=amount_cents,
        remaining_amount=amount_cents,
        status=STATUS_ACTIVE,
        purchaser_id=purchaser_id,
        purchaser_email=purchaser_email.strip().lower(),
        purchaser_name=purchaser_name or None,
        recipient_email=(recipient_email.strip().lower() if recipient_email else None),
        recipient_name=recipient_name or None,
        message=message or None,
        expires_at=expires_at,
    )
    db.add(card)
    db.flush()
    db.add(models.GiftCardTransaction(
        gift_card_id=card.id,
        amount=amount_cents,
        type="purchase",
        description="Gift card purchased",
        user_id=purchaser_id,
    ))
    db.commit()
    db.refresh(card)
    logger.info("gift_card_created id=%s amount=%s", card.id, amount_cents)
    return card


def get_by_id(db: Session, gift_card_id: int) -> Optional[models.GiftCard]:
    return db.get(models.GiftCard, gift_card_id)


def get_by_code(db: Session, code: str) -> Optional[models.GiftCard]:
    clean = gift_codes.normalize_code(code)
    if not clean:
        return None
    return db.query(models.GiftCard).filter(models.GiftCard.code == clean).first()


def list_purchased_by(db: Session, *, email: str) -> List[models.GiftCard]:
    return (
        db.query(models.GiftCard)
        .filter(models.GiftCard.purchaser_email == email.strip().lower())
        .order_by(models.GiftCard.created_at.desc(), models.GiftCard.id.desc())
        .all()
    )


def list_received_by(db: Session, *, email: str) -> List[models.GiftCard]:
    return (
        db.query(models.GiftCard)
        .filter(models.GiftCard.recipient_email == email.strip().lower())
        .order_by(models.GiftCard.created_at.desc(), models.GiftCard.id.desc())
        .all()
    )


def list_all(db: Session) -> List[models.GiftCard]:
    return db.query(models.GiftCard).order_by(models.GiftCard.created_at.desc(), models.GiftCard.id.desc()).all()


def is_expired(card: models.GiftCard, *, now: Optional[datetime] = None) -> bool:
    if card.expires_at is None:
        return False
    return models.as_utc(card.expires_at) < (now or _now())


def redeem_gift_card(
    db: Session,
    *,
    code: str,
    amount_cents: int,
    description: str,
    user_id: Optional[int] = None,
    commit: bool = True,
) -> RedemptionResult:
    """Debit a card. With ``commit=False`` the debit is only flushed so the caller owns the transaction."""
    if amount_cents <= 0:
        return RedemptionResult(success=False, error="Redemption amount must be positive")
    card = get_by_code(db, code)
    if card is None:
        return RedemptionResult(success=False, error="Gift card not found")

    if card.status != STATUS_ACTIVE:
        return RedemptionResult(success=False, error=f"Gift card is {card.status}", gift_card=card)

    if is_expired(card):
        card.status = STATUS_EXPIRED
        db.commit()
        return RedemptionResult(success=False, error="Gift card has expired", gift_card=card)

    if amount_cents > card.remaining_amount:
        return RedemptionResult(
            success=False,
            error="Insufficient balance",
            remaining_balance=card.remaining_amount,
            gift_card=card,
        )

    new_balance = card.remaining_amount - amount_cents
    card.remaining_amount = new_balance
    card.status = STATUS_REDEEMED if new_balance == 0 else STATUS_ACTIVE
    db.add(models.GiftCardTransaction(
        gift_card_id=card.id,
        amount=-amount_cents,
        type="redemption",
        description=description,
        user_id=user_id,
    ))
    if commit:
        db.commit()
        db.refresh(card)
    else:
        db.flush()
    logger.info("gift_card_redeemed id=%s amount=%s remaining=%s", card.id, amount_cents, new_balance)
    return RedemptionResult(success=True, remaining_balance=new_balance, gift_card=card)


def update_status(db: Session, *, gift_card_id: int, status: str) -> Optional[models.GiftCard]:
    card = get_by_id(db, gift_card_id)
    if card is None:
        return None
    card.status = status
    db.commit()
    db.refresh(card)
    return card


def list_transactions(db: Session, *, gift_card_id: int) -> List[models.GiftCardTransaction]:
    return (
        db.query(models.GiftCardTransaction)
        .filter(models.GiftCardTransaction.gift_card_id == gift_card_id)
        .order_by(models.GiftCardTransaction.created_at.desc(), models.GiftCardTransaction.id.desc())
        .all()
    )


def get_stats(db: Session) -> dict:
    cards = db.query(models.GiftCard).all()
    return {
        "total": len(cards),
        "active": sum(1 for c in cards if c.status == STATUS_ACTIVE),
        "redeemed": sum(1 for c in cards if c.status == STATUS_REDEEMED),
        "totalValue": sum(c.original_amount for c in cards),
        "redeemedValue": sum(c.original_amount - c.remaining_amount for c in cards),
    }
