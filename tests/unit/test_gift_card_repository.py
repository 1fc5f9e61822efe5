from datetime import datetime, timedelta, timezone

from techdeputies.db import models
from techdeputies.db.repositories import gift_cards as gift_card_repo
from techdeputies.utils.gift_codes import format_code


def _card(db, amount=5000, **kwargs):
    return gift_card_repo.create_gift_card(db, amount_cents=amount, purchaser_email="Buyer@Example.com", **kwargs)


def test_create_records_purchase_transaction(db_session):
    card = _card(db_session, recipient_email="Friend@Example.com")
    assert card.remaining_amount == card.original_amount == 5000
    assert card.status == "active"
    assert card.purchaser_email == "buyer@example.com"
    assert card.recipient_email == "friend@example.com"
    txns = gift_card_repo.list_transactions(db_session, gift_card_id=card.id)
    assert [(t.type, t.amount) for t in txns] == [("purchase", 5000)]


def test_lookup_accepts_formatted_code(db_session):
    card = _card(db_session)
    assert gift_card_repo.get_by_code(db_session, format_code(card.code).lower()).id == card.id
    assert gift_card_repo.get_by_code(db_session, "") is None


def test_partial_then_full_redemption(db_session):
    card = _card(db_session)
    first = gift_card_repo.redeem_gift_card(db_session, code=card.code, amount_cents=2000, description="Course")
    assert first.success is True
    assert first.remaining_balance == 3000
    assert first.gift_card.status == "active"

    second = gift_card_repo.redeem_gift_card(db_session, code=card.code, amount_cents=3000, description="Course")
    assert second.success is True
    assert second.remaining_balance == 0
    assert second.gift_card.status == "redeemed"

    amounts = sorted(t.amount for t in gift_card_repo.list_transactions(db_session, gift_card_id=card.id))
    assert amounts == [-3000, -2000, 5000]
    # balance always equals the sum of its transactions
    assert sum(amounts) == second.gift_card.remaining_amount


def test_insufficient_balance_leaves_card_untouched(db_session):
    card = _card(db_session, amount=1000)
    result = gift_card_repo.redeem_gift_card(db_session, code=card.code, amount_cents=1500, description="x")
    assert result.success is False
    assert result.error == "Insufficient balance"
    assert result.remaining_balance == 1000
    assert len(gift_card_repo.list_transactions(db_session, gift_card_id=card.id)) == 1


def test_expired_card_is_marked_expired_on_redeem(db_session):
    card = _card(db_session, expires_at=datetime.now(timezone.utc) - timedelta(days=1))
    result = gift_card_repo.redeem_gift_card(db_session, code=card.code, amount_cents=100, description="x")
    assert result.success is False
    assert result.error == "Gift card has expired"
    db_session.refresh(card)
    assert card.status == "expired"


def test_inactive_and_unknown_cards(db_session):
    card = _card(db_session)
    gift_card_repo.update_status(db_session, gift_card_id=card.id, status="cancelled")
    result = gift_card_repo.redeem_gift_card(db_session, code=card.code, amount_cents=100, description="x")
    assert result.error == "Gift card is cancelled"
    missing = gift_card_repo.redeem_gift_card(db_session, code="ZZZZ-ZZZZ-ZZZZ-ZZZZ", amount_cents=100, description="x")
    assert missing.error == "Gift card not found"
    assert missing.gift_card is None


def test_listing_by_email_and_stats(db_session):
    _card(db_session, recipient_email="friend@example.com")
    redeemed = _card(db_session, amount=2500)
    gift_card_repo.redeem_gift_card(db_session, code=redeemed.code, amount_cents=2500, description="x")

    assert len(gift_card_repo.list_purchased_by(db_session, email="BUYER@example.com")) == 2
    assert len(gift_card_repo.list_received_by(db_session, email="friend@example.com")) == 1
    stats = gift_card_repo.get_stats(db_session)
    assert stats == {"total": 2, "active": 1, "redeemed": 1, "totalValue": 7500, "redeemedValue": 2500}
    assert db_session.query(models.GiftCardTransaction).count() == 3


def test_uncommitted_redemption_rolls_back_with_caller(db_session):
    card = _card(db_session)
    assert gift_card_repo.redeem_gift_card(
        db_session, code=card.code, amount_cents=0, description="Course",
    ).error == "Redemption amount must be positive"

    result = gift_card_repo.redeem_gift_card(
        db_session, code=card.code, amount_cents=1200, description="Course", commit=False,
    )
    assert result.success is True
    db_session.rollback()
    db_session.refresh(card)
    assert card.remaining_amount == 5000
    assert len(gift_card_repo.list_transactions(db_session, gift_card_id=card.id)) == 1
