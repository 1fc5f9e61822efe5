from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, Index
from sqlalchemy.orm import relationship

from .base import Base, now_utc

GIFT_CARD_STATUSES = ("active", "redeemed", "expired", "cancelled")


class GiftCard(Base):
    __tablename__ = 'gift_cards'
    id = Column(Integer, primary_key=True, autoincrement=True)
    # Normalized: 16 uppercase alphanumerics, no dashes
    code = Column(String(16), nullable=False, unique=True, index=True)
    original_amount = Column(Integer, nullable=False)
    remaining_amount = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default="active")
    purchaser_id = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    purchaser_email = Column(String, nullable=False)
    purchaser_name = Column(String, nullable=True)
    recipient_email = Column(String, nullable=True)
    recipient_name = Column(String, nullable=True)
    message = Column(Text, nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    transactions = relationship(
        "GiftCardTransaction",
        back_populates="gift_card",
        cascade="all, delete-orphan",
        order_by="GiftCardTransaction.id",
    )

    __table_args__ = (
        Index('idx_gift_cards_recipient_email', 'recipient_email'),
        Index('idx_gift_cards_purchaser_email', 'purchaser_email'),
    )


class GiftCardTransaction(Base):
    __tablename__ = 'gift_card_transactions'
    id = Column(Integer, primary_key=True, autoincrement=True)
    gift_card_id = Column(Integer, ForeignKey('gift_cards.id', ondelete='CASCADE'), nullable=False, index=True)
    # Positive for purchases/refunds, negative for redemptions (cents)
    amount = Column(Integer, nullable=False)
    type = Column(String(20), nullable=False)  # purchase|redemption|adjustment
    description = Column(String, nullable=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)

    gift_card = relationship("GiftCard", back_populates="transactions")
