from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from .base import Base, now_utc


class CoursePurchase(Base):
    __tablename__ = 'course_purchases'
    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    course_slug = Column(String(100), nullable=False)
    # Full course price in cents, regardless of how it was paid
    amount_paid = Column(Integer, nullable=False)
    gift_card_code = Column(String(16), nullable=True)
    gift_card_amount = Column(Integer, nullable=False, default=0)
    status = Column(String(20), nullable=False, default="active")  # active|refunded
    expires_at = Column(DateTime(timezone=True), nullable=True)
    purchased_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)

    user = relationship("User", back_populates="course_purchases")

    __table_args__ = (
        UniqueConstraint('user_id', 'course_slug', name='uq_course_purchases_user_course'),
    )
