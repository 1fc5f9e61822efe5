from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship

from .base import Base, now_utc


class Subscription(Base):
    __tablename__ = 'subscriptions'
    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    tier = Column(String(20), nullable=False)  # BASIC|STANDARD|PREMIUM
    status = Column(String(20), nullable=False, default="active")  # active|cancelled
    current_period_start = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    current_period_end = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    user = relationship("User", back_populates="subscriptions")

    __table_args__ = (
        Index('idx_subscriptions_user_status', 'user_id', 'status'),
    )
