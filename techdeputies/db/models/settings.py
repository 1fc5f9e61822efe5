from sqlalchemy import Column, Integer, String, DateTime, Boolean, Text, UniqueConstraint

from .base import Base, now_utc


class Setting(Base):
    __tablename__ = 'settings'
    key = Column(String(100), primary_key=True)
    value = Column(Text, nullable=False)
    encrypted = Column(Boolean, nullable=False, default=False)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)


class RateLimit(Base):
    __tablename__ = 'rate_limits'
    id = Column(Integer, primary_key=True, autoincrement=True)
    ip_address = Column(String(64), nullable=False)
    endpoint = Column(String(100), nullable=False)
    attempts = Column(Integer, nullable=False, default=1)
    window_start = Column(DateTime(timezone=True), default=now_utc, nullable=False)

    __table_args__ = (
        UniqueConstraint('ip_address', 'endpoint', name='uq_rate_limits_ip_endpoint'),
    )
