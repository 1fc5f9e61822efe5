from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, Index
from sqlalchemy.orm import relationship

from .base import Base, now_utc

BOOKING_CONFIRMED = "confirmed"
BOOKING_CANCELLED = "cancelled"


class CalendarEvent(Base):
    __tablename__ = 'calendar_events'
    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=False)
    capacity = Column(Integer, nullable=False, default=2)
    created_by_id = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    bookings = relationship("Booking", back_populates="event", cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_calendar_events_start', 'start_time'),
    )


class Booking(Base):
    __tablename__ = 'bookings'
    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    event_id = Column(Integer, ForeignKey('calendar_events.id', ondelete='CASCADE'), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=BOOKING_CONFIRMED)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    user = relationship("User", back_populates="bookings")
    event = relationship("CalendarEvent", back_populates="bookings")

    __table_args__ = (
        Index('idx_bookings_event_status', 'event_id', 'status'),
    )
