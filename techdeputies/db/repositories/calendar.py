"""
Repositories for bookable calendar events and the bookings against them.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from techdeputies.db import models


class BookingConflict(Exception):
    """Raised when a booking cannot be placed on an event."""


EVENT_FULL = "Event is full"
ALREADY_BOOKED = "You already have a booking for this event"


def _now() -> datetime:
    return datetime.now(timezone.utc)


# Events

def create_event(
    db: Session,
    *,
    title: str,
    start_time: datetime,
    end_time: datetime,
    description: Optional[str] = None,
    capacity: int = 2,
    created_by_id: Optional[int] = None,
) -> models.CalendarEvent:
    event = models.CalendarEvent(
        title=title,
        description=description,
        start_time=start_time,
        end_time=end_time,
        capacity=capacity,
        created_by_id=created_by_id,
    )
    db.add(event)
    db.commit()
    db.refresh(event)
    return event


def get_event(db: Session, event_id: int) -> Optional[models.CalendarEvent]:
    return db.get(models.CalendarEvent, event_id)


def list_events(
    db: Session,
    *,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> List[models.CalendarEvent]:
    query = db.query(models.CalendarEvent)
    if start is not None:
        query = query.filter(models.CalendarEvent.start_time >= start)
    if end is not None:
        query = query.filter(models.CalendarEvent.start_time <= end)
    return query.order_by(models.CalendarEvent.start_time.asc()).all()


def update_event(db: Session, *, event: models.CalendarEvent, changes: Dict) -> models.CalendarEvent:
    for field in ("title", "description", "start_time", "end_time", "capacity"):
        if field in changes:
            setattr(event, field, changes[field])
    db.commit()
    db.refresh(event)
    return event


def delete_event(db: Session, *, event: models.CalendarEvent) -> None:
    db.delete(event)
    db.commit()


def booked_counts(db: Session, event_ids: List[int]) -> Dict[int, int]:
    if not event_ids:
        return {}
    rows = (
        db.query(models.Booking.event_id, func.count(models.Booking.id))
        .filter(models.Booking.event_id.in_(event_ids), models.Booking.status == models.BOOKING_CONFIRMED)
        .group_by(models.Booking.event_id)
        .all()
    )
    return {event_id: count for event_id, count in rows}


def booked_count(db: Session, event_id: int) -> int:
    return booked_counts(db, [event_id]).get(event_id, 0)


# Bookings

def create_booking(db: Session, *, user_id: int, event: models.CalendarEvent, notes: Optional[str] = None) -> models.Booking:
    """Place a confirmed booking; raises BookingConflict when full or duplicated."""
    existing = (
        db.query(models.Booking.id)
        .filter(
            models.Booking.user_id == user_id,
            models.Booking.event_id == event.id,
            models.Booking.status == models.BOOKING_CONFIRMED,
        )
        .first()
    )
    if existing:
        raise BookingConflict(ALREADY_BOOKED)
    if booked_count(db, event.id) >= event.capacity:
        raise BookingConflict(EVENT_FULL)
    booking = models.Booking(user_id=user_id, event_id=event.id, notes=notes, status=models.BOOKING_CONFIRMED)
    db.add(booking)
    db.commit()
    db.refresh(booking)
    return booking


def get_booking(db: Session, booking_id: int) -> Optional[models.Booking]:
    return (
        db.query(models.Booking)
        .options(joinedload(models.Booking.event), joinedload(models.Booking.user))
        .filter(models.Booking.id == booking_id)
        .first()
    )


def list_user_bookings(db: Session, *, user_id: int, include_cancelled: bool = False) -> List[models.Booking]:
    query = (
        db.query(models.Booking)
        .options(joinedload(models.Booking.event))
        .filter(models.Booking.user_id == user_id)
    )
    if not include_cancelled:
        query = query.filter(models.Booking.status == models.BOOKING_CONFIRMED)
    return query.order_by(models.Booking.created_at.desc(), models.Booking.id.desc()).all()


def list_all_bookings(db: Session) -> List[models.Booking]:
    return (
        db.query(models.Booking)
        .options(joinedload(models.Booking.event), joinedload(models.Booking.user))
        .order_by(models.Booking.created_at.desc(), models.Booking.id.desc())
        .all()
    )


def cancel_booking(db: Session, *, booking: models.Booking) -> models.Booking:
    booking.status = models.BOOKING_CANCELLED
    booking.cancelled_at = _now()
    db.commit()
    db.refresh(booking)
    return booking


def count_user_bookings_between(db: Session, *, user_id: int, start: datetime, end: datetime) -> int:
    """Confirmed bookings whose event starts inside [start, end)."""
    return (
        db.query(models.Booking)
        .join(models.CalendarEvent, models.Booking.event_id == models.CalendarEvent.id)
        .filter(
            models.Booking.user_id == user_id,
            models.Booking.status == models.BOOKING_CONFIRMED,
            models.CalendarEvent.start_time >= start,
            models.CalendarEvent.start_time < end,
        )
        .count()
    )
