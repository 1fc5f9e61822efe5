"""
Customer bookings against calendar events.

Confirmation and cancellation emails carry an iCalendar invite.
"""
import logging
from datetime import datetime
from typing import Tuple

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from techdeputies.api.deps import get_current_user, get_notifications
from techdeputies.catalog.plans import has_exceeded_session_limit
from techdeputies.db import models, schemas
from techdeputies.db.database import get_db
from techdeputies.db.repositories import calendar as calendar_repo
from techdeputies.db.repositories import subscriptions as subscription_repo

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["bookings"])


def month_bounds(moment: datetime) -> Tuple[datetime, datetime]:
    start = moment.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start, end


def _booking_out(db: Session, booking: models.Booking) -> dict:
    data = schemas.Booking.model_validate(booking).model_dump(mode="json", by_alias=True)
    if booking.event is not None:
        booked = calendar_repo.booked_count(db, booking.event.id)
        data["event"]["bookedCount"] = booked
        data["event"]["available"] = max(booking.event.capacity - booked, 0)
    return data


def _load_owned_booking(db: Session, booking_id: int, user: models.User) -> models.Booking:
    booking = calendar_repo.get_booking(db, booking_id)
    if booking is None:
        raise HTTPException(status_code=404, detail="Booking not found")
    if booking.user_id != user.id and user.role != models.ROLE_ADMIN:
        raise HTTPException(status_code=403, detail="Forbidden")
    return booking


@router.post("", status_code=status.HTTP_201_CREATED)
def create_booking(
    payload: schemas.BookingCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
    notifications=Depends(get_notifications),
):
    event = calendar_repo.get_event(db, payload.event_id)
    if event is None:
        raise HTTPException(status_code=404, detail="Event not found")

    subscription = subscription_repo.get_active(db, user_id=user.id)
    if subscription is not None:
        # Sessions count against the month the event takes place in
        start, end = month_bounds(models.as_utc(event.start_time))
        used = calendar_repo.count_user_bookings_between(db, user_id=user.id, start=start, end=end)
        if has_exceeded_session_limit(subscription.tier, used):
            raise HTTPException(
                status_code=403,
                detail="You have used all sessions included in your plan this month",
            )

    try:
        booking = calendar_repo.create_booking(db, user_id=user.id, event=event, notes=payload.notes)
    except calendar_repo.BookingConflict as e:
        raise HTTPException(status_code=409, detail=str(e))

    logger.info("booking_created id=%s user=%s event=%s", booking.id, user.id, event.id)
    notifications.notify_booking_confirmed(user, booking, event)
    return _booking_out(db, calendar_repo.get_booking(db, booking.id))


@router.get("")
def list_bookings(
    all: bool = False,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    if all and user.role == models.ROLE_ADMIN:
        items = calendar_repo.list_all_bookings(db)
    else:
        items = calendar_repo.list_user_bookings(db, user_id=user.id)
    return {"bookings": [_booking_out(db, b) for b in items]}


@router.get("/{booking_id}")
def get_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    return _booking_out(db, _load_owned_booking(db, booking_id, user))


@router.delete("/{booking_id}")
def cancel_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
    notifications=Depends(get_notifications),
):
    booking = _load_owned_booking(db, booking_id, user)
    if booking.status == models.BOOKING_CANCELLED:
        raise HTTPException(status_code=400, detail="Booking is already cancelled")
    booking = calendar_repo.cancel_booking(db, booking=booking)
    logger.info("booking_cancelled id=%s by=%s", booking.id, user.id)
    notifications.notify_booking_cancelled(booking.user, booking, booking.event)
    return {"message": "Booking cancelled", "booking": _booking_out(db, booking)}
