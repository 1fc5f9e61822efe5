"""
Bookable calendar events. Listing is public; changes are admin only.
"""
import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from techdeputies.api.deps import require_admin
from techdeputies.db import models, schemas
from techdeputies.db.database import get_db
from techdeputies.db.repositories import calendar as calendar_repo

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/calendar-events", tags=["calendar"])


def event_out(event: models.CalendarEvent, booked: int) -> dict:
    data = schemas.CalendarEvent.model_validate(event).model_dump(mode="json", by_alias=True)
    data["bookedCount"] = booked
    data["available"] = max(event.capacity - booked, 0)
    return data


@router.get("")
def list_events(
    startDate: Optional[datetime] = None,
    endDate: Optional[datetime] = None,
    db: Session = Depends(get_db),
):
    events = calendar_repo.list_events(db, start=startDate, end=endDate)
    counts = calendar_repo.booked_counts(db, [e.id for e in events])
    return {"events": [event_out(e, counts.get(e.id, 0)) for e in events]}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_event(
    payload: schemas.CalendarEventCreate,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    event = calendar_repo.create_event(
        db,
        title=payload.title,
        description=payload.description,
        start_time=payload.start_time,
        end_time=payload.end_time,
        capacity=payload.capacity,
        created_by_id=admin.id,
    )
    logger.info("calendar_event_created id=%s by=%s", event.id, admin.id)
    return event_out(event, 0)


@router.patch("/{event_id}")
def update_event(
    event_id: int,
    payload: schemas.CalendarEventUpdate,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    event = calendar_repo.get_event(db, event_id)
    if event is None:
        raise HTTPException(status_code=404, detail="Event not found")
    changes = payload.model_dump(exclude_unset=True)
    start = changes.get("start_time", event.start_time)
    end = changes.get("end_time", event.end_time)
    if models.as_utc(end) <= models.as_utc(start):
        raise HTTPException(status_code=400, detail="End time must be after start time")
    event = calendar_repo.update_event(db, event=event, changes=changes)
    return event_out(event, calendar_repo.booked_count(db, event.id))


@router.delete("/{event_id}")
def delete_event(
    event_id: int,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    event = calendar_repo.get_event(db, event_id)
    if event is None:
        raise HTTPException(status_code=404, detail="Event not found")
    calendar_repo.delete_event(db, event=event)
    logger.info("calendar_event_deleted id=%s by=%s", event_id, admin.id)
    return {"message": "Event deleted"}
