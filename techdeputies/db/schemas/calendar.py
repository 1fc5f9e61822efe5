from datetime import datetime
from typing import Optional

from pydantic import ConfigDict, Field, model_validator

from .base import CamelModel


class CalendarEventBase(CamelModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    start_time: datetime
    end_time: datetime
    capacity: int = Field(default=2, ge=1)


class CalendarEventCreate(CalendarEventBase):
    @model_validator(mode="after")
    def _end_after_start(self):
        if self.end_time <= self.start_time:
            raise ValueError("End time must be after start time")
        return self


class CalendarEventUpdate(CamelModel):
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    capacity: Optional[int] = Field(default=None, ge=1)


class CalendarEvent(CamelModel):
    id: int
    title: str
    description: Optional[str] = None
    start_time: datetime
    end_time: datetime
    capacity: int
    created_at: datetime
    booked_count: int = 0
    available: int = 0
    model_config = ConfigDict(from_attributes=True)


class BookingCreate(CamelModel):
    event_id: int
    notes: Optional[str] = None


class Booking(CamelModel):
    id: int
    user_id: int
    event_id: int
    status: str
    notes: Optional[str] = None
    created_at: datetime
    cancelled_at: Optional[datetime] = None
    event: Optional[CalendarEvent] = None
    model_config = ConfigDict(from_attributes=True)
