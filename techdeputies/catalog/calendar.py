"""Business-hours slot rules for bookable sessions."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import List, Optional

START_HOUR = 10
END_HOUR = 16
SLOT_DURATION_HOURS = 1
DEFAULT_CAPACITY = 2


@dataclass
class CalendarSlot:
    start_time: datetime
    end_time: datetime
    capacity: int = DEFAULT_CAPACITY
    booked_count: int = 0

    @property
    def is_available(self) -> bool:
        return self.booked_count < self.capacity


def generate_day_slots(day: date, tzinfo=None) -> List[CalendarSlot]:
    """One-hour slots from 10:00 until the 16:00 close on ``day``."""
    if isinstance(day, datetime):
        tzinfo = tzinfo or day.tzinfo
        day = day.date()
    current = datetime.combine(day, time(START_HOUR, 0), tzinfo=tzinfo)
    day_end = datetime.combine(day, time(END_HOUR, 0), tzinfo=tzinfo)
    step = timedelta(hours=SLOT_DURATION_HOURS)
    slots: List[CalendarSlot] = []
    while current < day_end:
        slots.append(CalendarSlot(start_time=current, end_time=current + step))
        current += step
    return slots


def is_valid_slot_time(start: datetime, end: Optional[datetime] = None) -> bool:
    """True when ``start`` is on the hour inside business hours and ``end`` closes one slot."""
    if not (START_HOUR <= start.hour < END_HOUR and start.minute == 0 and start.second == 0):
        return False
    if end is None:
        return True
    return end - start == timedelta(hours=SLOT_DURATION_HOURS)


def format_slot_range(start: datetime, end: datetime) -> str:
    """e.g. ``10:00 AM - 11:00 AM``"""
    return f"{_format_clock(start)} - {_format_clock(end)}"


def format_calendar_date(moment: datetime) -> str:
    """e.g. ``Monday, February 2, 2026``"""
    return f"{moment:%A}, {moment:%B} {moment.day}, {moment.year}"


def _format_clock(moment: datetime) -> str:
    hour = moment.hour % 12 or 12
    suffix = "AM" if moment.hour < 12 else "PM"
    return f"{hour}:{moment.minute:02d} {suffix}"
