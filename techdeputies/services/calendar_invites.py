"""iCalendar (RFC 5545) invites attached to booking emails."""

import os
from datetime import datetime, UTC
from pathlib import Path
from typing import Optional

from jinja2 import Environment, FileSystemLoader

from techdeputies.config import SITE_NAME
from techdeputies.db.models.base import as_utc
from techdeputies.services.transactional_email_service import EmailAttachment

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates" / "calendar"

_env = Environment(loader=FileSystemLoader(str(TEMPLATE_DIR)), autoescape=False)

METHOD_REQUEST = "REQUEST"
METHOD_CANCEL = "CANCEL"


def escape_text(value: Optional[str]) -> str:
    if not value:
        return ""
    return (
        value.replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\r\n", "\\n")
        .replace("\n", "\\n")
    )


def format_ics_datetime(value: datetime) -> str:
    return as_utc(value).astimezone(UTC).strftime("%Y%m%dT%H%M%SZ")


def build_invite(
    *,
    booking_id: int,
    title: str,
    start: datetime,
    end: datetime,
    description: Optional[str] = None,
    organizer_email: Optional[str] = None,
    cancel: bool = False,
) -> str:
    """Render a single-VEVENT calendar; ``cancel`` produces the METHOD:CANCEL variant."""
    context = {
        "method": METHOD_CANCEL if cancel else METHOD_REQUEST,
        "uid": f"booking-{booking_id}@thetechdeputies.com",
        "sequence": 1 if cancel else 0,
        "dtstamp": format_ics_datetime(datetime.now(UTC)),
        "dtstart": format_ics_datetime(start),
        "dtend": format_ics_datetime(end),
        "summary": escape_text(title),
        "description": escape_text(description),
        "organizer_name": escape_text(SITE_NAME),
        "organizer_email": organizer_email or os.getenv("MAILGUN_FROM_EMAIL", "noreply@thetechdeputies.com"),
        "status": "CANCELLED" if cancel else "CONFIRMED",
    }
    rendered = _env.get_template("invite.ics").render(**context)
    lines = [line for line in rendered.splitlines() if line.strip()]
    return "\r\n".join(lines) + "\r\n"


def invite_attachment(ics_body: str, cancel: bool = False) -> EmailAttachment:
    method = METHOD_CANCEL if cancel else METHOD_REQUEST
    return EmailAttachment(
        filename="invite.ics",
        content=ics_body,
        content_type=f"text/calendar; method={method}; charset=UTF-8",
    )
