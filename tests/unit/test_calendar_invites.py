from datetime import datetime, timezone

from techdeputies.services.calendar_invites import build_invite, escape_text, format_ics_datetime, invite_attachment

START = datetime(2026, 2, 2, 15, 0, tzinfo=timezone.utc)
END = datetime(2026, 2, 2, 16, 0, tzinfo=timezone.utc)


def test_request_invite_lines():
    body = build_invite(booking_id=7, title="Tech Help; Phones, Tablets", start=START, end=END,
                        organizer_email="help@example.com")
    assert body.endswith("\r\n")
    lines = body.split("\r\n")
    assert lines[0] == "BEGIN:VCALENDAR"
    assert "METHOD:REQUEST" in lines
    assert "UID:booking-7@thetechdeputies.com" in lines
    assert "DTSTART:20260202T150000Z" in lines
    assert "DTEND:20260202T160000Z" in lines
    assert r"SUMMARY:Tech Help\; Phones\, Tablets" in lines
    assert "STATUS:CONFIRMED" in lines
    assert "ORGANIZER;CN=The Tech Deputies:mailto:help@example.com" in lines


def test_cancel_invite_bumps_sequence():
    lines = build_invite(booking_id=7, title="x", start=START, end=END, cancel=True).split("\r\n")
    assert "METHOD:CANCEL" in lines
    assert "STATUS:CANCELLED" in lines
    assert "SEQUENCE:1" in lines


def test_naive_datetimes_are_treated_as_utc():
    assert format_ics_datetime(datetime(2026, 2, 2, 10, 0)) == "20260202T100000Z"


def test_escape_and_attachment():
    assert escape_text("a\\b\nc") == "a\\\\b\\nc"
    assert escape_text(None) == ""
    attachment = invite_attachment("BEGIN:VCALENDAR\r\n", cancel=True)
    assert attachment.filename == "invite.ics"
    assert attachment.content_type == "text/calendar; method=CANCEL; charset=UTF-8"
