from datetime import datetime, timedelta, timezone

import pytest

from techdeputies.api.bookings import month_bounds
from techdeputies.db.repositories import calendar as calendar_repo
from techdeputies.db.repositories import subscriptions as subscription_repo


def _this_month(day_offset=1, hour=10):
    start, _ = month_bounds(datetime.now(timezone.utc))
    return start + timedelta(days=day_offset, hours=hour)


@pytest.fixture
def event(db_session):
    start = _this_month()
    return calendar_repo.create_event(
        db_session, title="Tech Help Session", start_time=start, end_time=start + timedelta(hours=1), capacity=2,
    )


def test_admin_manages_events(client, admin_user, regular_user, auth_headers):
    admin = auth_headers(admin_user)
    payload = {"title": "Laptop Clinic", "startTime": "2026-02-02T10:00:00Z", "endTime": "2026-02-02T11:00:00Z"}
    assert client.post("/calendar-events", json=payload, headers=auth_headers(regular_user)).status_code == 403

    r = client.post("/calendar-events", json=payload, headers=admin)
    assert r.status_code == 201
    created = r.json()
    assert created["capacity"] == 2
    assert created["available"] == 2

    bad = {**payload, "endTime": "2026-02-02T09:00:00Z"}
    assert client.post("/calendar-events", json=bad, headers=admin).status_code == 422

    r = client.patch(f"/calendar-events/{created['id']}", json={"endTime": "2026-02-02T09:30:00Z"}, headers=admin)
    assert r.status_code == 400
    r = client.patch(f"/calendar-events/{created['id']}", json={"title": "Tablet Clinic", "capacity": 4}, headers=admin)
    assert r.json()["title"] == "Tablet Clinic"
    assert r.json()["available"] == 4
    assert client.patch("/calendar-events/999", json={"title": "x"}, headers=admin).status_code == 404

    assert client.delete(f"/calendar-events/{created['id']}", headers=admin).json() == {"message": "Event deleted"}
    assert client.get("/calendar-events").json()["events"] == []


def test_list_events_by_range(client, db_session):
    for day in (1, 5, 9):
        start = datetime(2026, 3, day, 10, tzinfo=timezone.utc)
        calendar_repo.create_event(db_session, title=f"Day {day}", start_time=start, end_time=start + timedelta(hours=1))
    r = client.get("/calendar-events", params={"startDate": "2026-03-04T00:00:00Z", "endDate": "2026-03-10T00:00:00Z"})
    assert [e["title"] for e in r.json()["events"]] == ["Day 5", "Day 9"]


def test_booking_sends_invite(client, regular_user, auth_headers, event, mail_transport):
    r = client.post("/bookings", json={"eventId": event.id, "notes": "Bring my tablet"}, headers=auth_headers(regular_user))
    assert r.status_code == 201
    booking = r.json()
    assert booking["status"] == "confirmed"
    assert booking["event"]["bookedCount"] == 1
    assert booking["event"]["available"] == 1

    sent = mail_transport.send_email.await_args.kwargs
    assert sent["subject"] == "Confirmed: Tech Help Session - The Tech Deputies"
    (invite,) = sent["attachments"]
    assert invite.filename == "invite.ics"
    assert "METHOD:REQUEST" in invite.content
    assert f"UID:booking-{booking['id']}@thetechdeputies.com" in invite.content


def test_booking_conflicts(client, make_user, auth_headers, event):
    first, second, third = make_user(), make_user(), make_user()
    assert client.post("/bookings", json={"eventId": event.id}, headers=auth_headers(first)).status_code == 201
    dup = client.post("/bookings", json={"eventId": event.id}, headers=auth_headers(first))
    assert dup.status_code == 409
    assert dup.json()["detail"] == "You already have a booking for this event"
    assert client.post("/bookings", json={"eventId": event.id}, headers=auth_headers(second)).status_code == 201
    full = client.post("/bookings", json={"eventId": event.id}, headers=auth_headers(third))
    assert full.status_code == 409
    assert full.json()["detail"] == "Event is full"
    assert client.post("/bookings", json={"eventId": 999}, headers=auth_headers(third)).status_code == 404


def test_plan_session_limit(client, regular_user, auth_headers, db_session):
    subscription_repo.create_subscription(db_session, user_id=regular_user.id, tier="BASIC")
    headers = auth_headers(regular_user)
    for day in (1, 2, 3):
        start = _this_month(day_offset=day)
        calendar_repo.create_event(db_session, title=f"S{day}", start_time=start, end_time=start + timedelta(hours=1))
    events = calendar_repo.list_events(db_session)
    assert client.post("/bookings", json={"eventId": events[0].id}, headers=headers).status_code == 201
    assert client.post("/bookings", json={"eventId": events[1].id}, headers=headers).status_code == 201
    r = client.post("/bookings", json={"eventId": events[2].id}, headers=headers)
    assert r.status_code == 403
    assert r.json()["detail"] == "You have used all sessions included in your plan this month"


def test_session_limit_counts_the_event_month(client, regular_user, auth_headers, db_session):
    subscription_repo.create_subscription(db_session, user_id=regular_user.id, tier="BASIC")
    headers = auth_headers(regular_user)
    _, next_month = month_bounds(datetime.now(timezone.utc))
    this_month = [_this_month(day_offset=day) for day in (1, 2)]
    later = [next_month + timedelta(days=day, hours=10) for day in (1, 2, 3)]
    for start in this_month + later:
        calendar_repo.create_event(db_session, title="Session", start_time=start, end_time=start + timedelta(hours=1))
    events = calendar_repo.list_events(db_session)
    assert len(events) == 5

    for event in events[:2]:
        assert client.post("/bookings", json={"eventId": event.id}, headers=headers).status_code == 201
    # This month is used up; next month's allowance is untouched
    assert client.post("/bookings", json={"eventId": events[2].id}, headers=headers).status_code == 201
    assert client.post("/bookings", json={"eventId": events[3].id}, headers=headers).status_code == 201
    r = client.post("/bookings", json={"eventId": events[4].id}, headers=headers)
    assert r.status_code == 403


def test_owner_and_admin_access(client, regular_user, make_user, admin_user, auth_headers, event):
    booking = client.post("/bookings", json={"eventId": event.id}, headers=auth_headers(regular_user)).json()
    stranger = make_user()
    assert client.get(f"/bookings/{booking['id']}", headers=auth_headers(stranger)).status_code == 403
    assert client.get(f"/bookings/{booking['id']}", headers=auth_headers(admin_user)).status_code == 200
    assert client.get("/bookings/999", headers=auth_headers(admin_user)).status_code == 404

    assert len(client.get("/bookings", headers=auth_headers(regular_user)).json()["bookings"]) == 1
    assert client.get("/bookings", headers=auth_headers(stranger)).json()["bookings"] == []
    assert len(client.get("/bookings", params={"all": "true"}, headers=auth_headers(admin_user)).json()["bookings"]) == 1
    # all=true is ignored for non-admins
    assert client.get("/bookings", params={"all": "true"}, headers=auth_headers(stranger)).json()["bookings"] == []


def test_cancel_booking(client, regular_user, auth_headers, event, mail_transport):
    headers = auth_headers(regular_user)
    booking = client.post("/bookings", json={"eventId": event.id}, headers=headers).json()
    r = client.delete(f"/bookings/{booking['id']}", headers=headers)
    assert r.status_code == 200
    assert r.json()["message"] == "Booking cancelled"
    assert r.json()["booking"]["status"] == "cancelled"
    assert r.json()["booking"]["event"]["available"] == 2

    (invite,) = mail_transport.send_email.await_args.kwargs["attachments"]
    assert "METHOD:CANCEL" in invite.content
    again = client.delete(f"/bookings/{booking['id']}", headers=headers)
    assert again.status_code == 400


def test_month_bounds_wraps_december():
    start, end = month_bounds(datetime(2026, 12, 15, 8, 30, tzinfo=timezone.utc))
    assert start == datetime(2026, 12, 1, tzinfo=timezone.utc)
    assert end == datetime(2027, 1, 1, tzinfo=timezone.utc)
