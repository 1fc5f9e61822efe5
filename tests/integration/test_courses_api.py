from sqlalchemy.exc import SQLAlchemyError

from techdeputies.api import courses as courses_api
from techdeputies.db.repositories import courses as course_repo
from techdeputies.db.repositories import gift_cards as gift_card_repo
from techdeputies.db.repositories import subscriptions as subscription_repo


def test_catalog_listing_and_filters(client):
    body = client.get("/courses").json()
    assert len(body["courses"]) >= 6
    assert "basics" in body["categories"]
    featured = client.get("/courses", params={"featured": "true"}).json()["courses"]
    assert featured and all(c["featured"] for c in featured)
    internet = client.get("/courses", params={"category": "internet"}).json()["courses"]
    assert internet and all(c["category"] == "internet" for c in internet)


def test_course_detail(client):
    r = client.get("/courses/computer-basics-101")
    assert r.status_code == 200
    assert r.json()["formattedPrice"] == "$49.00"
    assert client.get("/courses/unknown").status_code == 404


def test_purchase_and_access(client, regular_user, auth_headers, mail_transport):
    headers = auth_headers(regular_user)
    access = client.get("/courses/access", params={"courseSlug": "email-essentials"}, headers=headers).json()
    assert access == {"hasAccess": False, "reason": "none"}

    r = client.post("/courses/purchase", headers=headers, json={"courseSlug": "email-essentials"})
    assert r.status_code == 201
    assert r.json()["amountDue"] == 2900
    assert r.json()["purchase"]["amountPaid"] == 2900
    assert mail_transport.send_email.await_args.kwargs["subject"] == "Course Purchase Confirmation - The Tech Deputies"

    access = client.get("/courses/access", params={"courseSlug": "email-essentials"}, headers=headers).json()
    assert access == {"hasAccess": True, "reason": "purchased"}

    again = client.post("/courses/purchase", headers=headers, json={"courseSlug": "email-essentials"})
    assert again.status_code == 400
    assert again.json()["detail"] == "You already own this course"

    mine = client.get("/courses/my-courses", headers=headers).json()["courses"]
    assert [c["course"]["slug"] for c in mine] == ["email-essentials"]


def test_purchase_with_gift_card(client, regular_user, auth_headers, db_session):
    card = gift_card_repo.create_gift_card(db_session, amount_cents=3000, purchaser_email="b@example.com")
    headers = auth_headers(regular_user)
    r = client.post("/courses/purchase", headers=headers,
                    json={"courseSlug": "computer-basics-101", "giftCardCode": card.code})
    assert r.status_code == 201
    assert r.json()["amountDue"] == 1900
    assert r.json()["purchase"]["giftCardAmount"] == 3000
    db_session.refresh(card)
    assert card.remaining_amount == 0
    assert card.status == "redeemed"

    r = client.post("/courses/purchase", headers=headers,
                    json={"courseSlug": "email-essentials", "giftCardCode": "ZZZZZZZZZZZZZZZZ"})
    assert r.status_code == 400
    assert r.json()["detail"] == "Gift card not found"


def test_purchase_unknown_course(client, regular_user, auth_headers):
    r = client.post("/courses/purchase", headers=auth_headers(regular_user), json={"courseSlug": "nope"})
    assert r.status_code == 404


def test_premium_subscription_grants_access(client, regular_user, auth_headers, db_session):
    subscription_repo.create_subscription(db_session, user_id=regular_user.id, tier="PREMIUM")
    access = client.get("/courses/access", params={"courseSlug": "email-essentials"},
                        headers=auth_headers(regular_user)).json()
    assert access == {"hasAccess": True, "reason": "subscription"}
    assert client.get("/courses/access", params={"courseSlug": "nope"},
                      headers=auth_headers(regular_user)).status_code == 404


def test_failed_purchase_leaves_gift_card_balance(client, regular_user, auth_headers, db_session, monkeypatch):
    card = gift_card_repo.create_gift_card(db_session, amount_cents=3000, purchaser_email="b@example.com")

    def _broken_create_purchase(*args, **kwargs):
        raise SQLAlchemyError("database unavailable")

    monkeypatch.setattr(courses_api.course_repo, "create_purchase", _broken_create_purchase)
    r = client.post("/courses/purchase", headers=auth_headers(regular_user),
                    json={"courseSlug": "computer-basics-101", "giftCardCode": card.code})
    assert r.status_code == 500
    assert r.json()["detail"] == "Failed to record course purchase"

    db_session.refresh(card)
    assert card.remaining_amount == 3000
    assert card.status == "active"
    assert [t.type for t in gift_card_repo.list_transactions(db_session, gift_card_id=card.id)] == ["purchase"]


def test_concurrent_duplicate_purchase_keeps_gift_card_balance(client, regular_user, auth_headers, db_session,
                                                               monkeypatch):
    course_repo.create_purchase(db_session, user_id=regular_user.id, course_slug="email-essentials", amount_paid=2900)
    card = gift_card_repo.create_gift_card(db_session, amount_cents=1000, purchaser_email="b@example.com")
    # Second request passed the ownership check before the first one committed
    monkeypatch.setattr(courses_api.course_repo, "get_purchase", lambda *args, **kwargs: None)

    r = client.post("/courses/purchase", headers=auth_headers(regular_user),
                    json={"courseSlug": "email-essentials", "giftCardCode": card.code})
    assert r.status_code == 400
    assert r.json()["detail"] == "You already own this course"
    db_session.refresh(card)
    assert card.remaining_amount == 1000


def test_purchase_with_empty_gift_card(client, regular_user, auth_headers, db_session, mail_transport):
    card = gift_card_repo.create_gift_card(db_session, amount_cents=500, purchaser_email="b@example.com")
    card.remaining_amount = 0
    db_session.commit()

    r = client.post("/courses/purchase", headers=auth_headers(regular_user),
                    json={"courseSlug": "email-essentials", "giftCardCode": card.code})
    assert r.status_code == 400
    assert r.json()["detail"] == "Gift card has no balance"
    assert course_repo.get_purchase(db_session, user_id=regular_user.id, course_slug="email-essentials") is None
    mail_transport.send_email.assert_not_awaited()
