from datetime import datetime, timedelta, timezone

from techdeputies.db.repositories import gift_cards as gift_card_repo


def test_purchase_requires_auth(client):
    assert client.post("/gift-cards", json={"amount": 5000}).status_code == 401


def test_purchase_and_list(client, regular_user, auth_headers, make_user, mail_transport):
    friend = make_user(email="friend@example.com", name="Frankie")
    r = client.post("/gift-cards", headers=auth_headers(regular_user), json={
        "amount": 5000, "recipientEmail": "Friend@Example.com", "recipientName": "Frankie", "message": "Enjoy",
    })
    assert r.status_code == 201
    card = r.json()["giftCard"]
    assert len(card["code"]) == 19 and card["code"].count("-") == 3
    assert card["remainingAmount"] == 5000
    assert card["purchaserEmail"] == "customer@example.com"
    assert mail_transport.send_email.await_args.kwargs["to_email"] == "friend@example.com"

    mine = client.get("/gift-cards", headers=auth_headers(regular_user)).json()
    assert len(mine["purchased"]) == 1 and mine["received"] == []
    theirs = client.get("/gift-cards", headers=auth_headers(friend)).json()
    assert theirs["received"][0]["code"] == card["code"]


def test_purchase_amount_bounds(client, regular_user, auth_headers, mail_transport):
    headers = auth_headers(regular_user)
    assert client.post("/gift-cards", headers=headers, json={"amount": 2499}).status_code == 422
    assert client.post("/gift-cards", headers=headers, json={"amount": 50001}).status_code == 422
    assert client.post("/gift-cards", headers=headers, json={"amount": 2500}).status_code == 201
    # no recipient, no email
    mail_transport.send_email.assert_not_called()


def test_redeem_partial_full_and_errors(client, regular_user, auth_headers, db_session):
    card = gift_card_repo.create_gift_card(db_session, amount_cents=5000, purchaser_email="b@example.com")
    headers = auth_headers(regular_user)

    r = client.post("/gift-cards/redeem", headers=headers, json={"code": card.code, "amount": 2000})
    assert r.json() == {"success": True, "message": "$20.00 redeemed. Remaining balance: $30.00", "remainingBalance": 3000}

    r = client.post("/gift-cards/redeem", headers=headers, json={"code": card.code, "amount": 4000})
    assert r.status_code == 400
    assert r.json()["detail"] == "Insufficient balance. Remaining balance: $30.00"

    r = client.post("/gift-cards/redeem", headers=headers, json={"code": card.code.lower(), "amount": 3000})
    assert r.json()["message"] == "Gift card fully redeemed"

    r = client.post("/gift-cards/redeem", headers=headers, json={"code": card.code, "amount": 100})
    assert r.status_code == 400
    assert r.json()["detail"] == "Gift card is redeemed"

    r = client.post("/gift-cards/redeem", headers=headers, json={"code": "ZZZZ-ZZZZ-ZZZZ-ZZZZ", "amount": 100})
    assert r.status_code == 404


def test_check_balance_is_public(client, db_session):
    assert client.get("/gift-cards/check").status_code == 400
    assert client.get("/gift-cards/check", params={"code": "NOPE"}).json() == {"found": False}

    card = gift_card_repo.create_gift_card(db_session, amount_cents=2500, purchaser_email="b@example.com")
    body = client.get("/gift-cards/check", params={"code": card.code}).json()
    assert body["found"] is True
    assert body["status"] == "active"
    assert body["balance"] == 2500
    assert body["expired"] is False

    old = gift_card_repo.create_gift_card(
        db_session, amount_cents=2500, purchaser_email="b@example.com",
        expires_at=datetime.now(timezone.utc) - timedelta(days=1),
    )
    body = client.get("/gift-cards/check", params={"code": old.code}).json()
    assert body["expired"] is True
    assert body["status"] == "expired"
