def test_plans_are_public(client):
    plans = client.get("/plans").json()["plans"]
    assert [p["tier"] for p in plans] == ["BASIC", "STANDARD", "PREMIUM"]
    assert plans[1]["featured"] is True
    assert "Unlimited sessions" in plans[2]["features"]


def test_subscribe_and_cancel(client, regular_user, auth_headers, mail_transport):
    headers = auth_headers(regular_user)
    r = client.post("/subscriptions", json={"tier": "STANDARD"}, headers=headers)
    assert r.status_code == 201
    sub = r.json()
    assert sub["status"] == "active"
    assert sub["plan"]["displayName"] == "Standard"
    assert mail_transport.send_email.await_args.kwargs["subject"] == "Welcome to Standard! - The Tech Deputies"

    dup = client.post("/subscriptions", json={"tier": "PREMIUM"}, headers=headers)
    assert dup.status_code == 409

    assert len(client.get("/subscriptions", headers=headers).json()["subscriptions"]) == 1

    r = client.delete(f"/subscriptions/{sub['id']}", headers=headers)
    assert r.status_code == 200
    assert r.json()["subscription"]["status"] == "cancelled"
    assert mail_transport.send_email.await_args.kwargs["subject"] == "Subscription Cancelled - The Tech Deputies"
    assert client.get("/subscriptions", headers=headers).json()["subscriptions"] == []
    assert client.delete(f"/subscriptions/{sub['id']}", headers=headers).status_code == 400


def test_invalid_tier_and_foreign_subscription(client, regular_user, make_user, auth_headers):
    assert client.post("/subscriptions", json={"tier": "GOLD"}, headers=auth_headers(regular_user)).status_code == 422
    sub = client.post("/subscriptions", json={"tier": "BASIC"}, headers=auth_headers(regular_user)).json()
    other = make_user()
    assert client.delete(f"/subscriptions/{sub['id']}", headers=auth_headers(other)).status_code == 404
    assert client.get("/subscriptions").status_code == 401
