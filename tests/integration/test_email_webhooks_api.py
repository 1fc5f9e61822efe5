import time

import pytest

from techdeputies.api import email_webhooks as webhooks_api
from techdeputies.api.main import app
from techdeputies.services.email_queue import EmailJob, EmailStatus, EnhancedEmailService, QueueManager
from techdeputies.services.email_webhooks import MailgunWebhookHandler, compute_signature

SECRET = "whsec-api"
URL = "/email/webhooks/mailgun"


@pytest.fixture
def handler():
    return MailgunWebhookHandler(EnhancedEmailService(QueueManager(transport=None)), signing_secret=SECRET, valid_ips=[])


@pytest.fixture
def webhook_client(client, handler):
    app.dependency_overrides[webhooks_api.get_webhook_handler] = lambda: handler
    return client


def _signed(event_data, secret=SECRET):
    ts = str(int(time.time()))
    return {
        "signature": {"timestamp": ts, "token": "tok-1", "signature": compute_signature(secret, ts, "tok-1")},
        "event-data": event_data,
    }


def test_invalid_json_is_rejected(webhook_client):
    r = webhook_client.post(URL, content=b"not json", headers={"Content-Type": "application/json"})
    assert r.status_code == 400
    assert r.json() == {"success": False, "error": "Invalid JSON payload"}

    r = webhook_client.post(URL, json=["not", "an", "object"])
    assert r.status_code == 400


def test_bad_signature_is_rejected(webhook_client):
    r = webhook_client.post(URL, json=_signed({"event": "delivered"}, secret="wrong"))
    assert r.status_code == 401
    assert r.json() == {"success": False, "error": "Invalid webhook signature"}


def test_unconfigured_secret_is_rejected(webhook_client, handler):
    handler.signing_secret = ""
    r = webhook_client.post(URL, json=_signed({"event": "delivered"}))
    assert r.status_code == 401
    assert r.json()["error"] == "Mailgun webhook signing not configured"


def test_ip_allow_list(webhook_client, handler):
    handler.valid_ips = ["198.51.100.7"]
    r = webhook_client.post(URL, json=_signed({"event": "delivered"}), headers={"X-Forwarded-For": "203.0.113.9"})
    assert r.status_code == 401
    assert r.json()["error"] == "IP 203.0.113.9 not in whitelist"

    r = webhook_client.post(URL, json=_signed({"event": "delivered"}), headers={"X-Forwarded-For": "198.51.100.7"})
    assert r.status_code == 200


def test_delivered_event_updates_tracked_job(webhook_client, handler):
    queue = handler.email_service.queue
    job = queue.enqueue(EmailJob(recipient_email="pat@example.com", subject="Hi", html="x"), max_retries=3)
    queue.update_status(job.id, EmailStatus.SENT, message_id="abc@mg.example.com")

    r = webhook_client.post(URL, json=_signed({
        "event": "delivered",
        "recipient": "pat@example.com",
        "timestamp": time.time(),
        "message": {"headers": {"message-id": "abc@mg.example.com"}},
    }))
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["event"] == "delivered"
    assert body["jobId"] == job.id
    assert queue.get_job(job.id).status == EmailStatus.DELIVERED


def test_complaint_suppresses_recipient(webhook_client, handler):
    r = webhook_client.post(URL, json=_signed({
        "event": "complained",
        "recipient": "angry@example.com",
        "message": {"headers": {"message-id": "unknown@mg.example.com"}},
    }))
    assert r.status_code == 200
    assert r.json()["action"] == "untracked"
    assert r.json()["suppressed"] is True
    assert handler.suppressions.is_suppressed("angry@example.com")


def test_unknown_event_is_ignored(webhook_client):
    r = webhook_client.post(URL, json=_signed({"event": "stored"}))
    assert r.status_code == 200
    assert r.json()["action"] == "ignored"


def test_malformed_signature_block_is_rejected(webhook_client):
    r = webhook_client.post(URL, json={"signature": "not-a-mapping", "event-data": {"event": "delivered"}})
    assert r.status_code == 400
    assert r.json() == {"success": False, "error": "Invalid signature block"}
