import os
from unittest.mock import AsyncMock, MagicMock

import pytest

# Force the in-memory SQLite engine before the app modules are imported
os.environ.setdefault("PYTEST_RUNNING", "1")
for _var in ("MAILGUN_API_KEY", "MAILGUN_DOMAIN", "MAILGUN_WEBHOOK_SIGNING_SECRET", "EMAIL_TRANSPORT", "EMAIL_DELIVERY"):
    os.environ.pop(_var, None)

from fastapi.testclient import TestClient  # noqa: E402

from techdeputies.api import deps  # noqa: E402
from techdeputies.api.main import app  # noqa: E402
from techdeputies.db import models  # noqa: E402
from techdeputies.db.database import SessionLocal, engine, get_db  # noqa: E402
from techdeputies.db.repositories import tokens as token_repo  # noqa: E402
from techdeputies.db.repositories import users as user_repo  # noqa: E402
from techdeputies.services.notification_service import NotificationService  # noqa: E402
from techdeputies.utils.passwords import hash_password  # noqa: E402

DEFAULT_PASSWORD = "correct-horse-battery"


# Per-test schema on the shared in-memory engine
@pytest.fixture(autouse=True)
def db_session():
    models.Base.metadata.drop_all(bind=engine)
    models.Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


# Backwards-compatible alias
@pytest.fixture
def db(db_session):
    return db_session


@pytest.fixture
def mail_transport():
    """Stand-in email transport that records every send."""
    transport = MagicMock()
    transport.is_configured.return_value = True
    transport.send_email = AsyncMock(return_value={"success": True, "message_id": "<test@mg.example.com>"})
    return transport


@pytest.fixture
def client(db_session, mail_transport):
    def _override_get_db():
        yield db_session

    def _override_notifications():
        return NotificationService(db_session, email_service=mail_transport)

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[deps.get_notifications] = _override_notifications
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_user(db_session):
    """Factory creating users directly through the repository."""
    counter = {"n": 0}

    def _make(email=None, password=DEFAULT_PASSWORD, name=None, role=models.ROLE_USER):
        counter["n"] += 1
        return user_repo.create_user(
            db_session,
            email=email or f"user{counter['n']}@example.com",
            password_hash=hash_password(password),
            name=name or f"User {counter['n']}",
            role=role,
        )

    return _make


@pytest.fixture
def auth_headers(db_session):
    """Build a bearer header for a user by opening a login session."""
    def _headers(user):
        _, token = token_repo.create_session(db_session, user_id=user.id, ttl_hours=1)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def admin_user(make_user):
    return make_user(email="admin@example.com", name="Admin", role=models.ROLE_ADMIN)


@pytest.fixture
def regular_user(make_user):
    return make_user(email="customer@example.com", name="Casey Customer")
