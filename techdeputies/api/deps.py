"""
Shared FastAPI dependencies for authentication and role checks.

Requests authenticate with an ``Authorization: Bearer tds_<id>_<secret>``
header issued by ``POST /auth/login``.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from techdeputies.db import models
from techdeputies.db.database import get_db
from techdeputies.db.repositories import tokens as token_repo
from techdeputies.db.repositories import users as user_repo
from techdeputies.utils.token_crypto import parse_token, verify_secret

logger = logging.getLogger(__name__)


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if authorization and authorization.lower().startswith("bearer "):
        token = authorization[7:].strip()
        return token or None
    return None


def resolve_session(db: Session, token: str) -> models.AuthSession:
    """Validate a bearer token and return its live session row."""
    parsed = parse_token(token)
    if not parsed:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token format")
    session = token_repo.get_session_by_token_id(db, token_id=parsed.token_id)
    if not session:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    if session.revoked_at is not None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Session has been revoked")
    if models.as_utc(session.expires_at) < datetime.now(timezone.utc):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Session expired")
    if not verify_secret(parsed.secret, session.token_hash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    return session


def get_current_session(
    db: Session = Depends(get_db),
    authorization: Optional[str] = Header(default=None),
) -> models.AuthSession:
    token = _bearer_token(authorization)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    return resolve_session(db, token)


def get_current_user(
    db: Session = Depends(get_db),
    session: models.AuthSession = Depends(get_current_session),
) -> models.User:
    user = user_repo.get_by_id(db, session.user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token user")
    token_repo.mark_used_now(db, session=session)
    return user


def get_optional_user(
    db: Session = Depends(get_db),
    authorization: Optional[str] = Header(default=None),
) -> Optional[models.User]:
    """Like get_current_user, but anonymous callers get None instead of a 401."""
    token = _bearer_token(authorization)
    if not token:
        return None
    try:
        session = resolve_session(db, token)
    except HTTPException as e:
        logger.debug("optional_auth_rejected detail=%s", e.detail)
        return None
    return user_repo.get_by_id(db, session.user_id)


def require_admin(user: models.User = Depends(get_current_user)) -> models.User:
    if user.role != models.ROLE_ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return user


def get_notifications(db: Session = Depends(get_db)):
    """Notification service bound to the request's DB session (for DB-stored Mailgun settings)."""
    from techdeputies.services.notification_service import get_notification_service
    return get_notification_service(db)
