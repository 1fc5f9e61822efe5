"""
Repositories for login sessions and single-use email tokens.

Session tokens follow the bearer format from ``token_crypto``; reset and
verification tokens are stored as digests and replaced on each new request.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from techdeputies.db import models
from techdeputies.utils import token_crypto


def _now() -> datetime:
    return datetime.now(timezone.utc)


# Login sessions

def create_session(
    db: Session,
    *,
    user_id: int,
    ttl_hours: int,
    user_agent: Optional[str] = None,
) -> Tuple[models.AuthSession, str]:
    token_id, secret, full_token = token_crypto.generate_token()
    session = models.AuthSession(
        user_id=user_id,
        token_id=token_id,
        token_hash=token_crypto.hash_secret(secret),
        user_agent=(user_agent or "")[:255] or None,
        created_at=_now(),
        expires_at=_now() + timedelta(hours=ttl_hours),
    )
    db.add(session)
    db.commit()
    db.refresh(session)
    return session, full_token


def get_session_by_token_id(db: Session, *, token_id: str) -> Optional[models.AuthSession]:
    return (
        db.query(models.AuthSession)
        .filter(models.AuthSession.token_id == token_id)
        .first()
    )


def revoke_session(db: Session, *, session: models.AuthSession) -> None:
    if session.revoked_at is None:
        session.revoked_at = _now()
        db.commit()


def revoke_user_sessions(db: Session, *, user_id: int) -> int:
    count = (
        db.query(models.AuthSession)
        .filter(models.AuthSession.user_id == user_id, models.AuthSession.revoked_at.is_(None))
        .update({models.AuthSession.revoked_at: _now()}, synchronize_session=False)
    )
    db.commit()
    return count


def mark_used_now(db: Session, *, session: models.AuthSession) -> None:
    session.last_used_at = _now()
    db.commit()


# Password reset tokens

def create_password_reset_token(db: Session, *, user_id: int, ttl: timedelta) -> Tuple[models.PasswordResetToken, str]:
    """Replace any existing reset tokens for the user and return (row, raw_token)."""
    db.query(models.PasswordResetToken).filter(models.PasswordResetToken.user_id == user_id).delete()
    raw = token_crypto.generate_link_token()
    row = models.PasswordResetToken(
        user_id=user_id,
        token_digest=token_crypto.digest_token(raw),
        expires_at=_now() + ttl,
        used=False,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row, raw


def get_password_reset_token(db: Session, *, token: str) -> Optional[models.PasswordResetToken]:
    return (
        db.query(models.PasswordResetToken)
        .filter(models.PasswordResetToken.token_digest == token_crypto.digest_token(token))
        .first()
    )


def mark_reset_token_used(db: Session, *, row: models.PasswordResetToken) -> None:
    row.used = True
    db.commit()


# Email verification tokens

def create_email_verification_token(db: Session, *, user_id: int, ttl: timedelta) -> Tuple[models.EmailVerificationToken, str]:
    db.query(models.EmailVerificationToken).filter(models.EmailVerificationToken.user_id == user_id).delete()
    raw = token_crypto.generate_link_token()
    row = models.EmailVerificationToken(
        user_id=user_id,
        token_digest=token_crypto.digest_token(raw),
        expires_at=_now() + ttl,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row, raw


def get_email_verification_token(db: Session, *, token: str) -> Optional[models.EmailVerificationToken]:
    return (
        db.query(models.EmailVerificationToken)
        .filter(models.EmailVerificationToken.token_digest == token_crypto.digest_token(token))
        .first()
    )


def delete_email_verification_tokens(db: Session, *, user_id: int) -> None:
    db.query(models.EmailVerificationToken).filter(models.EmailVerificationToken.user_id == user_id).delete()
    db.commit()
