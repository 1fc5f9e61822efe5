"""
Repositories for user accounts.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import List, Optional

from sqlalchemy.orm import Session

from techdeputies.db import models


def _now() -> datetime:
    return datetime.now(timezone.utc)


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def get_by_email(db: Session, email: str) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.email == normalize_email(email)).first()


def get_by_id(db: Session, user_id: int) -> Optional[models.User]:
    return db.get(models.User, user_id)


def create_user(
    db: Session,
    *,
    email: str,
    password_hash: str,
    name: Optional[str] = None,
    role: Optional[str] = None,
    email_verified: bool = False,
) -> models.User:
    """Create a user. The very first account becomes the site admin."""
    if role is None:
        role = models.ROLE_ADMIN if count_users(db) == 0 else models.ROLE_USER
    user = models.User(
        email=normalize_email(email),
        password_hash=password_hash,
        name=(name or None),
        role=role,
        email_verified=email_verified,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def update_password(db: Session, *, user: models.User, password_hash: str, must_change: bool = False) -> models.User:
    user.password_hash = password_hash
    user.must_change_password = must_change
    db.commit()
    db.refresh(user)
    return user


def set_must_change_password(db: Session, *, user: models.User, value: bool = True) -> models.User:
    user.must_change_password = value
    db.commit()
    db.refresh(user)
    return user


def set_role(db: Session, *, user: models.User, role: str) -> models.User:
    user.role = role
    db.commit()
    db.refresh(user)
    return user


def mark_email_verified(db: Session, *, user: models.User) -> models.User:
    user.email_verified = True
    db.commit()
    db.refresh(user)
    return user


def list_users(db: Session) -> List[models.User]:
    return db.query(models.User).order_by(models.User.created_at.desc(), models.User.id.desc()).all()


def count_users(db: Session) -> int:
    return db.query(models.User).count()


def count_admins(db: Session) -> int:
    return db.query(models.User).filter(models.User.role == models.ROLE_ADMIN).count()


def count_recent(db: Session, *, days: int = 30) -> int:
    since = _now() - timedelta(days=days)
    return db.query(models.User).filter(models.User.created_at >= since).count()
