"""
Account endpoints: registration, email verification, login sessions and
password changes/resets.
"""
import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from techdeputies.api.deps import get_current_session, get_current_user, get_notifications
from techdeputies.audit import PasswordChangeType, log_password_change
from techdeputies.config import session_ttl_hours
from techdeputies.db import models, schemas
from techdeputies.db.database import get_db
from techdeputies.db.repositories import rate_limits as rate_limit_repo
from techdeputies.db.repositories import tokens as token_repo
from techdeputies.db.repositories import users as user_repo
from techdeputies.utils.client_info import client_ip, user_agent
from techdeputies.utils.passwords import hash_password, is_password_acceptable, verify_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
VERIFICATION_TTL = timedelta(hours=24)
RESET_TTL = timedelta(hours=1)
RESET_MAX_ATTEMPTS = 5
RESET_WINDOW_MINUTES = 60
RESET_GENERIC_MESSAGE = "If an account exists with that email, a reset link has been sent."
PASSWORD_TOO_SHORT = "Password must be at least 8 characters"


def is_valid_email(email: Optional[str]) -> bool:
    return bool(email and EMAIL_RE.match(email.strip()))


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(
    payload: schemas.RegisterRequest,
    db: Session = Depends(get_db),
    notifications=Depends(get_notifications),
):
    if not is_valid_email(payload.email):
        raise HTTPException(status_code=400, detail="Invalid email address")
    if not is_password_acceptable(payload.password):
        raise HTTPException(status_code=400, detail=PASSWORD_TOO_SHORT)
    if user_repo.get_by_email(db, payload.email):
        raise HTTPException(status_code=409, detail="An account with this email already exists")

    user = user_repo.create_user(
        db,
        email=payload.email,
        password_hash=hash_password(payload.password),
        name=payload.name,
    )
    _, raw_token = token_repo.create_email_verification_token(db, user_id=user.id, ttl=VERIFICATION_TTL)
    result = notifications.notify_welcome(user, raw_token)
    logger.info("user_registered id=%s role=%s email_sent=%s", user.id, user.role, result.get("success"))
    return {
        "message": "Account created. Check your email to verify your address.",
        "user": schemas.User.model_validate(user).model_dump(mode="json", by_alias=True),
    }


@router.get("/verify")
def verify_email(token: Optional[str] = None, db: Session = Depends(get_db)):
    if not token:
        raise HTTPException(status_code=400, detail="Verification token is required")
    row = token_repo.get_email_verification_token(db, token=token)
    if not row:
        raise HTTPException(status_code=400, detail="Invalid verification token")
    if models.as_utc(row.expires_at) < datetime.now(timezone.utc):
        raise HTTPException(status_code=400, detail="This verification link has expired")
    user = user_repo.get_by_id(db, row.user_id)
    if not user:
        raise HTTPException(status_code=400, detail="Invalid verification token")
    user_repo.mark_email_verified(db, user=user)
    token_repo.delete_email_verification_tokens(db, user_id=user.id)
    return {"message": "Email verified successfully"}


@router.post("/login", response_model=schemas.LoginResponse)
def login(payload: schemas.LoginRequest, request: Request, db: Session = Depends(get_db)):
    user = user_repo.get_by_email(db, payload.email)
    if not user or not verify_password(payload.password, user.password_hash):
        logger.info("login_failed ip=%s", client_ip(request))
        raise HTTPException(status_code=401, detail="Invalid email or password")
    session, token = token_repo.create_session(
        db,
        user_id=user.id,
        ttl_hours=session_ttl_hours(),
        user_agent=user_agent(request),
    )
    logger.info("login_succeeded user=%s session=%s", user.id, session.token_id)
    return {"token": token, "expires_at": session.expires_at, "user": schemas.User.model_validate(user)}


@router.post("/logout")
def logout(
    db: Session = Depends(get_db),
    session: models.AuthSession = Depends(get_current_session),
):
    token_repo.revoke_session(db, session=session)
    return {"message": "Logged out"}


@router.get("/me", response_model=schemas.User)
def me(user: models.User = Depends(get_current_user)):
    return user


@router.post("/change")
def change_password(
    payload: schemas.ChangePasswordRequest,
    request: Request,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    if not verify_password(payload.current_password, user.password_hash):
        raise HTTPException(status_code=400, detail="Current password is incorrect")
    if not is_password_acceptable(payload.new_password):
        raise HTTPException(status_code=400, detail=PASSWORD_TOO_SHORT)
    user_repo.update_password(db, user=user, password_hash=hash_password(payload.new_password))
    log_password_change(
        db,
        user_id=user.id,
        change_type=PasswordChangeType.USER_CHANGE,
        changed_by_id=user.id,
        ip_address=client_ip(request),
        user_agent=user_agent(request),
    )
    return {"message": "Password changed successfully"}


@router.post("/reset")
def request_password_reset(
    payload: schemas.ResetRequest,
    request: Request,
    db: Session = Depends(get_db),
    notifications=Depends(get_notifications),
):
    allowed = rate_limit_repo.check_rate_limit(
        db,
        ip_address=client_ip(request),
        endpoint="password-reset",
        max_attempts=RESET_MAX_ATTEMPTS,
        window_minutes=RESET_WINDOW_MINUTES,
    )
    if not allowed:
        raise HTTPException(status_code=429, detail="Too many reset requests. Please try again later.")

    user = user_repo.get_by_email(db, payload.email)
    if user:
        _, raw_token = token_repo.create_password_reset_token(db, user_id=user.id, ttl=RESET_TTL)
        notifications.notify_password_reset(user, raw_token)
    else:
        logger.info("password_reset_unknown_email")
    return {"message": RESET_GENERIC_MESSAGE}


@router.post("/reset/confirm")
def confirm_password_reset(
    payload: schemas.ResetConfirmRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    row = token_repo.get_password_reset_token(db, token=payload.token)
    if not row:
        raise HTTPException(status_code=400, detail="Invalid or expired reset token")
    if row.used:
        raise HTTPException(status_code=400, detail="This reset link has already been used")
    if models.as_utc(row.expires_at) < datetime.now(timezone.utc):
        raise HTTPException(status_code=400, detail="This reset link has expired")
    if not is_password_acceptable(payload.password):
        raise HTTPException(status_code=400, detail=PASSWORD_TOO_SHORT)
    user = user_repo.get_by_id(db, row.user_id)
    if not user:
        raise HTTPException(status_code=400, detail="Invalid or expired reset token")

    user_repo.update_password(db, user=user, password_hash=hash_password(payload.password))
    token_repo.mark_reset_token_used(db, row=row)
    token_repo.revoke_user_sessions(db, user_id=user.id)
    log_password_change(
        db,
        user_id=user.id,
        change_type=PasswordChangeType.USER_RESET,
        changed_by_id=user.id,
        ip_address=client_ip(request),
        user_agent=user_agent(request),
    )
    return {"message": "Password has been reset successfully"}
