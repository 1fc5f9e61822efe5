"""
Admin dashboard endpoints: site settings, user and password management,
gift card administration, system status and the outbound email queue.

Every route requires an ``ADMIN`` session.
"""
import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Request, status
from sqlalchemy import text
from sqlalchemy.orm import Session

from techdeputies.api.auth import is_valid_email
from techdeputies.api.deps import get_notifications, require_admin
from techdeputies.audit import AdminAction, PasswordChangeType, log_admin_action, log_password_change
from techdeputies.config import acuity_configured_from_env, app_base_url
from techdeputies.db import models, schemas
from techdeputies.db.database import get_db
from techdeputies.db.repositories import courses as course_repo
from techdeputies.db.repositories import gift_cards as gift_card_repo
from techdeputies.db.repositories import rate_limits as rate_limit_repo
from techdeputies.db.repositories import settings as settings_repo
from techdeputies.db.repositories import tokens as token_repo
from techdeputies.db.repositories import users as user_repo
from techdeputies.services.email_queue import get_enhanced_email_service, run_queue_once
from techdeputies.services.transactional_email_service import TransactionalEmailConfig
from techdeputies.utils.client_info import client_ip, user_agent
from techdeputies.utils.passwords import generate_temporary_password, hash_password, is_password_acceptable

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])

SETTING_KEYS = ("mailgun_api_key", "mailgun_domain", "acuity_user_id", "acuity_api_key")
SECRET_SUFFIX = "_api_key"
MASK = "••••••••"
ADMIN_RESET_TTL = timedelta(hours=24)


def mask_secret(value: str) -> str:
    if not value:
        return ""
    if len(value) <= 8:
        return MASK
    return f"{value[:4]}{MASK}{value[-4:]}"


def _audit_request(request: Request) -> Dict[str, Optional[str]]:
    return {"ip_address": client_ip(request), "user_agent": user_agent(request)}


def _get_user_or_404(db: Session, user_id: int) -> models.User:
    user = user_repo.get_by_id(db, user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user


# === Settings ===

@router.get("/settings")
def get_settings(db: Session = Depends(get_db), admin: models.User = Depends(require_admin)):
    stored = settings_repo.get_all_settings(db)
    out = {}
    for key in SETTING_KEYS:
        value = stored.get(key, "")
        out[key] = mask_secret(value) if key.endswith(SECRET_SUFFIX) else value
    return {"settings": out}


@router.post("/settings")
def update_settings(
    request: Request,
    payload: Dict[str, Optional[str]] = Body(...),
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    updated = []
    for key, value in payload.items():
        if key not in SETTING_KEYS or value is None:
            continue
        # The UI echoes masked secrets back when they were not edited
        if "•" in value:
            continue
        settings_repo.set_setting(db, key, value.strip(), encrypted=key.endswith(SECRET_SUFFIX))
        updated.append(key)
    if updated:
        log_admin_action(
            db,
            admin_id=admin.id,
            action=AdminAction.SETTINGS_UPDATE,
            details={"keys": updated},
            **_audit_request(request),
        )
    return {"success": True, "updated": updated}


# === Users ===

@router.get("/users")
def list_users(db: Session = Depends(get_db), admin: models.User = Depends(require_admin)):
    return {"users": [schemas.User.model_validate(u).model_dump(mode="json", by_alias=True) for u in user_repo.list_users(db)]}


@router.post("/users", status_code=status.HTTP_201_CREATED)
def create_user(
    payload: schemas.AdminUserCreate,
    request: Request,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    if not is_valid_email(payload.email):
        raise HTTPException(status_code=400, detail="Invalid email address")
    if not is_password_acceptable(payload.password):
        raise HTTPException(status_code=400, detail="Password must be at least 8 characters")
    if user_repo.get_by_email(db, payload.email):
        raise HTTPException(status_code=409, detail="An account with this email already exists")
    user = user_repo.create_user(
        db,
        email=payload.email,
        password_hash=hash_password(payload.password),
        name=payload.name,
        role=payload.role or models.ROLE_USER,
    )
    log_admin_action(
        db,
        admin_id=admin.id,
        action=AdminAction.USER_CREATE,
        target_user_id=user.id,
        details={"email": user.email, "role": user.role},
        **_audit_request(request),
    )
    return {"user": schemas.User.model_validate(user).model_dump(mode="json", by_alias=True)}


@router.post("/users/{user_id}/toggle-role")
def toggle_role(
    user_id: int,
    request: Request,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    target = _get_user_or_404(db, user_id)
    if target.id == admin.id:
        raise HTTPException(status_code=400, detail="You cannot change your own role")
    new_role = models.ROLE_USER if target.role == models.ROLE_ADMIN else models.ROLE_ADMIN
    previous = target.role
    target = user_repo.set_role(db, user=target, role=new_role)
    log_admin_action(
        db,
        admin_id=admin.id,
        action=AdminAction.ROLE_CHANGE,
        target_user_id=target.id,
        details={"from": previous, "to": new_role},
        **_audit_request(request),
    )
    return {"user": schemas.User.model_validate(target).model_dump(mode="json", by_alias=True)}


# === Stats / system ===

@router.get("/stats")
def get_stats(db: Session = Depends(get_db), admin: models.User = Depends(require_admin)):
    return {
        "totalUsers": user_repo.count_users(db),
        "adminUsers": user_repo.count_admins(db),
        "recentUsers": user_repo.count_recent(db, days=30),
        "giftCards": gift_card_repo.get_stats(db),
        "courses": course_repo.get_stats(db),
    }


@router.get("/system")
def get_system_status(db: Session = Depends(get_db), admin: models.User = Depends(require_admin)):
    try:
        db.execute(text("SELECT 1"))
        database = {"status": "connected", "userCount": user_repo.count_users(db)}
    except Exception as e:
        logger.exception("system_status_db_check_failed")
        database = {"status": "error", "error": str(e)}
    acuity_configured = acuity_configured_from_env() or bool(
        settings_repo.get_setting(db, "acuity_user_id") and settings_repo.get_setting(db, "acuity_api_key")
    )
    return {
        "mailgunConfigured": TransactionalEmailConfig.from_settings(db).is_configured(),
        "acuityConfigured": acuity_configured,
        "database": database,
        "environment": os.getenv("APP_ENV", "development"),
    }


@router.delete("/rate-limits")
def clear_rate_limits(
    request: Request,
    endpoint: Optional[str] = None,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    removed = rate_limit_repo.clear_rate_limits(db, endpoint=endpoint)
    log_admin_action(
        db,
        admin_id=admin.id,
        action=AdminAction.RATE_LIMITS_CLEAR,
        details={"endpoint": endpoint, "removed": removed},
        **_audit_request(request),
    )
    return {"success": True, "removed": removed}


# === Passwords ===

@router.post("/password-management")
def manage_password(
    payload: schemas.PasswordManagementRequest,
    request: Request,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
    notifications=Depends(get_notifications),
):
    target = _get_user_or_404(db, payload.user_id)
    meta = _audit_request(request)

    if payload.action == "reset":
        temporary = generate_temporary_password()
        user_repo.update_password(db, user=target, password_hash=hash_password(temporary), must_change=True)
        token_repo.revoke_user_sessions(db, user_id=target.id)
        email_result = notifications.notify_temporary_password(target, temporary)
        change_type = PasswordChangeType.ADMIN_RESET
        action = AdminAction.PASSWORD_RESET
        message = "Password reset successfully"
    else:
        user_repo.set_must_change_password(db, user=target, value=True)
        email_result = None
        change_type = PasswordChangeType.ADMIN_FORCE_CHANGE
        action = AdminAction.FORCE_PASSWORD_CHANGE
        message = "User will be required to change their password at next login"

    details = {"reason": payload.reason, "resetMethod": "admin_panel"}
    if email_result is not None:
        details["emailSent"] = bool(email_result.get("success"))
    log_password_change(
        db,
        user_id=target.id,
        change_type=change_type,
        changed_by_id=admin.id,
        reason=payload.reason,
        **meta,
    )
    log_admin_action(
        db,
        admin_id=admin.id,
        action=action,
        target_user_id=target.id,
        details=details,
        **meta,
    )
    logger.info("admin_password_action action=%s admin=%s target=%s", action.value, admin.id, target.id)
    notifications.notify_admin_action(admin, action.value, target, details)
    return {
        "success": True,
        "message": message,
        "user": {"id": target.id, "email": target.email, "name": target.name},
    }


@router.post("/password-reset")
def send_password_reset_link(
    payload: schemas.PasswordResetLinkRequest,
    request: Request,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
    notifications=Depends(get_notifications),
):
    target = _get_user_or_404(db, payload.user_id)
    _, raw_token = token_repo.create_password_reset_token(db, user_id=target.id, ttl=ADMIN_RESET_TTL)
    reset_url = f"{app_base_url()}/reset-password?token={raw_token}"
    email_sent = False
    if notifications.is_configured:
        result = notifications.notify_password_reset(
            target, raw_token, expires_in="24 hours", reason="An administrator requested a password reset",
        )
        email_sent = bool(result.get("success"))
    log_admin_action(
        db,
        admin_id=admin.id,
        action=AdminAction.PASSWORD_RESET_LINK,
        target_user_id=target.id,
        details={"emailSent": email_sent},
        **_audit_request(request),
    )
    response = {"success": True, "emailSent": email_sent}
    if email_sent:
        response["message"] = f"Password reset email sent to {target.email}"
    else:
        response["message"] = "Email is not configured. Share this reset link with the user."
        response["resetUrl"] = reset_url
    return response


# === Gift cards ===

@router.get("/gift-cards")
def list_gift_cards(db: Session = Depends(get_db), admin: models.User = Depends(require_admin)):
    cards = gift_card_repo.list_all(db)
    return {
        "giftCards": [schemas.GiftCard.model_validate(c).model_dump(mode="json", by_alias=True) for c in cards],
        "stats": gift_card_repo.get_stats(db),
    }


@router.post("/gift-cards", status_code=status.HTTP_201_CREATED)
def create_gift_card(
    payload: schemas.AdminGiftCardCreate,
    request: Request,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
    notifications=Depends(get_notifications),
):
    card = gift_card_repo.create_gift_card(
        db,
        amount_cents=payload.amount,
        purchaser_email=payload.purchaser_email or admin.email,
        purchaser_name=payload.purchaser_name or admin.name,
        purchaser_id=admin.id,
        recipient_email=payload.recipient_email,
        recipient_name=payload.recipient_name,
        message=payload.message,
        expires_at=payload.expires_at,
    )
    log_admin_action(
        db,
        admin_id=admin.id,
        action=AdminAction.GIFT_CARD_CREATE,
        details={"giftCardId": card.id, "amount": card.original_amount},
        **_audit_request(request),
    )
    if card.recipient_email:
        notifications.notify_gift_card(card)
    return {"giftCard": schemas.GiftCard.model_validate(card).model_dump(mode="json", by_alias=True)}


@router.patch("/gift-cards/{gift_card_id}")
def update_gift_card_status(
    gift_card_id: int,
    payload: schemas.GiftCardStatusUpdate,
    request: Request,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    card = gift_card_repo.update_status(db, gift_card_id=gift_card_id, status=payload.status)
    if card is None:
        raise HTTPException(status_code=404, detail="Gift card not found")
    log_admin_action(
        db,
        admin_id=admin.id,
        action=AdminAction.GIFT_CARD_STATUS_CHANGE,
        details={"giftCardId": card.id, "status": payload.status},
        **_audit_request(request),
    )
    return {"giftCard": schemas.GiftCard.model_validate(card).model_dump(mode="json", by_alias=True)}


@router.get("/gift-cards/{gift_card_id}/transactions")
def list_gift_card_transactions(
    gift_card_id: int,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    if gift_card_repo.get_by_id(db, gift_card_id) is None:
        raise HTTPException(status_code=404, detail="Gift card not found")
    rows = gift_card_repo.list_transactions(db, gift_card_id=gift_card_id)
    return {"transactions": [schemas.GiftCardTransaction.model_validate(r).model_dump(mode="json", by_alias=True) for r in rows]}


# === Email queue ===

@router.get("/email/queue")
def get_email_queue(
    days: int = 30,
    admin: models.User = Depends(require_admin),
):
    service = get_enhanced_email_service()
    end = datetime.now(timezone.utc)
    return {
        "stats": service.get_queue_stats(),
        "analytics": service.get_analytics(end - timedelta(days=days), end),
    }


@router.post("/email/queue/process")
def process_email_queue(admin: models.User = Depends(require_admin)):
    processed = run_queue_once()
    return {"processed": processed, "stats": get_enhanced_email_service().get_queue_stats()}
