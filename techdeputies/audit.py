"""
Audit logging helpers and enums.

Centralized helpers to persist admin actions and password changes with a
consistent schema.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from techdeputies.db import models
from techdeputies.db.repositories import audits as audit_repo


class AdminAction(str, Enum):
    PASSWORD_RESET = "PASSWORD_RESET"
    FORCE_PASSWORD_CHANGE = "FORCE_PASSWORD_CHANGE"
    PASSWORD_RESET_LINK = "PASSWORD_RESET_LINK"
    ROLE_CHANGE = "ROLE_CHANGE"
    USER_CREATE = "USER_CREATE"
    SETTINGS_UPDATE = "SETTINGS_UPDATE"
    RATE_LIMITS_CLEAR = "RATE_LIMITS_CLEAR"
    GIFT_CARD_CREATE = "GIFT_CARD_CREATE"
    GIFT_CARD_STATUS_CHANGE = "GIFT_CARD_STATUS_CHANGE"


class PasswordChangeType(str, Enum):
    USER_CHANGE = "user_change"
    USER_RESET = "user_reset"
    ADMIN_RESET = "admin_reset"
    ADMIN_FORCE_CHANGE = "admin_force_change"


def log_admin_action(
    db: Session,
    *,
    admin_id: Optional[int],
    action: AdminAction | str,
    target_user_id: Optional[int] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> models.AdminActionAudit:
    # Persist pure string values, not Enum reprs
    action_value = action.value if isinstance(action, AdminAction) else str(action)
    return audit_repo.create_admin_action(
        db,
        admin_id=admin_id,
        action=action_value,
        target_user_id=target_user_id,
        ip_address=ip_address,
        user_agent=user_agent,
        details=details,
    )


def log_password_change(
    db: Session,
    *,
    user_id: int,
    change_type: PasswordChangeType | str,
    changed_by_id: Optional[int] = None,
    reason: Optional[str] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> models.PasswordChangeAudit:
    type_value = change_type.value if isinstance(change_type, PasswordChangeType) else str(change_type)
    return audit_repo.create_password_change(
        db,
        user_id=user_id,
        change_type=type_value,
        changed_by_id=changed_by_id,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
    )


__all__ = ["AdminAction", "PasswordChangeType", "log_admin_action", "log_password_change"]
