"""
Repositories for admin action and password change audit trails.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from techdeputies.db import models


def create_admin_action(
    db: Session,
    *,
    admin_id: Optional[int],
    action: str,
    target_user_id: Optional[int] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> models.AdminActionAudit:
    row = models.AdminActionAudit(
        admin_id=admin_id,
        action=action,
        target_user_id=target_user_id,
        ip_address=ip_address,
        user_agent=user_agent,
        details_json=details or {},
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def create_password_change(
    db: Session,
    *,
    user_id: int,
    change_type: str,
    changed_by_id: Optional[int] = None,
    reason: Optional[str] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> models.PasswordChangeAudit:
    row = models.PasswordChangeAudit(
        user_id=user_id,
        change_type=change_type,
        changed_by_id=changed_by_id,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def list_admin_actions(
    db: Session,
    *,
    admin_id: Optional[int] = None,
    target_user_id: Optional[int] = None,
    action: Optional[str] = None,
    skip: int = 0,
    limit: int = 50,
) -> Tuple[List[models.AdminActionAudit], int]:
    query = db.query(models.AdminActionAudit)
    if admin_id is not None:
        query = query.filter(models.AdminActionAudit.admin_id == admin_id)
    if target_user_id is not None:
        query = query.filter(models.AdminActionAudit.target_user_id == target_user_id)
    if action:
        query = query.filter(models.AdminActionAudit.action == action)
    total = query.count()
    items = (
        query.order_by(models.AdminActionAudit.created_at.desc(), models.AdminActionAudit.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )
    return items, total


def list_password_changes(
    db: Session,
    *,
    user_id: Optional[int] = None,
    changed_by_id: Optional[int] = None,
    change_type: Optional[str] = None,
    skip: int = 0,
    limit: int = 50,
) -> Tuple[List[models.PasswordChangeAudit], int]:
    query = db.query(models.PasswordChangeAudit)
    if user_id is not None:
        query = query.filter(models.PasswordChangeAudit.user_id == user_id)
    if changed_by_id is not None:
        query = query.filter(models.PasswordChangeAudit.changed_by_id == changed_by_id)
    if change_type:
        query = query.filter(models.PasswordChangeAudit.change_type == change_type)
    total = query.count()
    items = (
        query.order_by(models.PasswordChangeAudit.created_at.desc(), models.PasswordChangeAudit.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )
    return items, total
