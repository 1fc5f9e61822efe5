"""
Audit log API endpoints.

Paginated views over admin actions and password changes for administrators.
"""
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from techdeputies.api.deps import require_admin
from techdeputies.db import models, schemas
from techdeputies.db.database import get_db
from techdeputies.db.repositories import audits as audit_repo

router = APIRouter(prefix="/admin/audit", tags=["audits"])

DEFAULT_LIMIT = 50
MAX_LIMIT = 200


def _page_window(page: int, limit: int):
    page = max(page, 1)
    limit = min(max(limit, 1), MAX_LIMIT)
    return page, limit, (page - 1) * limit


@router.get("/actions", response_model=schemas.PaginatedAdminActions)
def list_admin_actions(
    page: int = 1,
    limit: int = DEFAULT_LIMIT,
    adminId: Optional[int] = None,
    targetUserId: Optional[int] = None,
    action: Optional[str] = None,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    page, limit, skip = _page_window(page, limit)
    items, total = audit_repo.list_admin_actions(
        db, admin_id=adminId, target_user_id=targetUserId, action=action, skip=skip, limit=limit,
    )
    return {
        "items": [schemas.AdminActionAudit.model_validate(i) for i in items],
        "total": total,
        "page": page,
        "limit": limit,
    }


@router.get("/password-changes", response_model=schemas.PaginatedPasswordChanges)
def list_password_changes(
    page: int = 1,
    limit: int = DEFAULT_LIMIT,
    userId: Optional[int] = None,
    changedById: Optional[int] = None,
    changeType: Optional[str] = None,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    page, limit, skip = _page_window(page, limit)
    items, total = audit_repo.list_password_changes(
        db, user_id=userId, changed_by_id=changedById, change_type=changeType, skip=skip, limit=limit,
    )
    return {
        "items": [schemas.PasswordChangeAudit.model_validate(i) for i in items],
        "total": total,
        "page": page,
        "limit": limit,
    }
