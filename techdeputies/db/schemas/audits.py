from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import ConfigDict, Field

from .base import CamelModel


class AdminActionAudit(CamelModel):
    id: int
    admin_id: Optional[int] = None
    action: str
    target_user_id: Optional[int] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    details: Optional[Dict[str, Any]] = Field(default=None, validation_alias="details_json")
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class PasswordChangeAudit(CamelModel):
    id: int
    user_id: int
    changed_by_id: Optional[int] = None
    change_type: str
    reason: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class PaginatedAdminActions(CamelModel):
    items: List[AdminActionAudit]
    total: int
    page: int
    limit: int


class PaginatedPasswordChanges(CamelModel):
    items: List[PasswordChangeAudit]
    total: int
    page: int
    limit: int
