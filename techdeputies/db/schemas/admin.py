from typing import Literal, Optional

from .base import CamelModel


class PasswordManagementRequest(CamelModel):
    user_id: int
    action: Literal["reset", "force-change"]
    reason: Optional[str] = None


class PasswordResetLinkRequest(CamelModel):
    user_id: int


class AdminUserCreate(CamelModel):
    email: str
    password: str
    name: Optional[str] = None
    role: Optional[Literal["ADMIN", "USER"]] = None


class BMadCommandRequest(CamelModel):
    command: str
