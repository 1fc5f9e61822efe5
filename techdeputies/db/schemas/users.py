from datetime import datetime
from typing import Optional

from pydantic import ConfigDict

from .base import CamelModel


class UserBase(CamelModel):
    email: str
    name: Optional[str] = None


class User(UserBase):
    id: int
    role: str
    email_verified: bool = False
    must_change_password: bool = False
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class RegisterRequest(CamelModel):
    email: str
    password: str
    name: Optional[str] = None


class LoginRequest(CamelModel):
    email: str
    password: str


class LoginResponse(CamelModel):
    token: str
    expires_at: datetime
    user: User


class ChangePasswordRequest(CamelModel):
    current_password: str
    new_password: str


class ResetRequest(CamelModel):
    email: str


class ResetConfirmRequest(CamelModel):
    token: str
    password: str
