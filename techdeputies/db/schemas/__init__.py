"""
Domain-split Pydantic schemas with an aggregator.

Every model reads snake_case or camelCase keys and dumps camelCase.
"""

from .users import (
    UserBase,
    User,
    RegisterRequest,
    LoginRequest,
    LoginResponse,
    ChangePasswordRequest,
    ResetRequest,
    ResetConfirmRequest,
)
from .gift_cards import (
    GiftCardStatus,
    GiftCardBase,
    GiftCardCreate,
    AdminGiftCardCreate,
    GiftCardStatusUpdate,
    GiftCardRedeem,
    GiftCard,
    GiftCardTransaction,
)
from .commerce import CoursePurchaseRequest, CoursePurchase, SubscriptionCreate, Subscription
from .calendar import (
    CalendarEventBase,
    CalendarEventCreate,
    CalendarEventUpdate,
    CalendarEvent,
    BookingCreate,
    Booking,
)
from .audits import (
    AdminActionAudit,
    PasswordChangeAudit,
    PaginatedAdminActions,
    PaginatedPasswordChanges,
)
from .admin import PasswordManagementRequest, PasswordResetLinkRequest, AdminUserCreate, BMadCommandRequest

__all__ = [
    # users/auth
    "UserBase",
    "User",
    "RegisterRequest",
    "LoginRequest",
    "LoginResponse",
    "ChangePasswordRequest",
    "ResetRequest",
    "ResetConfirmRequest",
    # gift cards
    "GiftCardStatus",
    "GiftCardBase",
    "GiftCardCreate",
    "AdminGiftCardCreate",
    "GiftCardStatusUpdate",
    "GiftCardRedeem",
    "GiftCard",
    "GiftCardTransaction",
    # courses/subscriptions
    "CoursePurchaseRequest",
    "CoursePurchase",
    "SubscriptionCreate",
    "Subscription",
    # calendar
    "CalendarEventBase",
    "CalendarEventCreate",
    "CalendarEventUpdate",
    "CalendarEvent",
    "BookingCreate",
    "Booking",
    # audits
    "AdminActionAudit",
    "PasswordChangeAudit",
    "PaginatedAdminActions",
    "PaginatedPasswordChanges",
    # admin
    "PasswordManagementRequest",
    "PasswordResetLinkRequest",
    "AdminUserCreate",
    "BMadCommandRequest",
]
