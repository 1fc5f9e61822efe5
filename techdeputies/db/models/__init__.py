"""
Domain-split SQLAlchemy models with an aggregator.

Exposes `Base`, `now_utc` and all ORM classes from one import.
"""

from .base import Base, now_utc, as_utc  # re-export

from .users import User, ROLE_ADMIN, ROLE_USER
from .tokens import AuthSession, PasswordResetToken, EmailVerificationToken
from .settings import Setting, RateLimit
from .gift_cards import GiftCard, GiftCardTransaction, GIFT_CARD_STATUSES
from .courses import CoursePurchase
from .calendar import CalendarEvent, Booking, BOOKING_CONFIRMED, BOOKING_CANCELLED
from .subscriptions import Subscription
from .audit import AdminActionAudit, PasswordChangeAudit

__all__ = [
    # base
    "Base",
    "now_utc",
    "as_utc",
    # users/auth
    "User",
    "ROLE_ADMIN",
    "ROLE_USER",
    "AuthSession",
    "PasswordResetToken",
    "EmailVerificationToken",
    # settings
    "Setting",
    "RateLimit",
    # commerce
    "GiftCard",
    "GiftCardTransaction",
    "GIFT_CARD_STATUSES",
    "CoursePurchase",
    "Subscription",
    # calendar
    "CalendarEvent",
    "Booking",
    "BOOKING_CONFIRMED",
    "BOOKING_CANCELLED",
    # audit
    "AdminActionAudit",
    "PasswordChangeAudit",
]
