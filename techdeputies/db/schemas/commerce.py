from datetime import datetime
from typing import Literal, Optional

from pydantic import ConfigDict

from .base import CamelModel


class CoursePurchaseRequest(CamelModel):
    course_slug: str
    gift_card_code: Optional[str] = None


class CoursePurchase(CamelModel):
    id: int
    user_id: int
    course_slug: str
    amount_paid: int
    gift_card_code: Optional[str] = None
    gift_card_amount: int = 0
    status: str
    expires_at: Optional[datetime] = None
    purchased_at: datetime
    model_config = ConfigDict(from_attributes=True)


class SubscriptionCreate(CamelModel):
    tier: Literal["BASIC", "STANDARD", "PREMIUM"]


class Subscription(CamelModel):
    id: int
    user_id: int
    tier: str
    status: str
    current_period_start: datetime
    current_period_end: Optional[datetime] = None
    created_at: datetime
    cancelled_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)
