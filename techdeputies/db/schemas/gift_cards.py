from datetime import datetime
from typing import Literal, Optional

from pydantic import ConfigDict, Field, field_serializer

from techdeputies.utils.gift_codes import format_code

from .base import CamelModel

GiftCardStatus = Literal["active", "redeemed", "expired", "cancelled"]


class GiftCardBase(CamelModel):
    recipient_email: Optional[str] = None
    recipient_name: Optional[str] = None
    message: Optional[str] = None


class GiftCardCreate(GiftCardBase):
    """Customer purchase: $25 to $500."""
    amount: int = Field(ge=2500, le=50000)


class AdminGiftCardCreate(GiftCardBase):
    amount: int = Field(ge=100)
    purchaser_email: Optional[str] = None
    purchaser_name: Optional[str] = None
    expires_at: Optional[datetime] = None


class GiftCardStatusUpdate(CamelModel):
    status: GiftCardStatus


class GiftCardRedeem(CamelModel):
    code: str
    amount: int = Field(gt=0)


class GiftCard(CamelModel):
    id: int
    code: str
    original_amount: int
    remaining_amount: int
    status: str
    purchaser_email: str
    purchaser_name: Optional[str] = None
    recipient_email: Optional[str] = None
    recipient_name: Optional[str] = None
    message: Optional[str] = None
    expires_at: Optional[datetime] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)

    @field_serializer("code")
    def _display_code(self, code: str) -> str:
        return format_code(code)


class GiftCardTransaction(CamelModel):
    id: int
    gift_card_id: int
    amount: int
    type: str
    description: Optional[str] = None
    user_id: Optional[int] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)
