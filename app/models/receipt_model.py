from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


def _now() -> datetime:
    return datetime.now(timezone.utc)


class DonationReceiptData(BaseModel):
    payment_intent_id: str
    amount: Decimal
    currency: str = "usd"
    donor_name: str = "Anonymous"
    donor_email: str
    anonymous: bool = False
    message: Optional[str] = None
    project_title: str
    project_category: Optional[str] = None
    project_location: Optional[str] = None
    payment_method: Optional[str] = None
    paid_at: datetime = Field(default_factory=_now)

    @property
    def display_name(self) -> str:
        return "Anonymous Donor" if self.anonymous else self.donor_name


class RefundReceiptData(BaseModel):
    refund_id: str
    refund_amount: Decimal
    original_amount: Decimal
    currency: str = "usd"
    reason: Optional[str] = None
    project_title: str
    donor_email: Optional[str] = None
    original_payment_intent_id: str
    original_date: Optional[datetime] = None
    refunded_at: datetime = Field(default_factory=_now)
