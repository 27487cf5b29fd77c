from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class PaymentIntentStatus(str, Enum):
    """Lifecycle states reported by the payment gateway."""

    requires_payment_method = "requires_payment_method"
    requires_confirmation = "requires_confirmation"
    requires_action = "requires_action"
    processing = "processing"
    requires_capture = "requires_capture"
    succeeded = "succeeded"
    canceled = "canceled"

    @property
    def is_terminal(self) -> bool:
        return self in (PaymentIntentStatus.succeeded, PaymentIntentStatus.canceled)


class RefundReason(str, Enum):
    requested_by_customer = "requested_by_customer"
    duplicate = "duplicate"
    fraudulent = "fraudulent"

    @classmethod
    def values(cls) -> List[str]:
        return [member.value for member in cls]


class WebhookEventType(str, Enum):
    payment_succeeded = "payment_intent.succeeded"
    payment_failed = "payment_intent.payment_failed"
    charge_refunded = "charge.refunded"


class DonationRequest(BaseModel):
    """A validated donation, amounts in major units."""

    amount: Decimal
    project_id: str
    project_title: str
    donor_name: str
    donor_email: str
    anonymous: bool = False
    message: str = ""

    @property
    def display_name(self) -> str:
        return "Anonymous" if self.anonymous else self.donor_name

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "DonationRequest":
        """Build from the camelCase dict produced by ``normalize_donation_payload``."""
        return cls(
            amount=payload["amount"],
            project_id=payload["projectId"],
            project_title=payload["projectTitle"],
            donor_name=payload.get("donorName") or "Anonymous",
            donor_email=payload["donorEmail"],
            anonymous=payload.get("anonymous") is True,
            message=payload.get("message") or "",
        )


class PaymentIntentResult(BaseModel):
    client_secret: str
    payment_intent_id: str
    amount: Decimal


class PaymentIntentSummary(BaseModel):
    id: str
    amount: Decimal
    amount_received: Decimal = Decimal("0")
    currency: str
    status: str
    created: Optional[int] = None
    metadata: Dict[str, str] = Field(default_factory=dict)


class PaymentConfirmation(BaseModel):
    success: bool
    status: str
    payment_intent: PaymentIntentSummary


class RefundResult(BaseModel):
    id: str
    amount: Decimal
    status: str
    reason: Optional[str] = None
    payment_intent_id: str
    original_amount: Decimal
    created: Optional[int] = None
