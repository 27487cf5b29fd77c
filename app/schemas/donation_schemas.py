from decimal import Decimal
from typing import Any, Dict, Optional

from pydantic import Field

from app.models.payment_model import RefundReason
from app.schemas.common import CamelModel, Money


class PaymentIntentResponse(CamelModel):
    success: bool = True
    client_secret: str
    payment_intent_id: str
    amount: Money


class ConfirmPaymentRequest(CamelModel):
    payment_intent_id: str = Field(..., description="Gateway payment intent id")
    payment_method_id: Optional[str] = Field(default=None, description="Payment method to confirm with")
    amount: Optional[Decimal] = Field(
        default=None, description="Amount the client believes was charged, checked against the gateway"
    )


class PaymentIntentBrief(CamelModel):
    id: str
    amount: Money
    status: str


class ConfirmPaymentResponse(CamelModel):
    success: bool
    status: str
    payment_intent: PaymentIntentBrief


class PaymentIntentDetail(CamelModel):
    id: str
    amount: Money
    amount_received: Money
    currency: str
    status: str
    created: Optional[int] = None
    metadata: Dict[str, str] = Field(default_factory=dict)


class PaymentIntentDetailResponse(CamelModel):
    success: bool = True
    payment_intent: PaymentIntentDetail


class RefundRequest(CamelModel):
    payment_intent_id: str = Field(..., description="Payment intent to refund")
    amount: Optional[Decimal] = Field(default=None, description="Partial amount; omit for a full refund")
    reason: RefundReason = Field(default=RefundReason.requested_by_customer)


class RefundDetail(CamelModel):
    id: str
    amount: Money
    status: str
    reason: Optional[str] = None
    payment_intent_id: str


class RefundResponse(CamelModel):
    success: bool = True
    refund: RefundDetail


class HealthResponse(CamelModel):
    status: str = "healthy"
    service: Optional[str] = None
    timestamp: str
    environment: Optional[str] = None
    uptime: Optional[float] = None
    details: Optional[Dict[str, Any]] = None
