from .payment_model import (
    DonationRequest,
    PaymentConfirmation,
    PaymentIntentResult,
    PaymentIntentStatus,
    PaymentIntentSummary,
    RefundReason,
    RefundResult,
    WebhookEventType,
)
from .expression_model import ExpressionOfInterest, ExpressionStatus


__all__ = [
    "DonationRequest",
    "PaymentConfirmation",
    "PaymentIntentResult",
    "PaymentIntentStatus",
    "PaymentIntentSummary",
    "RefundReason",
    "RefundResult",
    "WebhookEventType",
    "ExpressionOfInterest",
    "ExpressionStatus",
]
