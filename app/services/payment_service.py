import asyncio
from decimal import Decimal
from functools import partial
from typing import Any, Dict, Mapping, Optional

import stripe

from app.core.config.settings import settings
from app.core.exceptions import CardError, GatewayError, NotFoundError, ValidationError
from app.core.logger import logger_manager
from app.models.payment_model import (
    DonationRequest,
    PaymentConfirmation,
    PaymentIntentResult,
    PaymentIntentStatus,
    PaymentIntentSummary,
    RefundReason,
    RefundResult,
)
from app.utils.currency import CENT, from_minor_units, to_minor_units
from app.utils.validation import (
    normalize_donation_payload,
    parse_amount,
    validate_donation_data,
    validate_payment_intent_id,
    validate_refund_data,
)


def stripe_object_to_dict(obj: Any) -> Dict[str, Any]:
    """Flat dict from a StripeObject (or mapping); None becomes {}."""
    if obj is None:
        return {}
    return dict(obj)


def summarize_intent(intent: Any) -> PaymentIntentSummary:
    return PaymentIntentSummary(
        id=intent.id,
        amount=from_minor_units(intent.amount),
        amount_received=from_minor_units(getattr(intent, "amount_received", None) or 0),
        currency=getattr(intent, "currency", None) or settings.stripe.STRIPE_CURRENCY,
        status=intent.status,
        created=getattr(intent, "created", None),
        metadata={
            str(k): str(v)
            for k, v in stripe_object_to_dict(getattr(intent, "metadata", None)).items()
        },
    )


class PaymentService:
    """Thin adapter over the Stripe SDK. The gateway record is the only authority."""

    def __init__(self, api_key: Optional[str] = None, timeout: Optional[float] = None):
        # 设置 Stripe API 密钥
        if api_key is None and settings.stripe.STRIPE_SECRET_KEY is not None:
            api_key = settings.stripe.STRIPE_SECRET_KEY.get_secret_value()
        if api_key:
            stripe.api_key = api_key
        stripe.max_network_retries = settings.stripe.STRIPE_MAX_NETWORK_RETRIES
        self.currency = settings.stripe.STRIPE_CURRENCY
        self.payment_method_types = [
            item.strip()
            for item in settings.stripe.STRIPE_PAYMENT_METHOD_TYPES.split(",")
            if item.strip()
        ]
        self.timeout = timeout or settings.stripe.STRIPE_TIMEOUT
        self.logger = logger_manager.get_logger(__name__)

    async def _call(self, operation: str, func, *args, **kwargs):
        """Run a blocking SDK call off the event loop and translate its errors."""
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(partial(func, *args, **kwargs)), timeout=self.timeout
            )
        except asyncio.TimeoutError:
            self.logger.error(f"⏱️ Stripe {operation} timed out after {self.timeout}s")
            raise GatewayError("Payment service timed out", status_code=504)
        except stripe.CardError as e:
            self.logger.warning(f"💳 Card error during {operation}: {e.user_message or e}")
            raise CardError(e.user_message or str(e) or "Your card was declined")
        except stripe.InvalidRequestError as e:
            if getattr(e, "code", None) == "resource_missing":
                self.logger.info(f"Stripe {operation}: resource not found")
                raise NotFoundError("Payment intent not found")
            self.logger.error(f"❌ Invalid Stripe request during {operation}: {e}")
            raise GatewayError("Invalid payment request", status_code=400)
        except (
            stripe.APIConnectionError,
            stripe.APIError,
            stripe.AuthenticationError,
            stripe.RateLimitError,
        ) as e:
            self.logger.error(f"❌ Stripe unavailable during {operation}: {e}")
            raise GatewayError("Payment service temporarily unavailable", status_code=502)
        except stripe.StripeError as e:
            self.logger.error(f"❌ Stripe {operation} failed: {e}")
            raise GatewayError("Payment processing failed")

    async def create_payment_intent(
        self, donation_data: Mapping[str, Any], idempotency_key: Optional[str] = None
    ) -> PaymentIntentResult:
        """Validate a donation and open a payment intent for it."""
        payload = normalize_donation_payload(donation_data)
        result = validate_donation_data(payload)
        if not result.is_valid:
            raise ValidationError("Validation failed", errors=result.errors)

        donation = DonationRequest.from_payload(payload)
        amount_minor = to_minor_units(donation.amount)

        params: Dict[str, Any] = {
            "amount": amount_minor,
            "currency": self.currency,
            "payment_method_types": self.payment_method_types,
            "description": f"Donation to {donation.project_title}",
            "receipt_email": donation.donor_email,
            # Stripe metadata 只接受字符串值
            "metadata": {
                "projectId": donation.project_id,
                "projectTitle": donation.project_title,
                "donorName": donation.display_name,
                "donorEmail": donation.donor_email,
                "message": donation.message,
                "anonymous": "true" if donation.anonymous else "false",
            },
        }
        if idempotency_key:
            params["idempotency_key"] = idempotency_key

        intent = await self._call("create_payment_intent", stripe.PaymentIntent.create, **params)
        self.logger.info(
            f"💰 Payment intent {intent.id} created: {amount_minor} {self.currency} for {donation.project_id}"
        )
        return PaymentIntentResult(
            client_secret=intent.client_secret,
            payment_intent_id=intent.id,
            amount=from_minor_units(intent.amount),
        )

    async def get_payment_intent(self, payment_intent_id: str) -> PaymentIntentSummary:
        intent = await self._retrieve(payment_intent_id)
        return summarize_intent(intent)

    async def _retrieve(self, payment_intent_id: str):
        check = validate_payment_intent_id(payment_intent_id)
        if not check.is_valid:
            raise ValidationError("Validation failed", errors=check.errors)
        return await self._call("retrieve", stripe.PaymentIntent.retrieve, payment_intent_id)

    def _check_expected_amount(self, summary: PaymentIntentSummary, expected_amount: Optional[Decimal]) -> None:
        if expected_amount is None:
            return
        expected = parse_amount(expected_amount)
        if expected is None:
            raise ValidationError("Validation failed", errors=["Amount must be a number"])
        if expected.quantize(CENT) != summary.amount:
            self.logger.warning(
                f"⚠️ Amount mismatch for {summary.id}: client={expected} gateway={summary.amount}"
            )
            raise ValidationError("Amount mismatch", errors=["Amount does not match the payment"])

    async def confirm_payment(
        self,
        payment_intent_id: str,
        payment_method_id: Optional[str] = None,
        expected_amount: Optional[Decimal] = None,
    ) -> PaymentConfirmation:
        """
        Confirm a payment intent, or check that a client-confirmed one succeeded.

        ``expected_amount`` is what the client believes it will pay. It is
        compared against the gateway's stored amount before anything is
        confirmed, and a mismatch is rejected without charging the card.
        """
        intent = await self._retrieve(payment_intent_id)
        summary = summarize_intent(intent)
        self._check_expected_amount(summary, expected_amount)

        if payment_method_id:
            intent = await self._call(
                "confirm",
                stripe.PaymentIntent.confirm,
                payment_intent_id,
                payment_method=payment_method_id,
            )
            summary = summarize_intent(intent)
        elif summary.status != PaymentIntentStatus.succeeded.value:
            raise ValidationError(
                "Payment not completed",
                errors=[f"Payment intent status is {summary.status}"],
            )

        succeeded = summary.status == PaymentIntentStatus.succeeded.value
        self.logger.info(f"✅ Payment {summary.id} confirmation checked: {summary.status}")
        return PaymentConfirmation(success=succeeded, status=summary.status, payment_intent=summary)

    async def create_refund(
        self,
        payment_intent_id: str,
        amount: Optional[Decimal] = None,
        reason: Optional[str] = RefundReason.requested_by_customer.value,
    ) -> RefundResult:
        """Refund a succeeded payment. ``amount`` omitted means a full refund."""
        reason = reason or RefundReason.requested_by_customer.value
        check = validate_refund_data(
            {"paymentIntentId": payment_intent_id, "amount": amount, "reason": reason}
        )
        if not check.is_valid:
            raise ValidationError("Validation failed", errors=check.errors)

        intent = await self._retrieve(payment_intent_id)
        if intent.status != PaymentIntentStatus.succeeded.value:
            raise ValidationError(
                "Payment cannot be refunded",
                errors=[f"Payment intent status is {intent.status}"],
            )

        captured_minor = getattr(intent, "amount_received", None) or intent.amount
        params: Dict[str, Any] = {"payment_intent": payment_intent_id, "reason": reason}
        if amount is not None:
            amount_minor = to_minor_units(amount)
            if amount_minor > captured_minor:
                raise ValidationError(
                    "Refund amount exceeds the original payment",
                    errors=["Refund amount cannot exceed the captured amount"],
                )
            params["amount"] = amount_minor

        refund = await self._call("create_refund", stripe.Refund.create, **params)
        self.logger.info(
            f"↩️ Refund {refund.id} created for {payment_intent_id}: {refund.amount} ({reason})"
        )
        return RefundResult(
            id=refund.id,
            amount=from_minor_units(refund.amount),
            status=refund.status,
            reason=getattr(refund, "reason", None) or reason,
            payment_intent_id=payment_intent_id,
            original_amount=from_minor_units(captured_minor),
            created=getattr(refund, "created", None),
        )


_payment_service: Optional[PaymentService] = None


def get_payment_service() -> PaymentService:
    global _payment_service
    if _payment_service is None:
        _payment_service = PaymentService()
    return _payment_service
