import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

import stripe

from app.core.config.settings import settings
from app.core.exceptions import AppError, SignatureError, ValidationError
from app.core.logger import logger_manager
from app.crud.event_store import ProcessedEventStore, get_event_store
from app.models.payment_model import RefundResult, WebhookEventType
from app.services.notification_service import NotificationService, get_notification_service
from app.services.payment_service import summarize_intent
from app.services.receipt_service import ReceiptService, get_receipt_service
from app.utils.currency import from_minor_units
from app.utils.webhook_signature import verify_webhook_signature


@dataclass
class WebhookResult:
    event_id: str
    event_type: str
    handled: bool
    duplicate: bool = False


class PaymentEventHandler(ABC):
    """Side effects attached to gateway events, one coroutine per event kind."""

    @abstractmethod
    async def on_payment_succeeded(self, intent: Any) -> None:
        pass

    @abstractmethod
    async def on_payment_failed(self, intent: Any) -> None:
        pass

    @abstractmethod
    async def on_charge_refunded(self, charge: Any) -> None:
        pass


class LoggingPaymentEventHandler(PaymentEventHandler):
    def __init__(self):
        self.logger = logger_manager.get_logger(__name__)

    async def on_payment_succeeded(self, intent: Any) -> None:
        self.logger.info(f"✅ Payment succeeded: {intent.id} amount={intent.amount}")

    async def on_payment_failed(self, intent: Any) -> None:
        last_error = getattr(intent, "last_payment_error", None)
        reason = getattr(last_error, "message", None) if last_error else None
        self.logger.warning(f"❌ Payment failed: {intent.id} reason={reason or 'unknown'}")

    async def on_charge_refunded(self, charge: Any) -> None:
        self.logger.info(
            f"↩️ Charge refunded: {charge.id} amount_refunded={getattr(charge, 'amount_refunded', 0)}"
        )


class DonationEventHandler(LoggingPaymentEventHandler):
    """Receipts and e-mails for settled donations. Failures here never fail the event."""

    def __init__(self, receipt_service: ReceiptService, notification_service: NotificationService):
        super().__init__()
        self.receipt_service = receipt_service
        self.notification_service = notification_service

    async def on_payment_succeeded(self, intent: Any) -> None:
        await super().on_payment_succeeded(intent)
        summary = summarize_intent(intent)
        receipt_path = await self.receipt_service.safe_generate(
            self.receipt_service.receipt_for_intent, summary
        )

        metadata = summary.metadata
        payload = {
            "donorEmail": metadata.get("donorEmail"),
            "donorName": metadata.get("donorName"),
            "anonymous": metadata.get("anonymous") == "true",
            "amount": summary.amount_received or summary.amount,
            "currency": summary.currency,
            "projectTitle": metadata.get("projectTitle"),
            "message": metadata.get("message"),
            "paymentIntentId": summary.id,
        }
        await self._deliver(
            "donor confirmation",
            self.notification_service.send_donation_confirmation,
            payload,
            receipt_path=receipt_path,
        )
        await self._deliver(
            "admin donation notification",
            self.notification_service.send_donation_notification,
            payload,
        )

    async def on_charge_refunded(self, charge: Any) -> None:
        await super().on_charge_refunded(charge)
        refunds = getattr(charge, "refunds", None)
        data = getattr(refunds, "data", None) or []
        if not data:
            self.logger.info(f"Charge {charge.id} carries no refund objects, no receipt written")
            return

        # 最新的退款排在第一位
        latest = data[0]
        refund = RefundResult(
            id=latest.id,
            amount=from_minor_units(latest.amount),
            status=getattr(latest, "status", None) or "succeeded",
            reason=getattr(latest, "reason", None),
            payment_intent_id=getattr(charge, "payment_intent", None) or "",
            original_amount=from_minor_units(charge.amount),
            created=getattr(latest, "created", None),
        )
        await self.receipt_service.safe_generate(
            self.receipt_service.generate_refund_receipt,
            self.receipt_service.refund_data(refund),
        )

    async def _deliver(self, label: str, send: Callable[..., Awaitable[Any]], payload, **kwargs) -> None:
        try:
            await send(payload, **kwargs)
        except AppError as e:
            self.logger.error(f"❌ Failed to send {label}: {e.message}")
        except Exception:
            self.logger.exception(f"❌ Unexpected error while sending {label}")


class WebhookService:
    def __init__(
        self,
        handler: PaymentEventHandler,
        event_store: ProcessedEventStore,
        secret: Optional[str] = None,
        tolerance: Optional[int] = None,
    ):
        self.handler = handler
        self.event_store = event_store
        self.secret = secret
        self.tolerance = tolerance
        self.logger = logger_manager.get_logger(__name__)
        self._dispatch: Dict[str, Callable[[Any], Awaitable[None]]] = {
            WebhookEventType.payment_succeeded.value: handler.on_payment_succeeded,
            WebhookEventType.payment_failed.value: handler.on_payment_failed,
            WebhookEventType.charge_refunded.value: handler.on_charge_refunded,
        }

    def construct_event(self, payload: bytes, signature: Optional[str]) -> stripe.Event:
        """Verify the raw body against its signature, then parse it."""
        if not verify_webhook_signature(payload, signature, self.secret, tolerance=self.tolerance):
            self.logger.warning("⚠️ Webhook signature verification failed")
            raise SignatureError("Invalid webhook signature")

        try:
            # 签名已在上面校验过, 这里不再重复时间窗口检查
            event = stripe.Webhook.construct_event(payload, signature, self.secret, tolerance=None)
        except stripe.SignatureVerificationError:
            raise SignatureError("Invalid webhook signature")
        except ValueError:
            raise ValidationError("Invalid payload", errors=["Body is not valid JSON"])
        except AttributeError:
            # JSON 合法但不是对象 (例如数组)
            raise ValidationError("Invalid payload", errors=["Body is not a JSON object"])

        if not event.get("id") or not event.get("type"):
            raise ValidationError("Invalid payload", errors=["Event id and type are required"])
        return event

    async def handle_event(self, event: Any) -> WebhookResult:
        event_id = event.id
        event_type = event.type
        handler = self._dispatch.get(event_type)
        if handler is None:
            self.logger.info(f"Unhandled webhook event type: {event_type}")
            return WebhookResult(event_id=event_id, event_type=event_type, handled=False)

        if not await self.event_store.claim(event_id):
            self.logger.info(f"🔁 Duplicate webhook event ignored: {event_id}")
            return WebhookResult(
                event_id=event_id, event_type=event_type, handled=False, duplicate=True
            )

        try:
            await handler(event.data.object)
        except Exception:
            # 释放事件, 让 Stripe 的重试重新处理
            await self.event_store.release(event_id)
            self.logger.exception(f"❌ Webhook handler failed for {event_type} ({event_id})")
            raise

        self.logger.info(f"📨 Webhook event processed: {event_type} ({event_id})")
        return WebhookResult(event_id=event_id, event_type=event_type, handled=True)


def build_test_event(event_type: str, event_data: Optional[Dict[str, Any]] = None) -> stripe.Event:
    """A synthetic event for the development trigger endpoint."""
    obj = dict(event_data or {})
    obj.setdefault("id", f"pi_test{uuid.uuid4().hex[:16]}")
    obj.setdefault("object", "charge" if event_type.startswith("charge.") else "payment_intent")
    obj.setdefault("amount", 0)
    obj.setdefault("currency", settings.stripe.STRIPE_CURRENCY)
    if event_type == WebhookEventType.payment_succeeded.value:
        obj.setdefault("status", "succeeded")
        obj.setdefault("amount_received", obj["amount"])
    elif event_type == WebhookEventType.payment_failed.value:
        obj.setdefault("status", "requires_payment_method")
    return stripe.Event.construct_from(
        {
            "id": f"evt_test_{uuid.uuid4().hex}",
            "object": "event",
            "type": event_type,
            "created": int(time.time()),
            "data": {"object": obj},
        },
        stripe.api_key,
    )


_webhook_service: Optional[WebhookService] = None


def get_webhook_service() -> WebhookService:
    global _webhook_service
    if _webhook_service is None:
        secret = settings.stripe.STRIPE_WEBHOOK_SECRET
        _webhook_service = WebhookService(
            handler=DonationEventHandler(get_receipt_service(), get_notification_service()),
            event_store=get_event_store(),
            secret=secret.get_secret_value() if secret else None,
            tolerance=settings.stripe.STRIPE_WEBHOOK_TOLERANCE,
        )
    return _webhook_service
