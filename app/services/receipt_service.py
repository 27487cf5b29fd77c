import asyncio
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from app.core.config.settings import settings
from app.core.exceptions import AppError, ReceiptError
from app.core.logger import logger_manager
from app.models.payment_model import PaymentIntentSummary, RefundResult
from app.models.receipt_model import DonationReceiptData, RefundReceiptData
from app.utils.receipt_generator import ReceiptGenerator, get_receipt_generator


def _timestamp(value: Optional[int]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


class ReceiptService:
    """Async front for ReceiptGenerator; PDF rendering happens in the threadpool."""

    def __init__(self, generator: ReceiptGenerator, timeout: Optional[float] = None):
        self.generator = generator
        self.timeout = timeout or settings.files.RECEIPT_TIMEOUT
        self.logger = logger_manager.get_logger(__name__)

    async def _run(self, func, data) -> Path:
        try:
            return await asyncio.wait_for(asyncio.to_thread(func, data), timeout=self.timeout)
        except asyncio.TimeoutError:
            self.logger.error(f"⏱️ Receipt generation timed out after {self.timeout}s")
            raise ReceiptError("Receipt generation timed out")

    @staticmethod
    def donation_data_from_intent(intent: PaymentIntentSummary) -> DonationReceiptData:
        metadata = intent.metadata
        anonymous = metadata.get("anonymous") == "true"
        return DonationReceiptData(
            payment_intent_id=intent.id,
            amount=intent.amount_received or intent.amount,
            currency=intent.currency,
            donor_name=metadata.get("donorName") or "Anonymous",
            donor_email=metadata.get("donorEmail", ""),
            anonymous=anonymous,
            message=metadata.get("message") or None,
            project_title=metadata.get("projectTitle") or settings.organization.DEFAULT_PROJECT_TITLE,
            paid_at=_timestamp(intent.created) or datetime.now(timezone.utc),
        )

    @staticmethod
    def refund_data(refund: RefundResult, intent: Optional[PaymentIntentSummary] = None) -> RefundReceiptData:
        metadata = intent.metadata if intent else {}
        return RefundReceiptData(
            refund_id=refund.id,
            refund_amount=refund.amount,
            original_amount=refund.original_amount,
            currency=intent.currency if intent else settings.stripe.STRIPE_CURRENCY,
            reason=refund.reason,
            project_title=metadata.get("projectTitle") or settings.organization.DEFAULT_PROJECT_TITLE,
            donor_email=metadata.get("donorEmail"),
            original_payment_intent_id=refund.payment_intent_id,
            original_date=_timestamp(intent.created) if intent else None,
            refunded_at=_timestamp(refund.created) or datetime.now(timezone.utc),
        )

    async def generate_donation_receipt(self, data: DonationReceiptData) -> Path:
        return await self._run(self.generator.generate_donation_receipt, data)

    async def generate_refund_receipt(self, data: RefundReceiptData) -> Path:
        return await self._run(self.generator.generate_refund_receipt, data)

    async def receipt_for_intent(self, intent: PaymentIntentSummary) -> Path:
        return await self.generate_donation_receipt(self.donation_data_from_intent(intent))

    def find_receipt(self, payment_intent_id: str) -> Optional[Path]:
        path = self.generator.get_receipt_path(payment_intent_id)
        return path if path.is_file() else None

    async def safe_generate(self, func, data: Any) -> Optional[Path]:
        """Generate a receipt as a side effect: failures are logged and yield None."""
        try:
            return await func(data)
        except AppError as e:
            self.logger.error(f"❌ Receipt generation failed: {e.message}")
            return None
        except Exception:
            self.logger.exception("❌ Unexpected error during receipt generation")
            return None


_receipt_service: Optional[ReceiptService] = None


def get_receipt_service() -> ReceiptService:
    global _receipt_service
    if _receipt_service is None:
        _receipt_service = ReceiptService(get_receipt_generator())
    return _receipt_service
