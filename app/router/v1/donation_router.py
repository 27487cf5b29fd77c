from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Header, Request
from fastapi.responses import FileResponse

from app.core.config.settings import settings
from app.core.exceptions import AppError, NotFoundError, ValidationError
from app.core.logger import logger_manager
from app.decorators.rate_limiter import rate_limiter
from app.models.payment_model import PaymentIntentStatus
from app.router.v1.dependencies import dev_only, require_admin_key
from app.schemas.common import SuccessResponse
from app.schemas.donation_schemas import (
    ConfirmPaymentRequest,
    ConfirmPaymentResponse,
    HealthResponse,
    PaymentIntentDetailResponse,
    PaymentIntentResponse,
    RefundRequest,
    RefundResponse,
)
from app.services.notification_service import NotificationService, get_notification_service
from app.services.payment_service import PaymentService, get_payment_service
from app.services.receipt_service import ReceiptService, get_receipt_service
from app.utils.sanitize import sanitize_mapping
from app.utils.validation import validate_email, validate_payment_intent_id


router = APIRouter(prefix="/donations", tags=["Donations"])

logger = logger_manager.get_logger(__name__)

rate_config = settings.rate_limit


@router.post("/create-payment-intent", response_model=PaymentIntentResponse)
@rate_limiter(
    limit=rate_config.PAYMENT_RATE_LIMIT,
    seconds=rate_config.PAYMENT_RATE_LIMIT_SECONDS,
    scope="payment",
    message="Too many payment attempts from this IP, please try again later.",
)
async def create_payment_intent_router(
    request: Request,
    payload: Dict[str, Any] = Body(...),
    idempotency_key: Optional[str] = Header(default=None),
    payment_service: PaymentService = Depends(get_payment_service),
):
    """创建支付意图 - 接受网站各版本表单的字段写法"""
    result = await payment_service.create_payment_intent(
        sanitize_mapping(payload), idempotency_key=idempotency_key
    )
    return PaymentIntentResponse(
        client_secret=result.client_secret,
        payment_intent_id=result.payment_intent_id,
        amount=result.amount,
    )


@router.post("/confirm-payment", response_model=ConfirmPaymentResponse)
@rate_limiter(
    limit=rate_config.PAYMENT_RATE_LIMIT,
    seconds=rate_config.PAYMENT_RATE_LIMIT_SECONDS,
    scope="payment",
    message="Too many payment attempts from this IP, please try again later.",
)
async def confirm_payment_router(
    request: Request,
    form_data: ConfirmPaymentRequest,
    payment_service: PaymentService = Depends(get_payment_service),
):
    confirmation = await payment_service.confirm_payment(
        form_data.payment_intent_id,
        payment_method_id=form_data.payment_method_id,
        expected_amount=form_data.amount,
    )
    intent = confirmation.payment_intent
    return {
        "success": confirmation.success,
        "status": confirmation.status,
        "payment_intent": {"id": intent.id, "amount": intent.amount, "status": intent.status},
    }


@router.get("/payment-intent/{payment_intent_id}", response_model=PaymentIntentDetailResponse)
async def get_payment_intent_router(
    payment_intent_id: str,
    payment_service: PaymentService = Depends(get_payment_service),
):
    if not validate_payment_intent_id(payment_intent_id).is_valid:
        raise NotFoundError("Payment intent not found")
    intent = await payment_service.get_payment_intent(payment_intent_id)
    return {"success": True, "payment_intent": intent.model_dump()}


# 公开路由, 不要求 X-Admin-Key
@router.post("/refund", response_model=RefundResponse)
@rate_limiter(
    limit=rate_config.PAYMENT_RATE_LIMIT,
    seconds=rate_config.PAYMENT_RATE_LIMIT_SECONDS,
    scope="refund",
)
async def create_refund_router(
    request: Request,
    form_data: RefundRequest,
    payment_service: PaymentService = Depends(get_payment_service),
    receipt_service: ReceiptService = Depends(get_receipt_service),
    notification_service: NotificationService = Depends(get_notification_service),
):
    refund = await payment_service.create_refund(
        form_data.payment_intent_id,
        amount=form_data.amount,
        reason=form_data.reason.value,
    )

    # 退款回执和通知邮件失败不影响退款结果
    try:
        intent = await payment_service.get_payment_intent(refund.payment_intent_id)
        receipt_path = await receipt_service.safe_generate(
            receipt_service.generate_refund_receipt,
            receipt_service.refund_data(refund, intent),
        )
        donor_email = intent.metadata.get("donorEmail")
        if donor_email:
            await notification_service.send_refund_confirmation(
                {
                    "donorEmail": donor_email,
                    "refundId": refund.id,
                    "amount": refund.amount,
                    "originalAmount": refund.original_amount,
                    "currency": intent.currency,
                    "reason": refund.reason,
                    "projectTitle": intent.metadata.get("projectTitle"),
                    "paymentIntentId": refund.payment_intent_id,
                },
                receipt_path=receipt_path,
            )
    except AppError as e:
        logger.error(f"❌ Refund follow-up failed for {refund.id}: {e.message}")

    return {"success": True, "refund": refund.model_dump()}


@router.get("/receipt/{payment_intent_id}", response_class=FileResponse)
async def download_receipt_router(
    payment_intent_id: str,
    payment_service: PaymentService = Depends(get_payment_service),
    receipt_service: ReceiptService = Depends(get_receipt_service),
):
    """下载回执 - 文件不存在但支付已成功时即时生成"""
    if not validate_payment_intent_id(payment_intent_id).is_valid:
        raise NotFoundError("Receipt not found")

    path = receipt_service.find_receipt(payment_intent_id)
    if path is None:
        try:
            intent = await payment_service.get_payment_intent(payment_intent_id)
        except NotFoundError:
            raise NotFoundError("Receipt not found")
        if intent.status != PaymentIntentStatus.succeeded.value:
            raise NotFoundError("Receipt not found")
        path = await receipt_service.receipt_for_intent(intent)

    return FileResponse(path, media_type="application/pdf", filename=path.name)


@router.post(
    "/send-notification",
    response_model=SuccessResponse,
    dependencies=[Depends(require_admin_key)],
)
async def send_donation_notification_router(
    payload: Dict[str, Any] = Body(...),
    notification_service: NotificationService = Depends(get_notification_service),
):
    result = await notification_service.send_donation_notification(sanitize_mapping(payload))
    return SuccessResponse(message="Donation notification email sent successfully", data=result)


@router.post(
    "/send-confirmation",
    response_model=SuccessResponse,
    dependencies=[Depends(require_admin_key)],
)
async def send_donation_confirmation_router(
    payload: Dict[str, Any] = Body(...),
    notification_service: NotificationService = Depends(get_notification_service),
    receipt_service: ReceiptService = Depends(get_receipt_service),
):
    payload = sanitize_mapping(payload)
    receipt_path = None
    payment_intent_id = payload.get("paymentIntentId")
    if payment_intent_id and validate_payment_intent_id(payment_intent_id).is_valid:
        receipt_path = receipt_service.find_receipt(payment_intent_id)

    result = await notification_service.send_donation_confirmation(payload, receipt_path=receipt_path)
    return SuccessResponse(message="Donation confirmation email sent successfully", data=result)


def _require_email(payload: Dict[str, Any]) -> str:
    email = (payload.get("email") or "").strip()
    check = validate_email(email)
    if not check.is_valid:
        raise ValidationError("Email is required", errors=check.errors)
    return email


@router.post("/test-email", response_model=SuccessResponse, dependencies=[Depends(dev_only)])
async def test_email_router(
    payload: Dict[str, Any] = Body(...),
    notification_service: NotificationService = Depends(get_notification_service),
):
    """发送一封示例捐款确认邮件"""
    result = await notification_service.send_donation_confirmation(
        {
            "donorName": "Test User",
            "donorEmail": _require_email(payload),
            "amount": "25.00",
            "projectTitle": "Test Project",
            "message": "This is a test donation",
            "paymentIntentId": "pi_test123",
        }
    )
    return SuccessResponse(message="Test email sent successfully", data=result)


@router.post("/test-resend", response_model=SuccessResponse, dependencies=[Depends(dev_only)])
async def test_resend_router(
    payload: Dict[str, Any] = Body(...),
    notification_service: NotificationService = Depends(get_notification_service),
):
    result = await notification_service.send_test_email(_require_email(payload))
    return SuccessResponse(message="Test email sent successfully", data=result)


@router.get("/health", response_model=HealthResponse, response_model_exclude_none=True)
async def donations_health_router():
    return HealthResponse(
        service="donation-api",
        timestamp=datetime.now(timezone.utc).isoformat(),
    )
