from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, Request

from app.core.config.settings import settings
from app.core.exceptions import DeliveryError
from app.core.logger import logger_manager
from app.decorators.rate_limiter import rate_limiter
from app.router.v1.dependencies import require_admin_key
from app.schemas.common import SuccessResponse
from app.schemas.contact_schemas import ContactReceipt, ContactRequest
from app.services.notification_service import NotificationService, get_notification_service
from app.utils.sanitize import sanitize_mapping


router = APIRouter(tags=["Contact"])

logger = logger_manager.get_logger(__name__)


@router.post("/contact", response_model=SuccessResponse)
@rate_limiter(
    limit=settings.rate_limit.CONTACT_RATE_LIMIT,
    seconds=settings.rate_limit.CONTACT_RATE_LIMIT_SECONDS,
    scope="contact",
    message="Too many contact form submissions from this IP, please try again after 15 minutes.",
)
async def submit_contact_router(
    request: Request,
    form_data: ContactRequest,
    notification_service: NotificationService = Depends(get_notification_service),
):
    """联系表单 - 管理员通知邮件失败不影响提交结果"""
    submitted_at = datetime.now(timezone.utc).isoformat()
    try:
        await notification_service.send_contact_notification(
            {
                "name": form_data.name,
                "email": form_data.email,
                "subject": form_data.subject,
                "message": form_data.message or "",
                "submittedAt": submitted_at,
            }
        )
    except DeliveryError as e:
        logger.error(f"❌ Contact notification failed: {e.message}")

    receipt = ContactReceipt(
        name=form_data.name,
        email=form_data.email,
        subject=form_data.subject,
        submitted_at=submitted_at,
    )
    return SuccessResponse(
        message="Contact form submitted successfully. We will get back to you soon!",
        data=receipt.model_dump(by_alias=True),
    )


@router.post(
    "/contact/send-notification",
    response_model=SuccessResponse,
    dependencies=[Depends(require_admin_key)],
)
async def send_contact_notification_router(
    payload: Dict[str, Any] = Body(...),
    notification_service: NotificationService = Depends(get_notification_service),
):
    result = await notification_service.send_contact_notification(sanitize_mapping(payload))
    return SuccessResponse(message="Notification email sent successfully", data=result)


@router.post(
    "/volunteers/send-notification",
    response_model=SuccessResponse,
    dependencies=[Depends(require_admin_key)],
)
async def send_volunteer_notification_router(
    payload: Dict[str, Any] = Body(...),
    notification_service: NotificationService = Depends(get_notification_service),
):
    result = await notification_service.send_volunteer_notification(sanitize_mapping(payload))
    return SuccessResponse(
        message="Volunteer application notification email sent successfully", data=result
    )


@router.post(
    "/enrollments/send-notification",
    response_model=SuccessResponse,
    dependencies=[Depends(require_admin_key)],
)
async def send_enrollment_notification_router(
    payload: Dict[str, Any] = Body(...),
    notification_service: NotificationService = Depends(get_notification_service),
):
    result = await notification_service.send_enrollment_notification(sanitize_mapping(payload))
    return SuccessResponse(
        message="Course enrollment notification email sent successfully", data=result
    )
