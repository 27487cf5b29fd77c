from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request

from app.core.logger import logger_manager
from app.router.v1.dependencies import dev_only
from app.schemas.donation_schemas import HealthResponse
from app.schemas.webhook_schemas import WebhookAck, WebhookTestRequest, WebhookTestResponse
from app.services.webhook_service import WebhookService, build_test_event, get_webhook_service


router = APIRouter(prefix="/webhooks", tags=["Webhooks"])

logger = logger_manager.get_logger(__name__)


@router.post("/stripe", response_model=WebhookAck, response_model_exclude_none=True)
async def stripe_webhook_router(
    request: Request,
    stripe_signature: Optional[str] = Header(default=None),
    webhook_service: WebhookService = Depends(get_webhook_service),
):
    """Stripe 回调 - 必须使用原始请求体验证签名"""
    payload = await request.body()
    event = webhook_service.construct_event(payload, stripe_signature)
    result = await webhook_service.handle_event(event)
    return WebhookAck(duplicate=True if result.duplicate else None)


@router.post("/test", response_model=WebhookTestResponse, dependencies=[Depends(dev_only)])
async def test_webhook_router(
    form_data: WebhookTestRequest,
    webhook_service: WebhookService = Depends(get_webhook_service),
):
    event = build_test_event(form_data.event_type.value, form_data.event_data)
    logger.info(f"🧪 Test webhook received: {event.type} ({event.id})")
    await webhook_service.handle_event(event)
    return WebhookTestResponse(message="Test webhook processed successfully", event_id=event.id)


@router.get("/health", response_model=HealthResponse, response_model_exclude_none=True)
async def webhooks_health_router():
    return HealthResponse(
        service="webhook-handler",
        timestamp=datetime.now(timezone.utc).isoformat(),
        details={"endpoints": {"stripe": "/api/webhooks/stripe", "test": "/api/webhooks/test"}},
    )
