from typing import Any, Dict, Optional

from pydantic import Field

from app.models.payment_model import WebhookEventType
from app.schemas.common import CamelModel


class WebhookAck(CamelModel):
    received: bool = True
    duplicate: Optional[bool] = None


class WebhookTestRequest(CamelModel):
    event_type: WebhookEventType = Field(default=WebhookEventType.payment_succeeded)
    event_data: Dict[str, Any] = Field(default_factory=dict)


class WebhookTestResponse(CamelModel):
    success: bool = True
    message: str
    event_id: str
