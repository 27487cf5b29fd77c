from fastapi import APIRouter, Depends

from app.router.v1.dependencies import require_admin_key
from app.schemas.common import SuccessResponse
from app.schemas.newsletter_schemas import SubscribeRequest
from app.services.subscriber_service import SubscriberService, get_subscriber_service


router = APIRouter(prefix="/newsletter", tags=["Newsletter"])


@router.post("/subscribe", response_model=SuccessResponse, response_model_exclude_none=True)
async def subscribe_router(
    form_data: SubscribeRequest,
    subscriber_service: SubscriberService = Depends(get_subscriber_service),
):
    """订阅新闻通讯 - 重复订阅返回 409"""
    await subscriber_service.create_subscriber(
        email=form_data.email, source=form_data.source or "website"
    )
    return SuccessResponse(message="Subscribed successfully!")


@router.get(
    "/subscribers",
    response_model=SuccessResponse,
    dependencies=[Depends(require_admin_key)],
)
async def get_subscriber_lists_router(
    subscriber_service: SubscriberService = Depends(get_subscriber_service),
):
    subscribers = await subscriber_service.get_subscriber_lists()
    return SuccessResponse(
        message="Subscribers retrieved",
        data={"subscribers": subscribers, "count": len(subscribers)},
    )
