from typing import List, Optional

from fastapi import Depends

from app.core.exceptions import DeliveryError, ValidationError
from app.core.logger import logger_manager
from app.crud.subscriber_store import SubscriberStore, get_subscriber_store
from app.services.notification_service import NotificationService, get_notification_service
from app.utils.validation import validate_email


class SubscriberService:
    def __init__(
        self,
        subscriber_store: SubscriberStore,
        notification_service: Optional[NotificationService] = None,
    ):
        self.subscriber_store = subscriber_store
        self.notification_service = notification_service
        self.logger = logger_manager.get_logger(__name__)

    async def get_subscriber_lists(self) -> List[str]:
        return await self.subscriber_store.list_subscribers()

    async def create_subscriber(self, email: str, source: str = "website", notify: bool = True) -> str:
        """Subscribe ``email``; duplicates raise DuplicateSubscriberError (409)."""
        email = (email or "").strip().lower()
        check = validate_email(email)
        if not check.is_valid:
            raise ValidationError("Invalid email address.", errors=check.errors)

        subscriber = await self.subscriber_store.add_subscriber(email)
        if notify and self.notification_service is not None:
            total = len(await self.subscriber_store.list_subscribers())
            try:
                await self.notification_service.send_newsletter_notification(
                    {"email": subscriber, "source": source, "totalSubscribers": total}
                )
            except DeliveryError as e:
                self.logger.error(f"❌ Newsletter admin notification failed: {e.message}")
        return subscriber


def get_subscriber_service(
    subscriber_store: SubscriberStore = Depends(get_subscriber_store),
    notification_service: NotificationService = Depends(get_notification_service),
) -> SubscriberService:
    return SubscriberService(
        subscriber_store=subscriber_store, notification_service=notification_service
    )
