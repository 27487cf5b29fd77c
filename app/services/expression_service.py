from typing import Any, Dict, List, Optional

from fastapi import Depends

from app.core.exceptions import DeliveryError, DuplicateSubscriberError
from app.core.logger import logger_manager
from app.crud.expression_store import ExpressionStore, get_expression_store
from app.crud.subscriber_store import SubscriberStore, get_subscriber_store
from app.models.expression_model import ExpressionOfInterest, ExpressionStatus
from app.services.notification_service import NotificationService, get_notification_service


def notification_payload(expression: ExpressionOfInterest) -> Dict[str, Any]:
    return {
        "communityName": expression.community_details.name,
        "province": expression.community_details.province,
        "coordinatorName": expression.coordinator.name,
        "email": expression.coordinator.email,
        "phone": expression.coordinator.phone,
        "homeModelId": expression.home_model_id,
        "homeModelName": expression.home_model_name,
        "programType": expression.program_details.program_type,
        "homesPerYear": expression.program_details.homes_per_year,
        "comments": expression.comments,
        "submittedAt": expression.submitted_at,
    }


class ExpressionService:
    def __init__(
        self,
        expression_store: ExpressionStore,
        subscriber_store: SubscriberStore,
        notification_service: NotificationService,
    ):
        self.expression_store = expression_store
        self.subscriber_store = subscriber_store
        self.notification_service = notification_service
        self.logger = logger_manager.get_logger(__name__)

    async def list_expressions(self) -> List[ExpressionOfInterest]:
        return await self.expression_store.list()

    async def get_expression(self, expression_id: int) -> ExpressionOfInterest:
        return await self.expression_store.get(expression_id)

    async def submit_expression(self, fields: Dict[str, Any]) -> ExpressionOfInterest:
        """Store a submission, then subscribe and notify. Mail failures do not fail the request."""
        expression = await self.expression_store.create(fields)

        if expression.newsletter_signup:
            try:
                await self.subscriber_store.add_subscriber(expression.coordinator.email)
            except DuplicateSubscriberError:
                self.logger.info(f"Coordinator of expression {expression.id} already subscribed")

        try:
            await self.notification_service.send_expression_notification(
                notification_payload(expression)
            )
        except DeliveryError as e:
            self.logger.error(f"❌ Expression notification failed for {expression.id}: {e.message}")
        return expression

    async def update_expression(
        self,
        expression_id: int,
        status: Optional[ExpressionStatus] = None,
        **changes,
    ) -> ExpressionOfInterest:
        if "admin_notes" in changes:
            return await self.expression_store.update(
                expression_id, status=status, admin_notes=changes["admin_notes"]
            )
        return await self.expression_store.update(expression_id, status=status)

    async def delete_expression(self, expression_id: int) -> ExpressionOfInterest:
        return await self.expression_store.delete(expression_id)


def get_expression_service(
    expression_store: ExpressionStore = Depends(get_expression_store),
    subscriber_store: SubscriberStore = Depends(get_subscriber_store),
    notification_service: NotificationService = Depends(get_notification_service),
) -> ExpressionService:
    return ExpressionService(
        expression_store=expression_store,
        subscriber_store=subscriber_store,
        notification_service=notification_service,
    )
