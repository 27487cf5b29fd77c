from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, Path

from app.router.v1.dependencies import require_admin_key
from app.schemas.common import SuccessResponse
from app.schemas.expression_schemas import ExpressionCreateRequest, ExpressionUpdateRequest
from app.services.expression_service import ExpressionService, get_expression_service
from app.services.notification_service import NotificationService, get_notification_service
from app.utils.sanitize import sanitize_mapping


router = APIRouter(prefix="/expressions-of-interest", tags=["Expressions of Interest"])


@router.get("", response_model=SuccessResponse, dependencies=[Depends(require_admin_key)])
async def list_expressions_router(
    expression_service: ExpressionService = Depends(get_expression_service),
):
    items = await expression_service.list_expressions()
    return SuccessResponse(
        message="Expressions of interest retrieved",
        data={"items": [item.model_dump(mode="json") for item in items], "count": len(items)},
    )


@router.post("", response_model=SuccessResponse, status_code=201)
async def create_expression_router(
    form_data: ExpressionCreateRequest,
    expression_service: ExpressionService = Depends(get_expression_service),
):
    expression = await expression_service.submit_expression(form_data.to_record_fields())
    return SuccessResponse(
        message="Expression of interest submitted successfully",
        data=expression.model_dump(mode="json"),
    )


@router.post(
    "/send-notification",
    response_model=SuccessResponse,
    dependencies=[Depends(require_admin_key)],
)
async def send_expression_notification_router(
    payload: Dict[str, Any] = Body(...),
    notification_service: NotificationService = Depends(get_notification_service),
):
    result = await notification_service.send_expression_notification(sanitize_mapping(payload))
    return SuccessResponse(
        message="Expression of interest notification email sent successfully", data=result
    )


@router.get(
    "/{expression_id}",
    response_model=SuccessResponse,
    dependencies=[Depends(require_admin_key)],
)
async def get_expression_router(
    expression_id: int = Path(..., ge=1),
    expression_service: ExpressionService = Depends(get_expression_service),
):
    expression = await expression_service.get_expression(expression_id)
    return SuccessResponse(data=expression.model_dump(mode="json"))


@router.patch(
    "/{expression_id}",
    response_model=SuccessResponse,
    dependencies=[Depends(require_admin_key)],
)
async def update_expression_router(
    form_data: ExpressionUpdateRequest,
    expression_id: int = Path(..., ge=1),
    expression_service: ExpressionService = Depends(get_expression_service),
):
    """更新审核状态或管理员备注"""
    changes = form_data.model_dump(exclude_unset=True)
    expression = await expression_service.update_expression(expression_id, **changes)
    return SuccessResponse(
        message="Expression of interest updated successfully",
        data=expression.model_dump(mode="json"),
    )


@router.delete(
    "/{expression_id}",
    response_model=SuccessResponse,
    dependencies=[Depends(require_admin_key)],
)
async def delete_expression_router(
    expression_id: int = Path(..., ge=1),
    expression_service: ExpressionService = Depends(get_expression_service),
):
    await expression_service.delete_expression(expression_id)
    return SuccessResponse(message="Expression of interest deleted successfully")
