from typing import Optional

from fastapi import APIRouter, Depends, Query

from fiscalai.core.security import ApiKeyDependency
from .models import NotificationAPI, NotificationListResponse
from .repository import NotificationRepository, get_notification_repository

notifications_router = APIRouter(dependencies=[ApiKeyDependency])


@notifications_router.get(
    "",
    response_model=NotificationListResponse,
    summary="List recent notifications",
    tags=["Notifications"],
)
async def list_notifications_endpoint(
    invoice_id: Optional[str] = Query(None, alias="invoiceId"),
    limit: int = Query(50, ge=1, le=200),
    repository: NotificationRepository = Depends(get_notification_repository),
):
    notifications, total = await repository.list_recent(invoice_id=invoice_id, limit=limit)
    return NotificationListResponse(
        notifications=[NotificationAPI.model_validate(n) for n in notifications],
        total=total,
    )
