from fastapi import APIRouter, Depends

from fiscalai.core.security import ApiKeyDependency
from .models import EmailNotificationRequest, EmailNotificationResponse
from .services import EmailNotificationService, get_email_notification_service

email_router = APIRouter(dependencies=[ApiKeyDependency])


@email_router.post(
    "/email",
    response_model=EmailNotificationResponse,
    summary="Send a plain-text e-mail notification",
    tags=["Notifications"],
)
async def send_email_notification_endpoint(
    request_in: EmailNotificationRequest,
    service: EmailNotificationService = Depends(get_email_notification_service),
):
    message_id = await service.send(request_in)
    return EmailNotificationResponse(
        emailSent=True,
        message="Email enviado com sucesso",
        to=request_in.to,
        subject=request_in.subject,
        messageId=message_id,
    )
