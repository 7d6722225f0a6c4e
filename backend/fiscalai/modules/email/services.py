from typing import Optional

from email_validator import EmailNotValidError, validate_email
from fastapi import Depends
from loguru import logger

from fiscalai.core.errors import ValidationError
from fiscalai.services.email_service import EmailSender, get_email_sender
from .models import EMAIL_TYPES, EmailNotificationRequest


class EmailNotificationService:
    def __init__(self, sender: EmailSender):
        self.sender = sender

    @staticmethod
    def validate(request: EmailNotificationRequest) -> str:
        """Valida o pedido e devolve o destinatário normalizado."""
        if not request.to or not request.subject or not request.message:
            raise ValidationError("Campos obrigatórios: to, subject, message", code="MISSING_FIELDS")
        try:
            normalized = validate_email(request.to, check_deliverability=False).normalized
        except EmailNotValidError as e:
            raise ValidationError("Email inválido", code="INVALID_EMAIL", field="to") from e
        if request.type not in EMAIL_TYPES:
            raise ValidationError(
                f"Tipo inválido. Use um de: {', '.join(EMAIL_TYPES)}", code="INVALID_TYPE", field="type"
            )
        return normalized

    async def send(self, request: EmailNotificationRequest) -> Optional[str]:
        to = self.validate(request)
        logger.bind(service="EmailNotificationService", email_type=request.type).info("Sending e-mail notification...")
        return await self.sender.send(to=to, subject=request.subject, body=request.message)


async def get_email_notification_service(
    sender: EmailSender = Depends(get_email_sender),
) -> EmailNotificationService:
    return EmailNotificationService(sender)
