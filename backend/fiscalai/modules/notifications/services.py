from typing import Optional

from fastapi import Depends
from loguru import logger

from .models import NOTIFICATION_TYPES, NotificationCreateInternal, NotificationInDB
from .repository import NotificationRepository, get_notification_repository


class NotificationService:
    """Registra notificações para o usuário. Nunca atualiza nem remove."""

    def __init__(self, repository: NotificationRepository):
        self.repository = repository

    async def notify(
        self,
        titulo: str,
        mensagem: str,
        tipo: NOTIFICATION_TYPES = "info",
        invoice_id: Optional[str] = None,
    ) -> NotificationInDB:
        notification = await self.repository.create(
            NotificationCreateInternal(titulo=titulo, mensagem=mensagem, tipo=tipo, invoice_id=invoice_id)
        )
        logger.bind(service="NotificationService", tipo=tipo, invoice_id=invoice_id).info(f"Notification recorded: {titulo}")
        return notification


async def get_notification_service(
    repository: NotificationRepository = Depends(get_notification_repository),
) -> NotificationService:
    return NotificationService(repository)
