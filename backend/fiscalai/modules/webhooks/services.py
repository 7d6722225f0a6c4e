import json
from typing import Any, Dict, Optional

from fastapi import Depends
from loguru import logger

from fiscalai.core.config import Settings, get_settings
from fiscalai.core.errors import ConfigurationError, ValidationError
from fiscalai.modules.notifications.services import NotificationService, get_notification_service
from .events import WebhookEventKind, parse_event
from .handlers import EVENT_HANDLERS
from .signature import verify_signature


class PaymentWebhookService:
    def __init__(self, secret: Optional[str], notification_service: NotificationService):
        self.secret = secret
        self.notification_service = notification_service

    async def handle(self, raw_body: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """Valida a assinatura, interpreta o evento e despacha para o handler do tipo.

        Eventos desconhecidos são aceitos e devolvidos como não processados.
        """
        if not self.secret:
            logger.critical("PAGARME_WEBHOOK_SECRET missing. Cannot validate webhook.")
            raise ConfigurationError("PAGARME_WEBHOOK_SECRET not configured", code="WEBHOOK_SECRET_NOT_CONFIGURED")
        verify_signature(raw_body, signature, self.secret)

        try:
            body = json.loads(raw_body)
        except ValueError as e:
            raise ValidationError("Corpo do webhook não é um JSON válido", code="INVALID_PAYLOAD") from e
        if not isinstance(body, dict):
            raise ValidationError("Corpo do webhook não é um JSON válido", code="INVALID_PAYLOAD")

        event = parse_event(body)
        log = logger.bind(service="PaymentWebhookService", event_type=event.raw_type)
        if event.kind is WebhookEventKind.UNKNOWN:
            log.warning(f"Unhandled webhook event type: {event.raw_type}")
            return {"success": True, "processed": False, "message": f"Event type {event.raw_type} not processed"}

        log.info(f"Processing webhook event {event.kind.value}...")
        result = await EVENT_HANDLERS[event.kind](event, self.notification_service)
        return {"success": True, "processed": True, "event": event.kind.value, **result}


async def get_payment_webhook_service(
    settings: Settings = Depends(get_settings),
    notification_service: NotificationService = Depends(get_notification_service),
) -> PaymentWebhookService:
    return PaymentWebhookService(settings.PAGARME_WEBHOOK_SECRET, notification_service)
