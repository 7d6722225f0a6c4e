# fiscalai/services/email_service.py

from typing import Optional

import httpx
from fastapi import Depends
from loguru import logger

from fiscalai.core.config import Settings, get_settings
from fiscalai.core.errors import ConfigurationError, FiscalTimeoutError, UpstreamServerError
from fiscalai.core.logging_config import trace_id_var


class EmailSender:
    """Envia e-mails em texto puro pela integração HTTP configurada (EMAIL_API_URL)."""

    def __init__(
        self,
        api_url: Optional[str],
        api_key: Optional[str],
        from_name: str,
        timeout: float = 25.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_url = api_url
        self.api_key = api_key
        self.from_name = from_name
        self.timeout = timeout
        self.transport = transport

    async def send(self, to: str, subject: str, body: str) -> Optional[str]:
        """Retorna o id da mensagem quando a integração devolve um."""
        log = logger.bind(trace_id=trace_id_var.get(), service="EmailSender")
        if not self.api_url:
            log.critical("EMAIL_API_URL missing. Cannot send e-mail.")
            raise ConfigurationError("Integração de e-mail não configurada", code="EMAIL_NOT_CONFIGURED")

        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        payload = {"from_name": self.from_name, "to": to, "subject": subject, "body": body}

        log.info(f"Sending e-mail '{subject[:60]}'...")
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.api_url, headers=headers, json=payload)
        except httpx.TimeoutException as e:
            log.error("Timeout calling e-mail integration.")
            raise FiscalTimeoutError("Tempo de espera esgotado ao enviar e-mail") from e
        except httpx.RequestError as e:
            log.error(f"Network error calling e-mail integration: {e}")
            raise UpstreamServerError("Erro ao enviar notificação por email", code="EMAIL_SEND_FAILED") from e

        if not response.is_success:
            log.error(f"E-mail integration error (status {response.status_code}): {response.text[:300]}")
            raise UpstreamServerError(
                "Erro ao enviar notificação por email",
                code="EMAIL_SEND_FAILED",
                upstream_status=response.status_code,
            )
        try:
            data = response.json()
        except ValueError:
            data = {}
        message_id = data.get("id") if isinstance(data, dict) else None
        log.success(f"E-mail accepted by integration. ID: {message_id}")
        return str(message_id) if message_id else None


def get_email_sender(settings: Settings = Depends(get_settings)) -> EmailSender:
    return EmailSender(
        api_url=settings.EMAIL_API_URL,
        api_key=settings.EMAIL_API_KEY,
        from_name=settings.EMAIL_FROM_NAME,
    )
