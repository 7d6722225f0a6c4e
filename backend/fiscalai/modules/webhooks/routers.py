from typing import Any, Dict

from fastapi import APIRouter, Depends, Request

from .services import PaymentWebhookService, get_payment_webhook_service
from .signature import SIGNATURE_HEADERS

# Sem X-API-Key: autenticado pela assinatura HMAC
webhooks_router = APIRouter()


@webhooks_router.post(
    "/pagarme",
    response_model=Dict[str, Any],
    summary="Receive Pagar.me payment webhooks",
    tags=["Webhooks"],
)
async def pagarme_webhook_endpoint(
    request: Request,
    service: PaymentWebhookService = Depends(get_payment_webhook_service),
):
    raw_body = await request.body()
    signature = next((request.headers[h] for h in SIGNATURE_HEADERS if request.headers.get(h)), None)
    return await service.handle(raw_body, signature)
