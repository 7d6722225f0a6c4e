# fiscalai/modules/webhooks/handlers.py

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Awaitable, Callable, Dict

from fiscalai.modules.notifications.services import NotificationService
from .events import WebhookEvent, WebhookEventKind

HandlerResult = Dict[str, Any]
EventHandler = Callable[[WebhookEvent, NotificationService], Awaitable[HandlerResult]]


def format_brl(cents: Any) -> str:
    """Centavos para moeda pt-BR: 123456 -> 'R$ 1.234,56'."""
    try:
        value = (Decimal(str(cents)) / 100).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError):
        value = Decimal("0.00")
    if not value.is_finite():
        value = Decimal("0.00")
    sign = "-" if value < 0 else ""
    integer_part, decimal_part = f"{abs(value):.2f}".split(".")
    integer_part = f"{int(integer_part):,}".replace(",", ".")
    return f"R$ {sign}{integer_part},{decimal_part}"


async def handle_payment_approved(event: WebhookEvent, notifications: NotificationService) -> HandlerResult:
    amount = format_brl(event.data.get("amount", 0))
    await notifications.notify(
        titulo="Pagamento aprovado",
        mensagem=f"Seu pagamento de {amount} foi aprovado.",
        tipo="sucesso",
    )
    return {"message": "Payment approved", "userId": event.customer_id, "paymentId": event.data.get("id")}


async def handle_payment_failed(event: WebhookEvent, notifications: NotificationService) -> HandlerResult:
    reason = event.data.get("refuse_reason") or "Pagamento recusado"
    await notifications.notify(
        titulo="Pagamento recusado",
        mensagem=f"Seu pagamento foi recusado: {reason}. Por favor, verifique seus dados e tente novamente.",
        tipo="erro",
    )
    return {"message": "Payment failed notification created", "userId": event.customer_id, "reason": reason}


async def handle_subscription_canceled(event: WebhookEvent, notifications: NotificationService) -> HandlerResult:
    await notifications.notify(
        titulo="Assinatura cancelada",
        mensagem="Sua assinatura foi cancelada. Você terá acesso até o final do período pago.",
        tipo="alerta",
    )
    return {"message": "Subscription canceled notification created", "userId": event.customer_id}


async def handle_subscription_created(event: WebhookEvent, notifications: NotificationService) -> HandlerResult:
    await notifications.notify(
        titulo="Assinatura ativada",
        mensagem="Sua assinatura foi ativada com sucesso. Bem-vindo!",
        tipo="sucesso",
    )
    return {"message": "Subscription created notification sent", "userId": event.customer_id}


# status do gateway -> (status interno, mensagem, tipo)
SUBSCRIPTION_STATUS_UPDATES = {
    "canceled": ("canceled", "Sua assinatura foi cancelada.", "alerta"),
    "unpaid": (
        "delinquent",
        "Há pagamentos pendentes na sua assinatura. Por favor, regularize para continuar usando o serviço.",
        "alerta",
    ),
}
DEFAULT_SUBSCRIPTION_UPDATE = ("active", "Sua assinatura foi atualizada.", "info")


async def handle_subscription_updated(event: WebhookEvent, notifications: NotificationService) -> HandlerResult:
    internal_status, message, tipo = SUBSCRIPTION_STATUS_UPDATES.get(
        event.data.get("status"), DEFAULT_SUBSCRIPTION_UPDATE
    )
    await notifications.notify(titulo="Assinatura atualizada", mensagem=message, tipo=tipo)
    return {"message": "Subscription updated", "userId": event.customer_id, "status": internal_status}


EVENT_HANDLERS: Dict[WebhookEventKind, EventHandler] = {
    WebhookEventKind.PAYMENT_APPROVED: handle_payment_approved,
    WebhookEventKind.PAYMENT_FAILED: handle_payment_failed,
    WebhookEventKind.SUBSCRIPTION_CANCELED: handle_subscription_canceled,
    WebhookEventKind.SUBSCRIPTION_CREATED: handle_subscription_created,
    WebhookEventKind.SUBSCRIPTION_UPDATED: handle_subscription_updated,
}

# Todo tipo conhecido precisa de handler; UNKNOWN é tratado pelo serviço
_unhandled = set(WebhookEventKind) - set(EVENT_HANDLERS) - {WebhookEventKind.UNKNOWN}
if _unhandled:
    raise RuntimeError(f"Webhook event kinds without handler: {sorted(k.value for k in _unhandled)}")
