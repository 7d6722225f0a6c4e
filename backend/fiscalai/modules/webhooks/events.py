from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class WebhookEventKind(str, Enum):
    PAYMENT_APPROVED = "payment.approved"
    PAYMENT_FAILED = "payment.failed"
    SUBSCRIPTION_CANCELED = "subscription.canceled"
    SUBSCRIPTION_CREATED = "subscription.created"
    SUBSCRIPTION_UPDATED = "subscription.updated"
    UNKNOWN = "unknown"


# Nomes de evento aceitos do gateway
EVENT_ALIASES: Dict[str, WebhookEventKind] = {
    "payment.approved": WebhookEventKind.PAYMENT_APPROVED,
    "payment.paid": WebhookEventKind.PAYMENT_APPROVED,
    "payment.failed": WebhookEventKind.PAYMENT_FAILED,
    "payment.refused": WebhookEventKind.PAYMENT_FAILED,
    "subscription.canceled": WebhookEventKind.SUBSCRIPTION_CANCELED,
    "subscription.created": WebhookEventKind.SUBSCRIPTION_CREATED,
    "subscription.updated": WebhookEventKind.SUBSCRIPTION_UPDATED,
}


@dataclass(frozen=True)
class WebhookEvent:
    kind: WebhookEventKind
    raw_type: Optional[str]
    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def customer_id(self) -> Optional[str]:
        customer = self.data.get("customer")
        if isinstance(customer, dict) and customer.get("id"):
            return str(customer["id"])
        user_id = self.data.get("user_id")
        return str(user_id) if user_id else None


def parse_event(body: Dict[str, Any]) -> WebhookEvent:
    """Tipo vem de ``type`` ou ``event``; dados de ``data`` ou do próprio corpo."""
    raw_type = body.get("type") or body.get("event")
    raw_type = raw_type if isinstance(raw_type, str) else None
    data = body.get("data")
    if not isinstance(data, dict):
        data = body
    kind = EVENT_ALIASES.get(raw_type, WebhookEventKind.UNKNOWN) if raw_type else WebhookEventKind.UNKNOWN
    return WebhookEvent(kind=kind, raw_type=raw_type, data=data)
