from typing import Any, Mapping, Optional

from fiscalai.modules.invoices.models import InvoiceStatus

PROVIDER_STATUS_MAP = {
    "autorizada": InvoiceStatus.AUTHORIZED,
    "aprovada": InvoiceStatus.AUTHORIZED,
    "autorizado": InvoiceStatus.AUTHORIZED,
    "rejeitada": InvoiceStatus.REJECTED,
    "rejeitado": InvoiceStatus.REJECTED,
    "cancelada": InvoiceStatus.CANCELED,
    "cancelado": InvoiceStatus.CANCELED,
}


def map_status_value(value: Any) -> InvoiceStatus:
    """Converte um status textual do provedor. Qualquer valor desconhecido vira pendente."""
    if not isinstance(value, str):
        return InvoiceStatus.PENDING_CONFIRMATION
    return PROVIDER_STATUS_MAP.get(value, InvoiceStatus.PENDING_CONFIRMATION)


def map_provider_status(response: Optional[Mapping[str, Any]]) -> InvoiceStatus:
    """Status interno a partir da resposta do provedor.

    ``status`` tem precedência sobre ``status_sefaz`` quando presente.
    """
    if not response:
        return InvoiceStatus.PENDING_CONFIRMATION
    raw = response.get("status")
    if raw is None or raw == "":
        raw = response.get("status_sefaz")
    return map_status_value(raw)
