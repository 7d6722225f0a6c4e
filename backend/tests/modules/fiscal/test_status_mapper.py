# tests/modules/fiscal/test_status_mapper.py
import pytest

from fiscalai.modules.fiscal.status_mapper import map_provider_status, map_status_value
from fiscalai.modules.invoices.models import InvoiceStatus


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("autorizada", InvoiceStatus.AUTHORIZED),
        ("aprovada", InvoiceStatus.AUTHORIZED),
        ("autorizado", InvoiceStatus.AUTHORIZED),
        ("rejeitada", InvoiceStatus.REJECTED),
        ("rejeitado", InvoiceStatus.REJECTED),
        ("cancelada", InvoiceStatus.CANCELED),
        ("cancelado", InvoiceStatus.CANCELED),
        ("processando", InvoiceStatus.PENDING_CONFIRMATION),
        ("AUTORIZADA", InvoiceStatus.PENDING_CONFIRMATION),
        ("", InvoiceStatus.PENDING_CONFIRMATION),
        (None, InvoiceStatus.PENDING_CONFIRMATION),
        (42, InvoiceStatus.PENDING_CONFIRMATION),
    ],
)
def test_map_status_value(raw, expected):
    assert map_status_value(raw) is expected


def test_status_field_takes_precedence_over_status_sefaz():
    assert map_provider_status({"status": "rejeitada", "status_sefaz": "autorizado"}) is InvoiceStatus.REJECTED


def test_falls_back_to_status_sefaz():
    assert map_provider_status({"status_sefaz": "autorizado"}) is InvoiceStatus.AUTHORIZED
    assert map_provider_status({"status": "", "status_sefaz": "cancelado"}) is InvoiceStatus.CANCELED


@pytest.mark.parametrize("response", [None, {}, {"numero": "10"}])
def test_missing_status_fields_default_to_pending(response):
    assert map_provider_status(response) is InvoiceStatus.PENDING_CONFIRMATION


def test_unknown_status_does_not_fall_through_to_status_sefaz():
    # status presente mas desconhecido: não consulta status_sefaz
    assert map_provider_status({"status": "em_processamento", "status_sefaz": "autorizado"}) is (
        InvoiceStatus.PENDING_CONFIRMATION
    )
