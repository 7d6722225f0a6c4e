# tests/core/test_repository_upsert.py
import asyncio
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from fiscalai.modules.companies.repository import CompanyRepository
from fiscalai.modules.fiscal.models import FiscalIntegrationStatusUpsert
from fiscalai.modules.fiscal.repository import FiscalIntegrationStatusRepository
from fiscalai.modules.invoices.models import InvoiceCreateInternal, InvoiceStatus
from fiscalai.modules.invoices.repository import InvoiceRepository

pytestmark = pytest.mark.asyncio


def status_data(status: str, mensagem: str) -> FiscalIntegrationStatusUpsert:
    return FiscalIntegrationStatusUpsert(
        status=status, mensagem=mensagem, ultima_verificacao=datetime.now(timezone.utc), error_code=None
    )


async def test_status_upsert_twice_leaves_one_record_with_second_data(db):
    repo = FiscalIntegrationStatusRepository(db)

    first = await repo.upsert_for_company("company-1", status_data("falha", "Falha na conexão com a prefeitura"))
    second = await repo.upsert_for_company("company-1", status_data("conectado", "Conexão estabelecida"))

    assert await db["fiscal_integration_status"].count_documents({"company_id": "company-1"}) == 1
    assert second.id == first.id
    assert second.status == "conectado"
    assert second.mensagem == "Conexão estabelecida"
    assert second.created_at == first.created_at


async def test_concurrent_upserts_do_not_duplicate(db):
    repo = FiscalIntegrationStatusRepository(db)
    await asyncio.gather(*[
        repo.upsert_for_company("company-2", status_data("conectado", f"check {i}")) for i in range(5)
    ])
    assert await db["fiscal_integration_status"].count_documents({"company_id": "company-2"}) == 1


async def test_upserts_are_scoped_per_company(db):
    repo = FiscalIntegrationStatusRepository(db)
    await repo.upsert_for_company("a", status_data("conectado", "ok"))
    await repo.upsert_for_company("b", status_data("falha", "erro"))
    assert await db["fiscal_integration_status"].count_documents({}) == 2


async def test_invoice_upsert_by_number_keeps_defaults_and_decimals(db):
    repo = InvoiceRepository(db)
    data = InvoiceCreateInternal(
        company_id="c1",
        numero="2024001",
        cliente_nome="Cliente",
        cliente_documento="12345678909",
        descricao_servico="Serviço",
        valor=Decimal("1500.00"),
        aliquota_iss=Decimal("5"),
        valor_iss=Decimal("75.00"),
        valor_liquido=Decimal("1425.00"),
        municipio="São Paulo",
    )
    first = await repo.upsert_by_number("c1", "2024001", data)
    again = await repo.upsert_by_number("c1", "2024001", data)

    assert first.id == again.id
    assert await db["invoices"].count_documents({"numero": "2024001"}) == 1
    stored = await db["invoices"].find_one({"numero": "2024001"})
    assert stored["status"] == InvoiceStatus.PENDING_CONFIRMATION.value
    assert stored["valor_iss"] == "75.00"
    assert again.valor_liquido == Decimal("1425.00")


def invoice_for(company_id: str, numero: str, status: InvoiceStatus = InvoiceStatus.PENDING_CONFIRMATION) -> InvoiceCreateInternal:
    return InvoiceCreateInternal(
        company_id=company_id,
        numero=numero,
        cliente_nome="Cliente",
        cliente_documento="12345678909",
        descricao_servico="Serviço",
        valor=Decimal("100.00"),
        aliquota_iss=Decimal("5"),
        valor_iss=Decimal("5.00"),
        valor_liquido=Decimal("95.00"),
        status=status,
        municipio="São Paulo",
    )


async def test_same_number_for_two_companies_keeps_both_invoices(db):
    repo = InvoiceRepository(db)
    first = await repo.upsert_by_number("company-a", "1", invoice_for("company-a", "1"))
    second = await repo.upsert_by_number("company-b", "1", invoice_for("company-b", "1", InvoiceStatus.AUTHORIZED))

    assert first.id != second.id
    assert await db["invoices"].count_documents({"numero": "1"}) == 2
    assert (await repo.get_by_number("1", "company-a")).status is InvoiceStatus.PENDING_CONFIRMATION
    assert (await repo.get_by_number("1", "company-b")).status is InvoiceStatus.AUTHORIZED
    # Sem empresa o número é ambíguo
    assert await repo.get_by_number("1") is None


async def test_terminal_invoice_is_not_rewritten_by_upsert(db):
    repo = InvoiceRepository(db)
    authorized = await repo.upsert_by_number("c1", "55", invoice_for("c1", "55", InvoiceStatus.AUTHORIZED))

    again = await repo.upsert_by_number("c1", "55", invoice_for("c1", "55", InvoiceStatus.PENDING_CONFIRMATION))

    assert again.id == authorized.id
    assert again.status is InvoiceStatus.AUTHORIZED
    stored = await db["invoices"].find_one({"numero": "55"})
    assert stored["status"] == "authorized"


async def test_mark_registered_never_overwrites_provider_id(db):
    repo = CompanyRepository(db)
    company = await repo.create({"razao_social": "Empresa", "cnpj": "11222333000181"})

    registered = await repo.mark_registered(company.id, "first-id")
    assert registered.nuvem_fiscal_id == "first-id"
    assert registered.nuvem_fiscal_registered_at is not None

    assert await repo.mark_registered(company.id, "second-id") is None
    assert (await repo.get_by_id(company.id)).nuvem_fiscal_id == "first-id"
