# tests/modules/invoices/test_invoices_api.py
from decimal import Decimal

import httpx
import pytest
from fastapi import status

from fiscalai.modules.companies.repository import CompanyRepository
from fiscalai.modules.invoices.models import InvoiceCreateInternal, InvoiceStatus
from fiscalai.modules.invoices.repository import InvoiceRepository

pytestmark = pytest.mark.asyncio


def issue_payload(company_id: str) -> dict:
    return {
        "companyId": company_id,
        "cliente_nome": "Padaria Pão Quente LTDA",
        "cliente_documento": "12.345.678/0001-90",
        "descricao_servico": "Consultoria em sistemas",
        "valor": "1500.00",
        "aliquota_iss": "5",
        "municipio": "São Paulo",
        "data_prestacao": "2026-10-01",
    }


def invoice_data(numero, status=InvoiceStatus.PENDING_CONFIRMATION, company_id="c1", **extra) -> InvoiceCreateInternal:
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
        **extra,
    )


async def test_issue_invoice_persists_and_notifies(test_client, auth_headers, provider, registered_company, db):
    provider.add(
        "POST",
        "/nfse",
        httpx.Response(
            200,
            json={"numero": "2024001", "codigo_verificacao": "AB12", "status": "autorizada", "link_pdf": "https://pdf"},
        ),
    )

    response = await test_client.post("/api/v1/invoices/issue", json=issue_payload(registered_company.id), headers=auth_headers)

    assert response.status_code == status.HTTP_201_CREATED
    invoice = response.json()["invoice"]
    assert invoice["numero"] == "2024001"
    assert invoice["status"] == "authorized"
    assert invoice["valor_iss"] == "75.00"
    assert invoice["valor_liquido"] == "1425.00"
    assert invoice["pdf_url"] == "https://pdf"

    sent = provider.json_body()
    assert sent["prestador"]["cpf_cnpj"] == "11222333000181"
    assert sent["tomador"]["cpf_cnpj"] == "12345678000190"
    assert sent["servico"]["valor_iss"] == "75.00"
    assert sent["servico"]["codigo_tributario_municipio"] == "01.07"
    assert sent["regime_especial_tributacao"] == 6

    notification = await db["notifications"].find_one({"invoice_id": invoice["id"]})
    assert notification["titulo"] == "Nota fiscal emitida"
    assert notification["tipo"] == "sucesso"


async def test_issue_without_provider_id_creates_nothing(test_client, auth_headers, provider, db):
    created = await test_client.post(
        "/api/v1/companies",
        json={"razao_social": "Sem Registro LTDA", "cnpj": "11222333000181"},
        headers=auth_headers,
    )
    company_id = created.json()["id"]

    response = await test_client.post("/api/v1/invoices/issue", json=issue_payload(company_id), headers=auth_headers)

    assert response.status_code == 400
    assert response.json()["error_code"] == "COMPANY_NOT_REGISTERED"
    assert await db["invoices"].count_documents({}) == 0
    assert provider.calls == []


async def test_issue_missing_field(test_client, auth_headers, provider, registered_company):
    payload = issue_payload(registered_company.id)
    del payload["descricao_servico"]
    response = await test_client.post("/api/v1/invoices/issue", json=payload, headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["field"] == "descricao_servico"
    assert provider.calls == []


async def test_issue_rate_limited(test_client, auth_headers, provider, registered_company, db):
    provider.add("POST", "/nfse", httpx.Response(429))
    response = await test_client.post("/api/v1/invoices/issue", json=issue_payload(registered_company.id), headers=auth_headers)
    assert response.status_code == 429
    assert await db["invoices"].count_documents({}) == 0


async def test_status_check_skips_provider_for_terminal_invoice(test_client, auth_headers, provider, db):
    await InvoiceRepository(db).create(invoice_data("777", status=InvoiceStatus.AUTHORIZED))

    response = await test_client.post("/api/v1/invoices/status", json={"numero": "777"}, headers=auth_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["invoiceStatus"] == "authorized"
    assert body["details"]["cached"] is True
    assert provider.calls == []


async def test_status_check_updates_pending_invoice(test_client, auth_headers, provider, db):
    repo = InvoiceRepository(db)
    invoice = await repo.create(invoice_data("888", pdf_url="https://old.pdf"))
    provider.add("GET", "/nfse/888", httpx.Response(200, json={"numero": "888", "status": "rejeitada", "motivo": "CNAE inválido"}))

    response = await test_client.post(
        "/api/v1/invoices/status", json={"numero": "888", "invoiceId": invoice.id}, headers=auth_headers
    )

    assert response.status_code == 200
    assert response.json()["invoiceStatus"] == "rejected"
    updated = await repo.get_by_id(invoice.id)
    assert updated.status is InvoiceStatus.REJECTED
    assert updated.pdf_url == "https://old.pdf"
    assert updated.motivo_rejeicao == "CNAE inválido"
    notification = await db["notifications"].find_one({"invoice_id": invoice.id})
    assert notification["titulo"] == "Status atualizado"
    assert notification["tipo"] == "erro"


async def test_status_check_requires_numero(test_client, auth_headers):
    response = await test_client.post("/api/v1/invoices/status", json={}, headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["field"] == "numero"


async def test_status_check_unknown_invoice_id(test_client, auth_headers):
    response = await test_client.post(
        "/api/v1/invoices/status", json={"numero": "1", "invoiceId": "662fc1bacc8a4b5e6f7d1234"}, headers=auth_headers
    )
    assert response.status_code == 404


async def test_list_invoices_pages_and_counts_filtered_set(test_client, auth_headers, db):
    repo = InvoiceRepository(db)
    for i in range(5):
        await repo.create(invoice_data(f"10{i}", company_id="c1"))
    await repo.create(invoice_data("200", company_id="c2", status=InvoiceStatus.AUTHORIZED))

    first = await test_client.get("/api/v1/invoices?companyId=c1&limit=2&offset=0", headers=auth_headers)
    last = await test_client.get("/api/v1/invoices?companyId=c1&limit=2&offset=4", headers=auth_headers)

    assert first.json()["total"] == 5
    assert len(first.json()["invoices"]) == 2
    assert len(last.json()["invoices"]) == 1

    authorized = await test_client.get("/api/v1/invoices?status=authorized", headers=auth_headers)
    assert authorized.json()["total"] == 1
    assert authorized.json()["invoices"][0]["numero"] == "200"


async def test_list_invoices_rejects_unknown_status(test_client, auth_headers):
    response = await test_client.get("/api/v1/invoices?status=autorizada", headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["error_code"] == "INVALID_STATUS"


async def test_same_number_from_two_companies_keeps_both(test_client, auth_headers, provider, registered_company, db):
    companies = CompanyRepository(db)
    other = await companies.create({"razao_social": "Outra Empresa LTDA", "cnpj": "45.723.174/0001-10"})
    other = await companies.mark_registered(other.id, "nf-empresa-2")
    provider.add("POST", "/nfse", httpx.Response(200, json={"numero": "1", "status": "autorizada"}))

    first = await test_client.post("/api/v1/invoices/issue", json=issue_payload(registered_company.id), headers=auth_headers)
    second = await test_client.post("/api/v1/invoices/issue", json=issue_payload(other.id), headers=auth_headers)

    assert first.status_code == second.status_code == status.HTTP_201_CREATED
    assert first.json()["invoice"]["id"] != second.json()["invoice"]["id"]
    assert await db["invoices"].count_documents({"numero": "1"}) == 2
    listed = await test_client.get(f"/api/v1/invoices?companyId={registered_company.id}", headers=auth_headers)
    assert listed.json()["total"] == 1
    assert listed.json()["invoices"][0]["company_id"] == registered_company.id


async def test_status_check_with_company_disambiguates_number(test_client, auth_headers, provider, db):
    repo = InvoiceRepository(db)
    await repo.create(invoice_data("5", company_id="c1", status=InvoiceStatus.AUTHORIZED))
    await repo.create(invoice_data("5", company_id="c2", status=InvoiceStatus.REJECTED))

    response = await test_client.post(
        "/api/v1/invoices/status", json={"numero": "5", "companyId": "c2"}, headers=auth_headers
    )

    assert response.json()["invoiceStatus"] == "rejected"
    assert response.json()["details"]["cached"] is True
    assert provider.calls == []


async def test_status_check_rejects_mismatched_invoice_and_number(test_client, auth_headers, provider, db):
    repo = InvoiceRepository(db)
    invoice = await repo.create(invoice_data("900"))

    response = await test_client.post(
        "/api/v1/invoices/status", json={"numero": "901", "invoiceId": invoice.id}, headers=auth_headers
    )

    assert response.status_code == 400
    body = response.json()
    assert body["error_code"] == "INVOICE_NUMBER_MISMATCH"
    assert body["field"] == "numero"
    assert provider.calls == []
    stored = await repo.get_by_id(invoice.id)
    assert stored.status is InvoiceStatus.PENDING_CONFIRMATION
