# tests/modules/fiscal/test_fiscal_client.py
import httpx
import pytest

from fiscalai.core.errors import (
    AuthenticationError,
    ConflictError,
    FiscalTimeoutError,
    NotFoundError,
    RateLimitedError,
    UpstreamServerError,
    ValidationError,
)
from fiscalai.modules.fiscal.client import NuvemFiscalClient

pytestmark = pytest.mark.asyncio


async def test_requests_carry_bearer_token_and_hit_sandbox_base_url(fiscal_client, provider):
    provider.add("GET", "/nfse/123", httpx.Response(200, json={"numero": "123", "status": "autorizada"}))

    data = await fiscal_client.get_invoice_status("123")

    assert data["status"] == "autorizada"
    request = provider.calls[0]
    assert request.url.host == "api.sandbox.test"
    assert request.headers["Authorization"] == "Bearer static-sandbox-token"


async def test_register_company_returns_provider_id(fiscal_client, provider):
    provider.add("POST", "/empresas", httpx.Response(201, json={"id": "emp-1", "cpf_cnpj": "11222333000181"}))
    assert await fiscal_client.register_company({"cpf_cnpj": "11222333000181"}) == "emp-1"


async def test_register_company_falls_back_to_cpf_cnpj(fiscal_client, provider):
    provider.add("POST", "/empresas", httpx.Response(200, json={"cpf_cnpj": "11222333000181"}))
    assert await fiscal_client.register_company({}) == "11222333000181"


async def test_register_company_without_id_is_upstream_error(fiscal_client, provider):
    provider.add("POST", "/empresas", httpx.Response(200, json={"ok": True}))
    with pytest.raises(UpstreamServerError) as exc_info:
        await fiscal_client.register_company({})
    assert exc_info.value.message == "Resposta inválida da Nuvem Fiscal"


@pytest.mark.parametrize(
    "status_code, error_cls, http_status",
    [
        (400, ValidationError, 400),
        (401, AuthenticationError, 401),
        (403, AuthenticationError, 401),
        (409, ConflictError, 409),
        (429, RateLimitedError, 429),
        (500, UpstreamServerError, 502),
        (503, UpstreamServerError, 502),
    ],
)
async def test_issue_invoice_error_taxonomy(fiscal_client, provider, status_code, error_cls, http_status):
    provider.add("POST", "/nfse", httpx.Response(status_code, json={"mensagem": "CNPJ do tomador inválido"}))
    with pytest.raises(error_cls) as exc_info:
        await fiscal_client.issue_invoice({})
    assert exc_info.value.http_status == http_status
    assert exc_info.value.upstream_status == status_code


async def test_validation_error_echoes_provider_message(fiscal_client, provider):
    provider.add("POST", "/nfse", httpx.Response(400, json={"mensagem": "CNPJ do tomador inválido"}))
    with pytest.raises(ValidationError) as exc_info:
        await fiscal_client.issue_invoice({})
    assert "CNPJ do tomador inválido" in exc_info.value.message


async def test_status_not_found(fiscal_client, provider):
    with pytest.raises(NotFoundError) as exc_info:
        await fiscal_client.get_invoice_status("999")
    assert exc_info.value.message == "Nota fiscal não encontrada"


async def test_timeout_surfaces_as_fiscal_timeout(fiscal_client, provider):
    def hang(request):
        raise httpx.ReadTimeout("read timed out", request=request)

    provider.add("POST", "/nfse", hang)
    with pytest.raises(FiscalTimeoutError):
        await fiscal_client.issue_invoice({})
    assert provider.calls[-1].extensions["timeout"]["read"] == 5.0


async def test_network_error_is_connection_error(fiscal_client, provider):
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    provider.add("GET", "/nfse/1", refuse)
    with pytest.raises(UpstreamServerError) as exc_info:
        await fiscal_client.get_invoice_status("1")
    assert exc_info.value.code == "CONNECTION_ERROR"


@pytest.mark.parametrize("status_code, expected", [(200, True), (204, True), (500, False), (404, False)])
async def test_health_check_is_true_only_for_2xx(fiscal_client, provider, status_code, expected):
    provider.add("GET", "/empresas", httpx.Response(status_code))
    assert await fiscal_client.health_check() is expected


async def test_health_check_auth_failure_raises(fiscal_client, provider):
    provider.add("GET", "/empresas", httpx.Response(403))
    with pytest.raises(AuthenticationError):
        await fiscal_client.health_check()


async def test_default_timeouts_bound_every_call(fiscal_client, provider):
    client = NuvemFiscalClient(
        environment=fiscal_client.environment,
        token_provider=fiscal_client.token_provider,
        transport=provider.transport,
    )
    provider.add("POST", "/nfse", httpx.Response(200, json={"numero": "1"}))
    provider.add("GET", "/empresas", httpx.Response(200))

    await client.issue_invoice({})
    await client.health_check()

    issue_request, health_request = provider.calls
    assert issue_request.extensions["timeout"] == {"connect": 30.0, "read": 30.0, "write": 30.0, "pool": 30.0}
    assert health_request.extensions["timeout"]["read"] == 10.0
