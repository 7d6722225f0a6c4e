# tests/conftest.py
import json
from typing import Any, AsyncGenerator, Callable, Dict, List, Tuple, Union

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from mongomock_motor import AsyncMongoMockClient

from fiscalai.core.config import Settings, get_settings
from fiscalai.core.database import get_database
from fiscalai.modules.fiscal.client import NuvemFiscalClient, get_fiscal_client
from fiscalai.modules.fiscal.token_provider import NuvemFiscalTokenProvider
from fiscalai.services.email_service import EmailSender, get_email_sender
from fiscalai.services.llm_client import OpenAIClient, get_llm_client

API_KEY = "test-api-key"
WEBHOOK_SECRET = "whsec_test"
SANDBOX_URL = "https://api.sandbox.test"

Route = Union[httpx.Response, Callable[[httpx.Request], httpx.Response]]


class HttpStub:
    """MockTransport com rotas por (método, path) e registro das chamadas recebidas."""

    def __init__(self):
        self.routes: Dict[Tuple[str, str], Route] = {}
        self.calls: List[httpx.Request] = []

    def add(self, method: str, path: str, route: Route):
        self.routes[(method.upper(), path)] = route

    def json_body(self, index: int = -1) -> Dict[str, Any]:
        return json.loads(self.calls[index].content)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"error": "no route"})
        if callable(route):
            return route(request)
        return route

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        API_KEY=API_KEY,
        LOG_LEVEL="DEBUG",
        MONGODB_URI="mongodb://localhost:27017/fiscalai_test",
        NUVEM_FISCAL_USE_SANDBOX=True,
        NUVEM_FISCAL_SANDBOX_URL=SANDBOX_URL,
        NUVEM_FISCAL_SANDBOX_TOKEN="static-sandbox-token",
        PAGARME_WEBHOOK_SECRET=WEBHOOK_SECRET,
        OPENAI_API_KEY="sk-test",
        EMAIL_API_URL="https://mail.test/send",
    )


@pytest_asyncio.fixture
async def db():
    client = AsyncMongoMockClient()
    yield client["fiscalai_test"]


@pytest.fixture
def provider() -> HttpStub:
    return HttpStub()


@pytest.fixture
def fiscal_client(settings: Settings, provider: HttpStub) -> NuvemFiscalClient:
    environment = settings.fiscal_environment()
    token_provider = NuvemFiscalTokenProvider(
        environment=environment,
        auth_url=settings.NUVEM_FISCAL_AUTH_URL,
        scope=settings.NUVEM_FISCAL_SCOPE,
    )
    return NuvemFiscalClient(
        environment=environment,
        token_provider=token_provider,
        timeout=5.0,
        healthcheck_timeout=1.0,
        transport=provider.transport,
    )


@pytest.fixture
def llm_stub() -> HttpStub:
    return HttpStub()


@pytest.fixture
def email_stub() -> HttpStub:
    return HttpStub()


@pytest_asyncio.fixture
async def test_client(
    settings: Settings,
    db,
    fiscal_client: NuvemFiscalClient,
    llm_stub: HttpStub,
    email_stub: HttpStub,
) -> AsyncGenerator[AsyncClient, None]:
    from fiscalai.main import create_app

    app = create_app(settings)
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_database] = lambda: db
    app.dependency_overrides[get_fiscal_client] = lambda: fiscal_client
    app.dependency_overrides[get_llm_client] = lambda: OpenAIClient(
        api_key=settings.OPENAI_API_KEY, api_url=settings.OPENAI_API_URL, transport=llm_stub.transport
    )
    app.dependency_overrides[get_email_sender] = lambda: EmailSender(
        api_url=settings.EMAIL_API_URL,
        api_key="mail-key",
        from_name=settings.EMAIL_FROM_NAME,
        transport=email_stub.transport,
    )
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as client:
        yield client


@pytest.fixture
def auth_headers() -> Dict[str, str]:
    return {"X-API-Key": API_KEY}


@pytest_asyncio.fixture
async def registered_company(db):
    from fiscalai.modules.companies.repository import CompanyRepository

    repo = CompanyRepository(db)
    company = await repo.create(
        {
            "razao_social": "Consultoria Exemplo LTDA",
            "cnpj": "11.222.333/0001-81",
            "inscricao_municipal": "123456",
            "municipio": "São Paulo",
            "uf": "sp",
            "email": "contato@exemplo.com.br",
            "telefone": "(11) 99999-0000",
        }
    )
    return await repo.mark_registered(company.id, "nf-empresa-1")
