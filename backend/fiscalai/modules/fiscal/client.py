# fiscalai/modules/fiscal/client.py

from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Dict, Optional

import httpx
from fastapi import Depends
from loguru import logger

from fiscalai.core.config import FiscalEnvironment, Settings, get_settings
from fiscalai.core.database import redis_manager
from fiscalai.core.errors import (
    AuthenticationError,
    ConflictError,
    FiscalError,
    FiscalTimeoutError,
    NotFoundError,
    RateLimitedError,
    UpstreamServerError,
    ValidationError,
)
from fiscalai.core.logging_config import trace_id_var
from .token_provider import MemoryTokenCache, NuvemFiscalTokenProvider, RedisTokenCache, TokenCache


@dataclass(frozen=True)
class OperationMessages:
    """Mensagens ao usuário por operação, indexadas pelo tipo de falha."""

    default: str
    authentication: str = "Erro de autenticação"
    not_found: str = "Registro não encontrado na Nuvem Fiscal"
    conflict: str = "Registro já existente na Nuvem Fiscal"
    rate_limited: str = "Muitas requisições. Tente novamente em alguns instantes."
    server: str = "Erro no servidor da Nuvem Fiscal. Tente novamente mais tarde."
    timeout: str = "Tempo de espera esgotado. Tente novamente."
    connection: str = "Erro de conexão com a prefeitura"


REGISTER_COMPANY_MESSAGES = OperationMessages(
    default="Erro ao registrar empresa na Nuvem Fiscal",
    authentication="Erro de autenticação. Verifique as credenciais da Nuvem Fiscal.",
    conflict="Empresa já registrada",
)
ISSUE_INVOICE_MESSAGES = OperationMessages(
    default="Erro ao emitir nota fiscal",
    authentication="Erro de autenticação com a prefeitura. Verifique as credenciais.",
    server="Erro no servidor da prefeitura. Tente novamente mais tarde.",
    conflict="Nota fiscal já emitida",
)
INVOICE_STATUS_MESSAGES = OperationMessages(
    default="Erro ao consultar status da nota",
    not_found="Nota fiscal não encontrada",
)
HEALTH_CHECK_MESSAGES = OperationMessages(
    default="Falha na conexão com a prefeitura",
    timeout="Tempo de conexão esgotado",
)


def _upstream_detail(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    detail = body.get("mensagem") or body.get("message") or body.get("error")
    if isinstance(detail, dict):
        detail = detail.get("message") or detail.get("mensagem")
    return str(detail) if detail else None


def error_from_response(response: httpx.Response, messages: OperationMessages) -> FiscalError:
    """Converte uma resposta não-2xx do provedor no erro estruturado correspondente."""
    status_code = response.status_code
    if status_code in (401, 403):
        return AuthenticationError(messages.authentication, code="PROVIDER_AUTH_FAILED", upstream_status=status_code)
    if status_code == 400 or status_code == 422:
        detail = _upstream_detail(response)
        message = f"{messages.default}: {detail}" if detail else messages.default
        return ValidationError(message, code="PROVIDER_VALIDATION_ERROR", upstream_status=status_code)
    if status_code == 404:
        return NotFoundError(messages.not_found, upstream_status=status_code)
    if status_code == 409:
        return ConflictError(messages.conflict, code="ALREADY_EXISTS", upstream_status=status_code)
    if status_code == 429:
        return RateLimitedError(messages.rate_limited, upstream_status=status_code)
    if status_code >= 500:
        return UpstreamServerError(messages.server, code="PROVIDER_SERVER_ERROR", upstream_status=status_code)
    return UpstreamServerError(messages.default, code="PROVIDER_UNEXPECTED_STATUS", upstream_status=status_code)


class NuvemFiscalClient:
    """Cliente HTTP da API da Nuvem Fiscal.

    Ambiente (URL base e credenciais) é resolvido uma vez na construção, então
    URL e token nunca se misturam entre sandbox e produção durante uma chamada.
    """

    def __init__(
        self,
        environment: FiscalEnvironment,
        token_provider: NuvemFiscalTokenProvider,
        timeout: float = 30.0,
        healthcheck_timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.environment = environment
        self.token_provider = token_provider
        self.timeout = timeout
        self.healthcheck_timeout = healthcheck_timeout
        self.transport = transport

    async def _headers(self) -> Dict[str, str]:
        token = await self.token_provider.get_token()
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
            "X-Request-ID": trace_id_var.get(),
        }

    async def _request(
        self,
        method: str,
        path: str,
        messages: OperationMessages,
        *,
        json: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> httpx.Response:
        headers = await self._headers()
        log = logger.bind(service="NuvemFiscalClient", environment=self.environment.name)
        log.info(f"Nuvem Fiscal request: {method} {path}")
        try:
            async with httpx.AsyncClient(
                base_url=self.environment.base_url,
                timeout=timeout or self.timeout,
                transport=self.transport,
            ) as client:
                response = await client.request(method, path, headers=headers, json=json)
        except httpx.TimeoutException as e:
            log.error(f"Timeout calling Nuvem Fiscal {method} {path}.")
            raise FiscalTimeoutError(messages.timeout) from e
        except httpx.RequestError as e:
            log.error(f"Network error calling Nuvem Fiscal {method} {path}: {e}")
            raise UpstreamServerError(messages.connection, code="CONNECTION_ERROR") from e
        log.debug(f"Nuvem Fiscal response status: {response.status_code}")
        return response

    @staticmethod
    def _json_body(response: httpx.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError as e:
            logger.error(f"Nuvem Fiscal returned non-JSON body (status {response.status_code}): {response.text[:300]}")
            raise UpstreamServerError("Resposta inválida da Nuvem Fiscal", code="INVALID_PROVIDER_RESPONSE") from e
        if not isinstance(data, dict):
            raise UpstreamServerError("Resposta inválida da Nuvem Fiscal", code="INVALID_PROVIDER_RESPONSE")
        return data

    async def register_company(self, payload: Dict[str, Any]) -> str:
        """Registra a empresa e devolve o id atribuído pelo provedor."""
        response = await self._request("POST", "/empresas", REGISTER_COMPANY_MESSAGES, json=payload)
        if not response.is_success:
            logger.error(f"Company registration failed (status {response.status_code}): {response.text[:300]}")
            raise error_from_response(response, REGISTER_COMPANY_MESSAGES)
        data = self._json_body(response)
        provider_id = data.get("id") or data.get("cpf_cnpj")
        if not provider_id:
            logger.error(f"Company registration response without id: {data}")
            raise UpstreamServerError("Resposta inválida da Nuvem Fiscal", code="INVALID_PROVIDER_RESPONSE")
        logger.success(f"Company registered on Nuvem Fiscal with id {provider_id}")
        return str(provider_id)

    async def issue_invoice(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        response = await self._request("POST", "/nfse", ISSUE_INVOICE_MESSAGES, json=payload)
        if not response.is_success:
            logger.error(f"Invoice issuance failed (status {response.status_code}): {response.text[:300]}")
            raise error_from_response(response, ISSUE_INVOICE_MESSAGES)
        return self._json_body(response)

    async def get_invoice_status(self, numero: str) -> Dict[str, Any]:
        response = await self._request("GET", f"/nfse/{numero}", INVOICE_STATUS_MESSAGES)
        if not response.is_success:
            raise error_from_response(response, INVOICE_STATUS_MESSAGES)
        return self._json_body(response)

    async def health_check(self) -> bool:
        """True se o endpoint respondeu 2xx.

        401/403 levantam ``AuthenticationError`` para o chamador distinguir falha
        de credencial de falha de conectividade. Timeout levanta ``FiscalTimeoutError``.
        """
        response = await self._request(
            "GET", "/empresas", HEALTH_CHECK_MESSAGES, timeout=self.healthcheck_timeout
        )
        if response.status_code in (401, 403):
            raise error_from_response(response, HEALTH_CHECK_MESSAGES)
        return response.is_success


# --- Funções de Dependência FastAPI ---
@lru_cache()
def get_memory_token_cache() -> MemoryTokenCache:
    return MemoryTokenCache()


def get_token_provider(settings: Settings = Depends(get_settings)) -> NuvemFiscalTokenProvider:
    redis_client = redis_manager.get_client()
    cache: TokenCache = RedisTokenCache(redis_client) if redis_client is not None else get_memory_token_cache()
    return NuvemFiscalTokenProvider.from_settings(settings, cache=cache)


def get_fiscal_client(
    settings: Settings = Depends(get_settings),
    token_provider: NuvemFiscalTokenProvider = Depends(get_token_provider),
) -> NuvemFiscalClient:
    return NuvemFiscalClient(
        environment=token_provider.environment,
        token_provider=token_provider,
        timeout=settings.NUVEM_FISCAL_TIMEOUT_SECONDS,
        healthcheck_timeout=settings.NUVEM_FISCAL_HEALTHCHECK_TIMEOUT_SECONDS,
    )
