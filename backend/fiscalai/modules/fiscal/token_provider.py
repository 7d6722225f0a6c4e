# fiscalai/modules/fiscal/token_provider.py

import time
from abc import ABC, abstractmethod
from typing import Dict, Optional, Tuple

import httpx
from loguru import logger
from redis.asyncio import Redis

from fiscalai.core.config import FiscalEnvironment, Settings
from fiscalai.core.errors import (
    AuthenticationError,
    ConfigurationError,
    FiscalTimeoutError,
    UpstreamServerError,
)


class TokenCache(ABC):
    @abstractmethod
    async def get(self, key: str) -> Optional[str]: ...

    @abstractmethod
    async def set(self, key: str, token: str, ttl_seconds: int) -> None: ...


class MemoryTokenCache(TokenCache):
    """Cache por processo. Expiração medida em relógio monotônico."""

    def __init__(self):
        self._entries: Dict[str, Tuple[str, float]] = {}

    async def get(self, key: str) -> Optional[str]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        token, expires_at = entry
        if time.monotonic() >= expires_at:
            self._entries.pop(key, None)
            return None
        return token

    async def set(self, key: str, token: str, ttl_seconds: int) -> None:
        self._entries[key] = (token, time.monotonic() + ttl_seconds)


class RedisTokenCache(TokenCache):
    """Cache compartilhado entre workers; o TTL fica a cargo do Redis."""

    prefix = "nuvemfiscal:token:"

    def __init__(self, client: Redis):
        self.client = client

    async def get(self, key: str) -> Optional[str]:
        try:
            return await self.client.get(self.prefix + key)
        except Exception as e:
            logger.warning(f"Redis token cache read failed, ignoring cache: {e}")
            return None

    async def set(self, key: str, token: str, ttl_seconds: int) -> None:
        try:
            await self.client.set(self.prefix + key, token, ex=ttl_seconds)
        except Exception as e:
            logger.warning(f"Redis token cache write failed: {e}")


class NuvemFiscalTokenProvider:
    """Obtém o bearer token da Nuvem Fiscal.

    Com client id/secret configurados faz o fluxo OAuth 2.0 client_credentials;
    sem eles, usa o token estático do ambiente. Sem nenhum dos dois levanta
    ``ConfigurationError``. Com ``cache`` definido, o token é reaproveitado até
    ``expires_in - safety_margin`` segundos; sem cache, cada chamada autentica
    de novo.
    """

    def __init__(
        self,
        environment: FiscalEnvironment,
        auth_url: str,
        scope: str,
        timeout: float = 15.0,
        cache: Optional[TokenCache] = None,
        safety_margin_seconds: int = 60,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.environment = environment
        self.auth_url = auth_url
        self.scope = scope
        self.timeout = timeout
        self.cache = cache
        self.safety_margin_seconds = safety_margin_seconds
        self.transport = transport

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        cache: Optional[TokenCache] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "NuvemFiscalTokenProvider":
        return cls(
            environment=settings.fiscal_environment(),
            auth_url=settings.NUVEM_FISCAL_AUTH_URL,
            scope=settings.NUVEM_FISCAL_SCOPE,
            timeout=settings.NUVEM_FISCAL_TOKEN_TIMEOUT_SECONDS,
            cache=cache if settings.TOKEN_CACHE_ENABLED else None,
            safety_margin_seconds=settings.TOKEN_CACHE_SAFETY_MARGIN_SECONDS,
            transport=transport,
        )

    @property
    def _cache_key(self) -> str:
        return f"{self.environment.name}:{self.environment.client_id}"

    async def get_token(self) -> str:
        env = self.environment
        if env.has_oauth_credentials:
            if self.cache is not None:
                cached = await self.cache.get(self._cache_key)
                if cached:
                    logger.debug(f"Using cached Nuvem Fiscal token ({env.name}).")
                    return cached
            token, expires_in = await self._exchange_client_credentials()
            if self.cache is not None and expires_in:
                ttl = int(expires_in) - self.safety_margin_seconds
                if ttl > 0:
                    await self.cache.set(self._cache_key, token, ttl)
            return token

        if env.static_token:
            return env.static_token

        logger.critical(f"Nuvem Fiscal credentials missing for '{env.name}' environment.")
        raise ConfigurationError("Credenciais da Nuvem Fiscal não configuradas", code="FISCAL_CREDENTIALS_MISSING")

    async def _exchange_client_credentials(self) -> Tuple[str, Optional[int]]:
        log = logger.bind(service="NuvemFiscalTokenProvider", environment=self.environment.name)
        log.info("Requesting Nuvem Fiscal OAuth token...")
        form = {
            "grant_type": "client_credentials",
            "client_id": self.environment.client_id,
            "client_secret": self.environment.client_secret,
            "scope": self.scope,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.auth_url, data=form)
        except httpx.TimeoutException as e:
            log.error("Timeout requesting Nuvem Fiscal OAuth token.")
            raise FiscalTimeoutError("Tempo de conexão esgotado ao autenticar na Nuvem Fiscal") from e
        except httpx.RequestError as e:
            log.error(f"Network error requesting Nuvem Fiscal OAuth token: {e}")
            raise UpstreamServerError("Erro de conexão com a Nuvem Fiscal", code="CONNECTION_ERROR") from e

        if not response.is_success:
            log.error(f"OAuth error (status {response.status_code}): {response.text[:300]}")
            raise AuthenticationError(
                "Falha ao obter token de acesso da Nuvem Fiscal",
                code="TOKEN_EXCHANGE_FAILED",
                upstream_status=response.status_code,
            )

        try:
            data = response.json()
        except ValueError:
            data = {}
        token = data.get("access_token") if isinstance(data, dict) else None
        if not token:
            log.error("OAuth response did not include access_token.")
            raise AuthenticationError("Token de acesso não retornado", code="TOKEN_MISSING")

        log.success(f"Nuvem Fiscal OAuth token obtained: ...{token[-4:]}")
        return token, data.get("expires_in")
