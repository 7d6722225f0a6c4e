# fiscalai/core/security.py

import hmac
from typing import Annotated, Optional

from fastapi import Depends, Header
from loguru import logger

from fiscalai.core.config import Settings, get_settings
from fiscalai.core.errors import AuthenticationError, ConfigurationError


async def require_api_key(
    settings: Annotated[Settings, Depends(get_settings)],
    x_api_key: Annotated[Optional[str], Header(alias="X-API-Key")] = None,
) -> None:
    """Dependência FastAPI: valida a chave estática enviada em X-API-Key."""
    if not settings.API_KEY:
        logger.critical("API_KEY not configured. Refusing authenticated request.")
        raise ConfigurationError("Autenticação da API não configurada", code="API_KEY_NOT_CONFIGURED")
    if not x_api_key or not hmac.compare_digest(x_api_key.encode("utf-8"), settings.API_KEY.encode("utf-8")):
        logger.warning("Request rejected: invalid or missing X-API-Key.")
        raise AuthenticationError("Não autorizado", code="UNAUTHORIZED")


ApiKeyDependency = Depends(require_api_key)
