# fiscalai/core/config.py

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

from loguru import logger
from pydantic_settings import BaseSettings, SettingsConfigDict


def find_dotenv_path(filename: str = ".env") -> str | None:
    """Procura o arquivo .env subindo a partir deste módulo, depois no CWD."""
    current_dir = Path(__file__).resolve().parent
    for _ in range(10):
        env_path = current_dir / filename
        if env_path.is_file():
            logger.debug(f"Found {filename} file at: {env_path}")
            return str(env_path)
        if current_dir.parent == current_dir:
            break
        current_dir = current_dir.parent
    env_path_cwd = Path.cwd() / filename
    if env_path_cwd.is_file():
        logger.debug(f"Found {filename} file at CWD: {env_path_cwd}")
        return str(env_path_cwd)
    return None


@dataclass(frozen=True)
class FiscalEnvironment:
    """Ambiente da Nuvem Fiscal resolvido uma única vez (URL e credenciais juntos)."""

    name: str
    base_url: str
    client_id: Optional[str]
    client_secret: Optional[str]
    static_token: Optional[str]

    @property
    def is_sandbox(self) -> bool:
        return self.name == "sandbox"

    @property
    def has_oauth_credentials(self) -> bool:
        return bool(self.client_id and self.client_secret)


class Settings(BaseSettings):
    PROJECT_NAME: str = "FiscalAI"
    API_V1_STR: str = "/api/v1"
    LOG_LEVEL: str = "INFO"
    FRONTEND_ORIGIN: str = "http://localhost:5173"

    # Security
    API_KEY: str | None = None  # Static API Key (header X-API-Key)

    # Database & Cache
    MONGODB_URI: str = "mongodb://localhost:27017/fiscalai"
    REDIS_URL: str | None = None

    # Nuvem Fiscal
    NUVEM_FISCAL_USE_SANDBOX: bool = True
    NUVEM_FISCAL_SANDBOX_CLIENT_ID: str | None = None
    NUVEM_FISCAL_SANDBOX_CLIENT_SECRET: str | None = None
    NUVEM_FISCAL_PRODUCTION_CLIENT_ID: str | None = None
    NUVEM_FISCAL_PRODUCTION_CLIENT_SECRET: str | None = None
    NUVEM_FISCAL_SANDBOX_TOKEN: str | None = None
    NUVEM_FISCAL_PRODUCTION_TOKEN: str | None = None
    NUVEM_FISCAL_AUTH_URL: str = "https://auth.nuvemfiscal.com.br/oauth/token"
    NUVEM_FISCAL_SCOPE: str = "empresa cep cnpj nfse"
    NUVEM_FISCAL_SANDBOX_URL: str = "https://api.sandbox.nuvemfiscal.com.br"
    NUVEM_FISCAL_PRODUCTION_URL: str = "https://api.nuvemfiscal.com.br"
    NUVEM_FISCAL_TIMEOUT_SECONDS: float = 30.0
    NUVEM_FISCAL_HEALTHCHECK_TIMEOUT_SECONDS: float = 10.0
    NUVEM_FISCAL_TOKEN_TIMEOUT_SECONDS: float = 15.0

    # OAuth token reuse
    TOKEN_CACHE_ENABLED: bool = True
    TOKEN_CACHE_SAFETY_MARGIN_SECONDS: int = 60

    # Pagar.me
    PAGARME_WEBHOOK_SECRET: str | None = None

    # AI Services
    OPENAI_API_KEY: str | None = None
    OPENAI_MODEL: str = "gpt-4o-mini"
    OPENAI_API_URL: str = "https://api.openai.com/v1/chat/completions"

    # E-mail integration
    EMAIL_API_URL: str | None = None
    EMAIL_API_KEY: str | None = None
    EMAIL_FROM_NAME: str = "FiscalAI"

    model_config = SettingsConfigDict(
        # .env.local sobrescreve .env; arquivos ausentes são ignorados
        env_file=tuple(p for p in (find_dotenv_path(".env"), find_dotenv_path(".env.local")) if p) or None,
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    def fiscal_environment(self) -> FiscalEnvironment:
        if self.NUVEM_FISCAL_USE_SANDBOX:
            return FiscalEnvironment(
                name="sandbox",
                base_url=self.NUVEM_FISCAL_SANDBOX_URL.rstrip("/"),
                client_id=self.NUVEM_FISCAL_SANDBOX_CLIENT_ID,
                client_secret=self.NUVEM_FISCAL_SANDBOX_CLIENT_SECRET,
                static_token=self.NUVEM_FISCAL_SANDBOX_TOKEN,
            )
        return FiscalEnvironment(
            name="production",
            base_url=self.NUVEM_FISCAL_PRODUCTION_URL.rstrip("/"),
            client_id=self.NUVEM_FISCAL_PRODUCTION_CLIENT_ID,
            client_secret=self.NUVEM_FISCAL_PRODUCTION_CLIENT_SECRET,
            static_token=self.NUVEM_FISCAL_PRODUCTION_TOKEN,
        )


@lru_cache()
def get_settings() -> Settings:
    """Carrega e valida as configurações da aplicação."""
    logger.info("Loading application settings...")
    settings_instance = Settings()

    env = settings_instance.fiscal_environment()
    if not env.has_oauth_credentials and not env.static_token:
        logger.warning(f"Nuvem Fiscal credentials missing for '{env.name}' environment. Fiscal operations will fail.")
    if not settings_instance.API_KEY:
        logger.warning("API_KEY not set. Authenticated endpoints will refuse requests.")
    if not settings_instance.PAGARME_WEBHOOK_SECRET:
        logger.warning("PAGARME_WEBHOOK_SECRET not set. Payment webhooks will be rejected.")

    logger.info(f"Settings loaded. Fiscal environment: {env.name}")
    return settings_instance
