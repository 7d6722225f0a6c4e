# fiscalai/modules/fiscal/services.py

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from fastapi import Depends
from loguru import logger

from fiscalai.core.errors import (
    AuthenticationError,
    ConfigurationError,
    FiscalError,
    FiscalTimeoutError,
    NotFoundError,
    ValidationError,
)
from fiscalai.core.repository import utcnow
from fiscalai.modules.companies.repository import CompanyRepository, get_company_repository
from .client import NuvemFiscalClient, get_fiscal_client
from .models import (
    CONNECTION_AUTH_MESSAGE,
    CONNECTION_FAILED_MESSAGE,
    CONNECTION_OK_MESSAGE,
    CONNECTION_TIMEOUT_MESSAGE,
    STORED_STATUS,
    ConnectionState,
    FiscalIntegrationStatusInDB,
    FiscalIntegrationStatusUpsert,
)
from .repository import FiscalIntegrationStatusRepository, get_fiscal_status_repository


@dataclass(frozen=True)
class ConnectionCheckResult:
    state: ConnectionState
    message: str
    checked_at: Optional[datetime] = None
    error_code: Optional[str] = None

    @property
    def connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED


class ConnectionChecker:
    """Verifica a conectividade com a Nuvem Fiscal e persiste o resultado por empresa.

    Cada verificação é independente: ``checking`` só existe durante a chamada,
    o que fica gravado é ``conectado`` ou ``falha`` com a mensagem da causa.
    """

    def __init__(
        self,
        fiscal_client: NuvemFiscalClient,
        status_repository: FiscalIntegrationStatusRepository,
        company_repository: CompanyRepository,
    ):
        self.fiscal_client = fiscal_client
        self.status_repository = status_repository
        self.company_repository = company_repository

    async def check(self, company_id: Optional[str]) -> ConnectionCheckResult:
        if not company_id:
            raise ValidationError("ID da empresa não fornecido", code="MISSING_FIELD", field="companyId")
        company = await self.company_repository.get_by_id(company_id)
        if company is None:
            raise NotFoundError("Empresa não encontrada", code="COMPANY_NOT_FOUND")

        log = logger.bind(service="ConnectionChecker", company_id=company_id)
        log.info(f"Checking fiscal connection (state={ConnectionState.CHECKING.value})...")

        try:
            connected = await self.fiscal_client.health_check()
        except ConfigurationError as e:
            log.error(f"Fiscal credentials missing: {e.message}")
            await self._persist(company_id, ConnectionState.FAILED, e.message, e.code)
            raise
        except AuthenticationError as e:
            log.warning(f"Fiscal connection check rejected credentials: {e.message}")
            return await self._persist(company_id, ConnectionState.FAILED, CONNECTION_AUTH_MESSAGE, e.code)
        except FiscalTimeoutError as e:
            log.warning("Fiscal connection check timed out.")
            return await self._persist(company_id, ConnectionState.FAILED, CONNECTION_TIMEOUT_MESSAGE, e.code)
        except FiscalError as e:
            log.warning(f"Fiscal connection check failed: {e!r}")
            return await self._persist(company_id, ConnectionState.FAILED, CONNECTION_FAILED_MESSAGE, e.code)

        if connected:
            log.success("Fiscal connection established.")
            return await self._persist(company_id, ConnectionState.CONNECTED, CONNECTION_OK_MESSAGE)
        log.warning("Fiscal health endpoint answered with a non-2xx status.")
        return await self._persist(
            company_id, ConnectionState.FAILED, CONNECTION_FAILED_MESSAGE, "PROVIDER_UNAVAILABLE"
        )

    async def get_status(self, company_id: str) -> ConnectionCheckResult:
        record = await self.status_repository.get_for_company(company_id)
        if record is None:
            return ConnectionCheckResult(state=ConnectionState.UNKNOWN, message="Conexão ainda não verificada")
        return self._result_from_record(record)

    async def _persist(
        self,
        company_id: str,
        state: ConnectionState,
        message: str,
        error_code: Optional[str] = None,
    ) -> ConnectionCheckResult:
        record = await self.status_repository.upsert_for_company(
            company_id,
            FiscalIntegrationStatusUpsert(
                status=STORED_STATUS[state],
                mensagem=message,
                ultima_verificacao=utcnow(),
                error_code=error_code,
            ),
        )
        return self._result_from_record(record)

    @staticmethod
    def _result_from_record(record: FiscalIntegrationStatusInDB) -> ConnectionCheckResult:
        return ConnectionCheckResult(
            state=record.state,
            message=record.mensagem,
            checked_at=record.ultima_verificacao,
            error_code=record.error_code,
        )


async def get_connection_checker(
    fiscal_client: NuvemFiscalClient = Depends(get_fiscal_client),
    status_repository: FiscalIntegrationStatusRepository = Depends(get_fiscal_status_repository),
    company_repository: CompanyRepository = Depends(get_company_repository),
) -> ConnectionChecker:
    return ConnectionChecker(fiscal_client, status_repository, company_repository)
