# fiscalai/modules/companies/services.py

from typing import List, Optional, Tuple

from fastapi import Depends
from loguru import logger

from fiscalai.core.errors import ConflictError, NotFoundError, ValidationError, missing_field
from fiscalai.modules.fiscal.client import NuvemFiscalClient, get_fiscal_client
from fiscalai.modules.fiscal.payloads import build_company_registration_payload
from .models import CompanyCreateAPI, CompanyCreateInternal, CompanyFields, CompanyInDB
from .repository import CompanyRepository, get_company_repository

# Ordem de verificação e rótulo exibido na mensagem de campo ausente
REGISTRATION_REQUIRED_FIELDS = (
    ("razao_social", "Razão social"),
    ("cnpj", "CNPJ"),
    ("inscricao_municipal", "Inscrição municipal"),
    ("municipio", "Município"),
    ("uf", "UF"),
    ("email", "Email"),
    ("telefone", "Telefone"),
)


def validate_registration_fields(fields: CompanyFields) -> None:
    for name, label in REGISTRATION_REQUIRED_FIELDS:
        value = getattr(fields, name)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise missing_field(label, name)


class CompanyService:
    def __init__(self, repository: CompanyRepository, fiscal_client: NuvemFiscalClient):
        self.repository = repository
        self.fiscal_client = fiscal_client

    async def create_company(self, company_in: CompanyCreateAPI) -> CompanyInDB:
        logger.bind(service="CompanyService").info(f"Creating company '{company_in.razao_social}'")
        return await self.repository.create(CompanyCreateInternal(**company_in.model_dump()))

    async def get_company(self, company_id: str) -> CompanyInDB:
        company = await self.repository.get_by_id(company_id)
        if company is None:
            raise NotFoundError("Empresa não encontrada", code="COMPANY_NOT_FOUND")
        return company

    async def list_companies(self, skip: int = 0, limit: int = 100) -> Tuple[List[CompanyInDB], int]:
        return await self.repository.list_companies(skip=skip, limit=limit)

    async def register_company(
        self, company_id: Optional[str], dados_empresa: Optional[CompanyFields]
    ) -> CompanyInDB:
        """Registra a empresa na Nuvem Fiscal e grava o id retornado.

        Toda validação local acontece antes de qualquer chamada de rede.
        """
        if not company_id:
            raise ValidationError("ID da empresa não fornecido", code="MISSING_FIELD", field="companyId")
        if dados_empresa is None:
            raise ValidationError("Dados da empresa não fornecidos", code="MISSING_FIELD", field="dados_empresa")
        validate_registration_fields(dados_empresa)

        company = await self.get_company(company_id)
        if company.is_registered:
            raise ConflictError("Empresa já registrada", code="ALREADY_REGISTERED")

        log = logger.bind(service="CompanyService", company_id=company_id)
        log.info("Registering company on Nuvem Fiscal...")
        payload = build_company_registration_payload(dados_empresa)
        provider_id = await self.fiscal_client.register_company(payload)

        updated = await self.repository.mark_registered(company_id, provider_id)
        if updated is None:
            # Outra requisição registrou a mesma empresa durante a chamada
            log.warning(f"Company already had a provider id; discarding {provider_id}.")
            raise ConflictError("Empresa já registrada", code="ALREADY_REGISTERED")
        log.success(f"Company registered with Nuvem Fiscal id {provider_id}.")
        return updated


async def get_company_service(
    repository: CompanyRepository = Depends(get_company_repository),
    fiscal_client: NuvemFiscalClient = Depends(get_fiscal_client),
) -> CompanyService:
    return CompanyService(repository, fiscal_client)
