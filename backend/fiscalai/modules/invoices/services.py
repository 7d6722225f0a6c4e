# fiscalai/modules/invoices/services.py

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from fastapi import Depends
from loguru import logger

from fiscalai.core.errors import NotFoundError, ValidationError, missing_field
from fiscalai.modules.companies.repository import CompanyRepository, get_company_repository
from fiscalai.modules.fiscal.client import NuvemFiscalClient, get_fiscal_client
from fiscalai.modules.fiscal.payloads import build_nfse_payload
from fiscalai.modules.fiscal.status_mapper import map_provider_status
from fiscalai.modules.notifications.services import NotificationService, get_notification_service
from .models import (
    InvoiceCreateInternal,
    InvoiceInDB,
    InvoiceStatus,
    InvoiceUpdateInternal,
    IssueInvoiceRequest,
)
from .repository import InvoiceRepository, get_invoice_repository
from .taxes import compute_iss

ISSUE_REQUIRED_FIELDS = (
    ("company_id", "ID da empresa"),
    ("cliente_nome", "Nome do cliente"),
    ("cliente_documento", "Documento do cliente"),
    ("descricao_servico", "Descrição do serviço"),
    ("valor", "Valor"),
    ("aliquota_iss", "Alíquota ISS"),
    ("municipio", "Município"),
    ("data_prestacao", "Data de prestação"),
)

STATUS_NOTIFICATION_TYPE = {
    InvoiceStatus.AUTHORIZED: "sucesso",
    InvoiceStatus.REJECTED: "erro",
}


@dataclass
class StatusCheckResult:
    status: InvoiceStatus
    numero: str
    invoice: Optional[InvoiceInDB] = None
    from_cache: bool = False
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def message(self) -> str:
        return f"Nota fiscal {self.numero}: {self.status.label}"


def validate_issue_request(request: IssueInvoiceRequest) -> None:
    for name, label in ISSUE_REQUIRED_FIELDS:
        value = getattr(request, name)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise missing_field(label, name)
    if request.valor <= 0:
        raise ValidationError("Valor deve ser maior que zero", code="INVALID_VALUE", field="valor")
    if request.aliquota_iss < 0 or request.aliquota_iss > 100:
        raise ValidationError("Alíquota ISS deve estar entre 0 e 100", code="INVALID_VALUE", field="aliquota_iss")


def _first(data: Dict[str, Any], *keys: str) -> Optional[Any]:
    for key in keys:
        value = data.get(key)
        if value:
            return value
    return None


class InvoiceService:
    """Emissão, consulta de status e listagem de NFS-e."""

    def __init__(
        self,
        repository: InvoiceRepository,
        company_repository: CompanyRepository,
        fiscal_client: NuvemFiscalClient,
        notification_service: NotificationService,
    ):
        self.repository = repository
        self.company_repository = company_repository
        self.fiscal_client = fiscal_client
        self.notification_service = notification_service

    async def issue_invoice(self, request: IssueInvoiceRequest) -> InvoiceInDB:
        validate_issue_request(request)

        company = await self.company_repository.get_by_id(request.company_id)
        if company is None:
            raise NotFoundError("Empresa não encontrada", code="COMPANY_NOT_FOUND")
        if not company.is_registered:
            raise ValidationError(
                "Empresa não registrada na Nuvem Fiscal. Registre a empresa antes de emitir notas.",
                code="COMPANY_NOT_REGISTERED",
                field="nuvem_fiscal_id",
            )

        log = logger.bind(service="InvoiceService", company_id=company.id)
        iss = compute_iss(request.valor, request.aliquota_iss)
        log.info(f"Issuing NFS-e: valor={iss.valor} aliquota={iss.aliquota} iss={iss.valor_iss}")

        payload = build_nfse_payload(company, request, iss)
        response = await self.fiscal_client.issue_invoice(payload)
        status = map_provider_status(response)

        numero = response.get("numero")
        invoice_data = InvoiceCreateInternal(
            company_id=company.id,
            numero=str(numero) if numero else None,
            codigo_verificacao=response.get("codigo_verificacao"),
            cliente_nome=request.cliente_nome,
            cliente_documento=request.cliente_documento,
            descricao_servico=request.descricao_servico,
            valor=iss.valor,
            aliquota_iss=iss.aliquota,
            valor_iss=iss.valor_iss,
            valor_liquido=iss.valor_liquido,
            iss_retido=request.iss_retido,
            status=status,
            data_emissao=response.get("data_emissao") or datetime.now(timezone.utc).date().isoformat(),
            data_prestacao=request.data_prestacao,
            pdf_url=_first(response, "pdf_url", "link_pdf"),
            xml_url=_first(response, "xml_url", "link_xml"),
            motivo_rejeicao=_first(response, "motivo_rejeicao", "motivo") if status is InvoiceStatus.REJECTED else None,
            municipio=request.municipio,
        )
        if invoice_data.numero:
            invoice = await self.repository.upsert_by_number(company.id, invoice_data.numero, invoice_data)
        else:
            invoice = await self.repository.create(invoice_data)
        log.success(f"Invoice persisted: id={invoice.id} numero={invoice.numero} status={status.value}")

        await self.notification_service.notify(
            titulo="Nota fiscal emitida",
            mensagem=f"Nota fiscal {invoice.numero or 'criada'} com sucesso",
            tipo="sucesso",
            invoice_id=invoice.id,
        )
        return invoice

    async def check_status(
        self, numero: Optional[str], invoice_id: Optional[str] = None, company_id: Optional[str] = None
    ) -> StatusCheckResult:
        if not numero:
            raise ValidationError("Número da nota não fornecido", code="MISSING_FIELD", field="numero")

        if invoice_id:
            invoice = await self.repository.get_by_id(invoice_id)
            if invoice is None:
                raise NotFoundError("Nota fiscal não encontrada", code="INVOICE_NOT_FOUND")
            if invoice.numero and invoice.numero != numero:
                raise ValidationError(
                    f"Número {numero} não corresponde à nota informada ({invoice.numero})",
                    code="INVOICE_NUMBER_MISMATCH",
                    field="numero",
                )
        else:
            invoice = await self.repository.get_by_number(numero, company_id)

        log = logger.bind(service="InvoiceService", numero=numero)
        if invoice is not None and invoice.status.is_terminal:
            log.info(f"Invoice already in terminal status '{invoice.status.value}'; skipping provider call.")
            return StatusCheckResult(status=invoice.status, numero=numero, invoice=invoice, from_cache=True)

        response = await self.fiscal_client.get_invoice_status(numero)
        status = map_provider_status(response)
        log.info(f"Provider status mapped to '{status.value}'.")

        if invoice is not None:
            # URLs anteriores são mantidas quando o provedor não as devolve
            changes: Dict[str, Any] = {
                "status": status,
                "codigo_verificacao": response.get("codigo_verificacao") or invoice.codigo_verificacao,
                "pdf_url": _first(response, "pdf_url", "link_pdf") or invoice.pdf_url,
                "xml_url": _first(response, "xml_url", "link_xml") or invoice.xml_url,
            }
            if status is InvoiceStatus.REJECTED:
                changes["motivo_rejeicao"] = _first(response, "motivo_rejeicao", "motivo") or invoice.motivo_rejeicao
            invoice = await self.repository.update_status(invoice.id, InvoiceUpdateInternal(**changes)) or invoice

        await self.notification_service.notify(
            titulo="Status atualizado",
            mensagem=f"Nota fiscal {numero}: {status.label}",
            tipo=STATUS_NOTIFICATION_TYPE.get(status, "info"),
            invoice_id=invoice.id if invoice else None,
        )
        return StatusCheckResult(status=status, numero=numero, invoice=invoice, details=response)

    async def list_invoices(
        self,
        company_id: Optional[str] = None,
        status: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[InvoiceInDB], int]:
        status_filter: Optional[InvoiceStatus] = None
        if status:
            try:
                status_filter = InvoiceStatus(status)
            except ValueError as e:
                raise ValidationError(f"Status inválido: {status}", code="INVALID_STATUS", field="status") from e
        return await self.repository.list_invoices(company_id=company_id, status=status_filter, skip=skip, limit=limit)


async def get_invoice_service(
    repository: InvoiceRepository = Depends(get_invoice_repository),
    company_repository: CompanyRepository = Depends(get_company_repository),
    fiscal_client: NuvemFiscalClient = Depends(get_fiscal_client),
    notification_service: NotificationService = Depends(get_notification_service),
) -> InvoiceService:
    return InvoiceService(repository, company_repository, fiscal_client, notification_service)
