from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from fiscalai.models.api_common import PyObjectId


class InvoiceStatus(str, Enum):
    PENDING_CONFIRMATION = "pending_confirmation"
    AUTHORIZED = "authorized"
    REJECTED = "rejected"
    CANCELED = "canceled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def label(self) -> str:
        return STATUS_LABELS[self]


TERMINAL_STATUSES = frozenset({InvoiceStatus.AUTHORIZED, InvoiceStatus.REJECTED, InvoiceStatus.CANCELED})

# Rótulos exibidos nas mensagens ao usuário
STATUS_LABELS = {
    InvoiceStatus.PENDING_CONFIRMATION: "pendente de confirmação",
    InvoiceStatus.AUTHORIZED: "autorizada",
    InvoiceStatus.REJECTED: "rejeitada",
    InvoiceStatus.CANCELED: "cancelada",
}


# --- Internal/DB Models ---
class InvoiceBase(BaseModel):
    company_id: Optional[str] = None
    numero: Optional[str] = None
    codigo_verificacao: Optional[str] = None
    cliente_nome: str
    cliente_documento: str
    descricao_servico: str
    valor: Decimal
    aliquota_iss: Decimal
    valor_iss: Decimal
    valor_liquido: Decimal
    iss_retido: bool = False
    status: InvoiceStatus = InvoiceStatus.PENDING_CONFIRMATION
    data_emissao: Optional[str] = None
    data_prestacao: Optional[str] = None
    pdf_url: Optional[str] = None
    xml_url: Optional[str] = None
    motivo_rejeicao: Optional[str] = None
    municipio: str


class InvoiceCreateInternal(InvoiceBase):
    pass


class InvoiceUpdateInternal(BaseModel):
    status: Optional[InvoiceStatus] = None
    numero: Optional[str] = None
    codigo_verificacao: Optional[str] = None
    pdf_url: Optional[str] = None
    xml_url: Optional[str] = None
    motivo_rejeicao: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


class InvoiceInDB(InvoiceBase):
    id: PyObjectId = Field(..., alias="_id")
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(populate_by_name=True)


# --- API Models ---
class InvoiceAPI(BaseModel):
    id: str
    company_id: Optional[str] = None
    numero: Optional[str] = None
    codigo_verificacao: Optional[str] = None
    cliente_nome: str
    cliente_documento: str
    descricao_servico: str
    valor: str
    aliquota_iss: str
    valor_iss: str
    valor_liquido: str
    iss_retido: bool
    status: InvoiceStatus
    data_emissao: Optional[str] = None
    data_prestacao: Optional[str] = None
    pdf_url: Optional[str] = None
    xml_url: Optional[str] = None
    motivo_rejeicao: Optional[str] = None
    municipio: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_db(cls, invoice: InvoiceInDB) -> "InvoiceAPI":
        data = invoice.model_dump()
        for key in ("valor", "aliquota_iss", "valor_iss", "valor_liquido"):
            data[key] = f"{data[key]:.2f}"
        return cls.model_validate(data)


class IssueInvoiceRequest(BaseModel):
    """Payload de emissão. Campos obrigatórios são checados no serviço para
    devolver a mensagem de campo ausente em português (HTTP 400)."""

    company_id: Optional[str] = Field(None, validation_alias=AliasChoices("companyId", "company_id"))
    cliente_nome: Optional[str] = Field(None, validation_alias=AliasChoices("cliente_nome", "clientName"))
    cliente_documento: Optional[str] = Field(None, validation_alias=AliasChoices("cliente_documento", "clientTaxId"))
    descricao_servico: Optional[str] = Field(None, validation_alias=AliasChoices("descricao_servico", "serviceDescription"))
    valor: Optional[Decimal] = Field(None, validation_alias=AliasChoices("valor", "value"))
    aliquota_iss: Optional[Decimal] = Field(None, validation_alias=AliasChoices("aliquota_iss", "issRate"))
    municipio: Optional[str] = Field(None, validation_alias=AliasChoices("municipio", "municipality"))
    data_prestacao: Optional[str] = Field(None, validation_alias=AliasChoices("data_prestacao", "serviceDate"))

    # Opcionais repassados ao payload do provedor
    iss_retido: bool = False
    codigo_servico: Optional[str] = None
    item_lista_servico: Optional[str] = None
    regime_especial: Optional[int] = None
    logradouro: Optional[str] = None
    endereco_numero: Optional[str] = None
    bairro: Optional[str] = None
    codigo_municipio: Optional[str] = None
    cep: Optional[str] = None
    tomador_codigo_municipio: Optional[str] = None
    tomador_uf: Optional[str] = None

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "companyId": "662fc1bacc8a4b5e6f7d1234",
                "cliente_nome": "Padaria Pão Quente LTDA",
                "cliente_documento": "12.345.678/0001-90",
                "descricao_servico": "Consultoria em sistemas",
                "valor": "1500.00",
                "aliquota_iss": "5",
                "municipio": "São Paulo",
                "data_prestacao": "2026-10-01",
            }
        },
    )


class IssueInvoiceResponse(BaseModel):
    status: str = "success"
    message: str
    invoice: InvoiceAPI


class InvoiceStatusRequest(BaseModel):
    numero: Optional[str] = None
    invoice_id: Optional[str] = Field(None, validation_alias=AliasChoices("invoiceId", "invoice_id"))
    company_id: Optional[str] = Field(None, validation_alias=AliasChoices("companyId", "company_id"))


class InvoiceStatusResponse(BaseModel):
    status: str = "success"
    message: str
    invoiceStatus: InvoiceStatus
    details: Dict[str, Any] = Field(default_factory=dict)


class InvoiceListResponse(BaseModel):
    status: str = "success"
    message: str
    invoices: List[InvoiceAPI]
    total: int
