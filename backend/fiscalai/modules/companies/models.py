from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field

from fiscalai.models.api_common import PyObjectId


class CompanyFields(BaseModel):
    """Dados cadastrais da empresa (todos opcionais; obrigatoriedade depende da operação)."""

    razao_social: Optional[str] = None
    nome_fantasia: Optional[str] = None
    cnpj: Optional[str] = None
    inscricao_municipal: Optional[str] = None
    inscricao_estadual: Optional[str] = None
    cnae_principal: Optional[str] = None
    email: Optional[str] = None
    telefone: Optional[str] = None
    logradouro: Optional[str] = None
    numero: Optional[str] = None
    complemento: Optional[str] = None
    bairro: Optional[str] = None
    municipio: Optional[str] = None
    codigo_municipio: Optional[str] = None
    uf: Optional[str] = None
    cep: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


# --- Internal/DB Models ---
class CompanyCreateInternal(CompanyFields):
    razao_social: str
    cnpj: str


class CompanyInDB(CompanyFields):
    id: PyObjectId = Field(..., alias="_id")
    razao_social: str
    cnpj: str
    nuvem_fiscal_id: Optional[str] = None
    nuvem_fiscal_registered_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(populate_by_name=True)

    @property
    def is_registered(self) -> bool:
        return bool(self.nuvem_fiscal_id)


# --- API Models ---
class CompanyCreateAPI(CompanyFields):
    razao_social: str = Field(..., min_length=2)
    cnpj: str = Field(..., min_length=14)
    email: Optional[EmailStr] = None


class CompanyAPI(CompanyFields):
    id: str
    razao_social: str
    cnpj: str
    nuvem_fiscal_id: Optional[str] = None
    nuvem_fiscal_registered_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CompanyListResponse(BaseModel):
    status: str = "success"
    companies: List[CompanyAPI]
    total: int


class RegisterCompanyRequest(BaseModel):
    company_id: Optional[str] = Field(None, validation_alias=AliasChoices("companyId", "company_id"))
    dados_empresa: Optional[CompanyFields] = Field(
        None, validation_alias=AliasChoices("dados_empresa", "companyFields")
    )

    model_config = ConfigDict(populate_by_name=True)


class RegisterCompanyResponse(BaseModel):
    status: str = "success"
    message: str
    data: Optional[Dict[str, Any]] = None
