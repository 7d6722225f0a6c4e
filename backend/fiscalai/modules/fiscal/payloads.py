"""Montagem dos payloads no formato da API da Nuvem Fiscal."""

import re
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fiscalai.modules.companies.models import CompanyFields, CompanyInDB
from fiscalai.modules.invoices.models import IssueInvoiceRequest
from fiscalai.modules.invoices.taxes import IssBreakdown

# Defaults de endereço aceitos pela Nuvem Fiscal (município de São Paulo)
DEFAULT_LOGRADOURO = "Rua Principal"
DEFAULT_NUMERO = "100"
DEFAULT_BAIRRO = "Centro"
DEFAULT_CODIGO_MUNICIPIO = "3550308"
DEFAULT_CEP = "01000000"
CODIGO_PAIS_BRASIL = "1058"

DEFAULT_CODIGO_TRIBUTARIO = "01.07"
DEFAULT_ITEM_LISTA_SERVICO = "1.07"
DEFAULT_CNAE = "6311900"
NATUREZA_TRIBUTACAO_NO_MUNICIPIO = 1
REGIME_ESPECIAL_NAO_APLICAVEL = 6


def only_digits(value: Optional[str]) -> str:
    return re.sub(r"\D", "", value or "")


def build_company_registration_payload(fields: CompanyFields) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "cpf_cnpj": only_digits(fields.cnpj),
        "nome_razao_social": fields.razao_social,
        "nome_fantasia": fields.nome_fantasia or fields.razao_social,
        "email": fields.email,
        "fone": only_digits(fields.telefone),
    }
    if fields.inscricao_municipal:
        payload["inscricao_municipal"] = fields.inscricao_municipal
    if fields.inscricao_estadual:
        payload["inscricao_estadual"] = fields.inscricao_estadual

    endereco: Dict[str, Any] = {
        "logradouro": fields.logradouro or DEFAULT_LOGRADOURO,
        "numero": fields.numero or DEFAULT_NUMERO,
        "bairro": fields.bairro or DEFAULT_BAIRRO,
        "codigo_municipio": fields.codigo_municipio or DEFAULT_CODIGO_MUNICIPIO,
        "cidade": fields.municipio,
        "uf": (fields.uf or "").upper(),
        "codigo_pais": CODIGO_PAIS_BRASIL,
        "pais": "Brasil",
        "cep": only_digits(fields.cep) if fields.cep else DEFAULT_CEP,
    }
    if fields.complemento:
        endereco["complemento"] = fields.complemento
    payload["endereco"] = endereco
    return payload


def build_nfse_payload(
    company: CompanyInDB,
    request: IssueInvoiceRequest,
    iss: IssBreakdown,
    issued_at: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Payload de emissão: blocos prestador, tomador e servico.

    Valores monetários vão como string decimal para não perder centavos.
    """
    issued_at = issued_at or datetime.now(timezone.utc)
    uf = (company.uf or "").upper()
    return {
        "referencia": company.nuvem_fiscal_id,
        "prestador": {
            "cpf_cnpj": only_digits(company.cnpj),
            "inscricao_municipal": company.inscricao_municipal,
            "razao_social": company.razao_social,
            "nome_fantasia": company.nome_fantasia,
            "endereco": {
                "logradouro": request.logradouro or company.logradouro or DEFAULT_LOGRADOURO,
                "numero": request.endereco_numero or company.numero or DEFAULT_NUMERO,
                "bairro": request.bairro or company.bairro or DEFAULT_BAIRRO,
                "codigo_municipio": request.codigo_municipio or company.codigo_municipio or DEFAULT_CODIGO_MUNICIPIO,
                "uf": uf,
                "cep": only_digits(request.cep or company.cep) or DEFAULT_CEP,
            },
        },
        "tomador": {
            "cpf_cnpj": only_digits(request.cliente_documento),
            "razao_social": request.cliente_nome,
            "endereco": {
                "codigo_municipio": request.tomador_codigo_municipio or DEFAULT_CODIGO_MUNICIPIO,
                "uf": (request.tomador_uf or uf).upper(),
            },
        },
        "servico": {
            "discriminacao": request.descricao_servico,
            "codigo_tributario_municipio": request.codigo_servico or DEFAULT_CODIGO_TRIBUTARIO,
            "codigo_cnae": only_digits(company.cnae_principal) or DEFAULT_CNAE,
            "item_lista_servico": request.item_lista_servico or DEFAULT_ITEM_LISTA_SERVICO,
            "valor_servicos": str(iss.valor),
            "aliquota": str(iss.aliquota),
            "valor_iss": str(iss.valor_iss),
            "iss_retido": request.iss_retido,
        },
        "data_emissao": issued_at.isoformat(),
        "data_prestacao": request.data_prestacao,
        "natureza_operacao": NATUREZA_TRIBUTACAO_NO_MUNICIPIO,
        "regime_especial_tributacao": request.regime_especial or REGIME_ESPECIAL_NAO_APLICAVEL,
    }
