from fastapi import APIRouter, Depends, Query, status

from fiscalai.core.security import ApiKeyDependency
from .models import (
    CompanyAPI,
    CompanyCreateAPI,
    CompanyListResponse,
    RegisterCompanyRequest,
    RegisterCompanyResponse,
)
from .services import CompanyService, get_company_service

# --- Routers ---
companies_router = APIRouter(dependencies=[ApiKeyDependency])
registration_router = APIRouter(dependencies=[ApiKeyDependency])


@companies_router.post(
    "",
    response_model=CompanyAPI,
    status_code=status.HTTP_201_CREATED,
    summary="Create a company record",
    tags=["Companies"],
)
async def create_company_endpoint(
    company_in: CompanyCreateAPI,
    service: CompanyService = Depends(get_company_service),
):
    company = await service.create_company(company_in)
    return CompanyAPI.model_validate(company)


@companies_router.get(
    "",
    response_model=CompanyListResponse,
    summary="List companies",
    tags=["Companies"],
)
async def list_companies_endpoint(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    service: CompanyService = Depends(get_company_service),
):
    companies, total = await service.list_companies(skip=skip, limit=limit)
    return CompanyListResponse(
        companies=[CompanyAPI.model_validate(c) for c in companies],
        total=total,
    )


@companies_router.get(
    "/{company_id}",
    response_model=CompanyAPI,
    summary="Get a company by id",
    tags=["Companies"],
)
async def get_company_endpoint(
    company_id: str,
    service: CompanyService = Depends(get_company_service),
):
    return CompanyAPI.model_validate(await service.get_company(company_id))


@registration_router.post(
    "/companies/register",
    response_model=RegisterCompanyResponse,
    summary="Register a company with the fiscal provider",
    tags=["Fiscal - Companies"],
)
async def register_company_endpoint(
    request_in: RegisterCompanyRequest,
    service: CompanyService = Depends(get_company_service),
):
    """
    Validates the company fields, registers the company on Nuvem Fiscal and stores
    the returned provider id. Fails with 409 if the company is already registered.
    """
    company = await service.register_company(request_in.company_id, request_in.dados_empresa)
    return RegisterCompanyResponse(
        message="Empresa registrada com sucesso na Nuvem Fiscal",
        data={
            "company_id": company.id,
            "nuvem_fiscal_id": company.nuvem_fiscal_id,
            "registered_at": company.nuvem_fiscal_registered_at.isoformat()
            if company.nuvem_fiscal_registered_at
            else None,
        },
    )
