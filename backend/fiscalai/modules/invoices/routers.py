from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from loguru import logger

from fiscalai.core.security import ApiKeyDependency
from .models import (
    InvoiceAPI,
    InvoiceListResponse,
    InvoiceStatusRequest,
    InvoiceStatusResponse,
    IssueInvoiceRequest,
    IssueInvoiceResponse,
)
from .services import InvoiceService, get_invoice_service

# --- Router ---
invoices_router = APIRouter(dependencies=[ApiKeyDependency])


@invoices_router.post(
    "/issue",
    response_model=IssueInvoiceResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Issue an NFS-e through the fiscal provider",
    tags=["Invoices"],
)
async def issue_invoice_endpoint(
    request_in: IssueInvoiceRequest,
    service: InvoiceService = Depends(get_invoice_service),
):
    """
    Computes ISS and net value, submits the invoice to Nuvem Fiscal and stores the
    result. The company must already be registered with the provider.
    """
    logger.bind(company_id=request_in.company_id).info("Endpoint: Issuing invoice...")
    invoice = await service.issue_invoice(request_in)
    return IssueInvoiceResponse(
        message=f"Nota fiscal {invoice.numero or 'criada'} com sucesso",
        invoice=InvoiceAPI.from_db(invoice),
    )


@invoices_router.post(
    "/status",
    response_model=InvoiceStatusResponse,
    summary="Check the status of an invoice with the fiscal provider",
    tags=["Invoices"],
)
async def check_invoice_status_endpoint(
    request_in: InvoiceStatusRequest,
    service: InvoiceService = Depends(get_invoice_service),
):
    result = await service.check_status(request_in.numero, request_in.invoice_id, request_in.company_id)
    details = dict(result.details)
    if result.invoice is not None:
        details.setdefault("invoice_id", result.invoice.id)
    details["cached"] = result.from_cache
    return InvoiceStatusResponse(message=result.message, invoiceStatus=result.status, details=details)


@invoices_router.get(
    "",
    response_model=InvoiceListResponse,
    summary="List invoices",
    tags=["Invoices"],
)
async def list_invoices_endpoint(
    company_id: Optional[str] = Query(None, alias="companyId"),
    status_filter: Optional[str] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    service: InvoiceService = Depends(get_invoice_service),
):
    invoices, total = await service.list_invoices(
        company_id=company_id, status=status_filter, skip=offset, limit=limit
    )
    return InvoiceListResponse(
        message=f"{total} nota(s) encontrada(s)",
        invoices=[InvoiceAPI.from_db(i) for i in invoices],
        total=total,
    )
