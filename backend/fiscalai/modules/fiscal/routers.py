from fastapi import APIRouter, Depends
from loguru import logger

from fiscalai.core.security import ApiKeyDependency
from .models import ConnectionCheckRequest, ConnectionCheckResponse
from .services import ConnectionCheckResult, ConnectionChecker, get_connection_checker

# --- Router ---
fiscal_router = APIRouter(dependencies=[ApiKeyDependency])


def _to_response(result: ConnectionCheckResult) -> ConnectionCheckResponse:
    return ConnectionCheckResponse(
        status="success" if result.connected else "error",
        message=result.message,
        state=result.state,
        error_code=result.error_code,
        ultima_verificacao=result.checked_at,
    )


@fiscal_router.post(
    "/connection/check",
    response_model=ConnectionCheckResponse,
    summary="Check connectivity with the fiscal provider for a company",
    tags=["Fiscal - Connection"],
)
async def check_fiscal_connection_endpoint(
    request_in: ConnectionCheckRequest,
    checker: ConnectionChecker = Depends(get_connection_checker),
):
    """
    Probes the fiscal provider with a bounded timeout and records the outcome
    (`conectado` / `falha`) for the company. A failed probe is still a 200 response
    with `status="error"`; only missing input, unknown company or missing
    credentials produce error status codes.
    """
    logger.bind(company_id=request_in.company_id).info("Endpoint: Checking fiscal connection...")
    result = await checker.check(request_in.company_id)
    return _to_response(result)


@fiscal_router.get(
    "/connection/{company_id}",
    response_model=ConnectionCheckResponse,
    summary="Get the last recorded fiscal connection status",
    tags=["Fiscal - Connection"],
)
async def get_fiscal_connection_endpoint(
    company_id: str,
    checker: ConnectionChecker = Depends(get_connection_checker),
):
    result = await checker.get_status(company_id)
    return _to_response(result)
