# fiscalai/api/v1.py
from fastapi import APIRouter

from fiscalai.api.endpoints import status
from fiscalai.models.api_common import ErrorResponse
from fiscalai.modules.assistant.routers import assistant_router
from fiscalai.modules.companies.routers import companies_router, registration_router
from fiscalai.modules.email.routers import email_router
from fiscalai.modules.fiscal.routers import fiscal_router
from fiscalai.modules.invoices.routers import invoices_router
from fiscalai.modules.notifications.routers import notifications_router
from fiscalai.modules.webhooks.routers import webhooks_router

ERROR_RESPONSES = {code: {"model": ErrorResponse} for code in (400, 401, 404, 409, 500, 502)}

api_router = APIRouter(responses=ERROR_RESPONSES)

api_router.include_router(status.router, prefix="/status")
api_router.include_router(companies_router, prefix="/companies")
api_router.include_router(registration_router, prefix="/fiscal")
api_router.include_router(fiscal_router, prefix="/fiscal")
api_router.include_router(invoices_router, prefix="/invoices")
api_router.include_router(notifications_router, prefix="/notifications")
api_router.include_router(email_router, prefix="/notifications")
api_router.include_router(assistant_router, prefix="/assistant")
api_router.include_router(webhooks_router, prefix="/webhooks")
