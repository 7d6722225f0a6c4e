# fiscalai/main.py

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from fiscalai.api.v1 import api_router
from fiscalai.core.config import Settings, get_settings
from fiscalai.core.database import mongo_manager, redis_manager
from fiscalai.core.errors import FiscalError, ValidationError
from fiscalai.core.logging_config import add_trace_id_middleware, setup_logging, trace_id_var


async def ensure_indexes(db: AsyncIOMotorDatabase):
    """Índices únicos das chaves naturais usadas nos upserts."""
    await db["fiscal_integration_status"].create_index([("company_id", ASCENDING)], unique=True)
    # Número da NFS-e é sequencial por emissor; notas sem número ficam fora do índice único
    await db["invoices"].create_index(
        [("company_id", ASCENDING), ("numero", ASCENDING)],
        unique=True,
        partialFilterExpression={"numero": {"$type": "string"}},
    )
    await db["invoices"].create_index([("company_id", ASCENDING), ("created_at", DESCENDING)])
    await db["notifications"].create_index([("invoice_id", ASCENDING), ("created_at", DESCENDING)])
    await db["companies"].create_index([("cnpj", ASCENDING)])
    logger.info("MongoDB indexes ensured.")


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting {settings.PROJECT_NAME}...")
        await mongo_manager.connect(settings)
        await ensure_indexes(mongo_manager.get_db())
        if settings.REDIS_URL:
            await redis_manager.connect(settings.REDIS_URL)
        yield
        await redis_manager.disconnect()
        await mongo_manager.disconnect()
        logger.info(f"{settings.PROJECT_NAME} stopped.")

    app = FastAPI(
        title=settings.PROJECT_NAME,
        openapi_url=f"{settings.API_V1_STR}/openapi.json",
        lifespan=lifespan,
    )

    # CORS Middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.FRONTEND_ORIGIN],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.middleware("http")(add_trace_id_middleware)

    @app.exception_handler(FiscalError)
    async def fiscal_error_handler(request: Request, exc: FiscalError):
        log = logger.bind(error_code=exc.code, kind=exc.kind.value)
        if exc.http_status >= 500:
            log.error(f"{request.method} {request.url.path} failed: {exc!r}")
        else:
            log.warning(f"{request.method} {request.url.path} rejected: {exc!r}")
        return JSONResponse(status_code=exc.http_status, content=exc.to_payload())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        location = errors[0].get("loc", ()) if errors else ()
        field = str(location[-1]) if location else None
        logger.bind(error_code="VALIDATION_ERROR").warning(f"{request.method} {request.url.path} invalid input: {errors}")
        error = ValidationError(f"Campo inválido: {field}" if field else "Dados inválidos", field=field)
        return JSONResponse(status_code=error.http_status, content=error.to_payload())

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.opt(exception=exc).error(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(
            status_code=500,
            content={
                "status": "error",
                "success": False,
                "message": "Erro interno do servidor",
                "error_code": "INTERNAL_ERROR",
                "trace_id": trace_id_var.get(),
            },
        )

    app.include_router(api_router, prefix=settings.API_V1_STR)
    return app


app = create_app()
