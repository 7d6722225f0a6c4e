# fiscalai/api/endpoints/status.py

import time as process_time
from datetime import datetime, timezone
from typing import Dict, Literal, Optional

from fastapi import APIRouter, Depends, Response
from fastapi import status as http_status
from loguru import logger
from pydantic import BaseModel, Field

from fiscalai.core.config import Settings, get_settings
from fiscalai.core.database import mongo_manager, redis_manager


class ComponentStatus(BaseModel):
    status: Literal["ok", "error", "unavailable"] = "ok"
    message: Optional[str] = None


class HealthCheckResponse(BaseModel):
    overall_status: Literal["ok", "error"] = "ok"
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    uptime_seconds: float = Field(..., description="Process uptime in seconds")
    fiscal_environment: str
    components: Dict[str, ComponentStatus]


PROCESS_START_TIME = process_time.monotonic()

router = APIRouter()


@router.get(
    "/healthcheck",
    response_model=HealthCheckResponse,
    tags=["Status & Health"],
    summary="Application Health and Component Status Check",
)
async def get_application_health(settings: Settings = Depends(get_settings)):
    log = logger.bind(api_endpoint="/healthcheck GET")
    log.info("Performing application health check...")

    component_statuses: Dict[str, ComponentStatus] = {}
    critical_ok = True

    db = mongo_manager.db
    if db is not None:
        try:
            await db.command("ping")
            component_statuses["database_mongodb"] = ComponentStatus(status="ok")
            log.debug("MongoDB ping successful.")
        except Exception as e:
            err_msg = f"MongoDB connection check failed: {e}"
            log.error(err_msg)
            component_statuses["database_mongodb"] = ComponentStatus(status="error", message=err_msg)
            critical_ok = False
    else:
        log.error("MongoDB connection not available.")
        component_statuses["database_mongodb"] = ComponentStatus(status="error", message="DB Client not available")
        critical_ok = False

    # Redis é opcional: sem ele o cache de token fica em memória
    redis = redis_manager.get_client()
    if redis is not None:
        try:
            await redis.ping()
            component_statuses["cache_redis"] = ComponentStatus(status="ok")
        except Exception as e:
            log.warning(f"Redis ping failed: {e}")
            component_statuses["cache_redis"] = ComponentStatus(status="error", message=str(e))
    else:
        component_statuses["cache_redis"] = ComponentStatus(status="unavailable", message="Using in-process token cache")

    response_payload = HealthCheckResponse(
        overall_status="ok" if critical_ok else "error",
        uptime_seconds=process_time.monotonic() - PROCESS_START_TIME,
        fiscal_environment=settings.fiscal_environment().name,
        components=component_statuses,
    )
    status_code = http_status.HTTP_200_OK if critical_ok else http_status.HTTP_503_SERVICE_UNAVAILABLE
    return Response(
        content=response_payload.model_dump_json(exclude_none=True),
        status_code=status_code,
        media_type="application/json",
    )
