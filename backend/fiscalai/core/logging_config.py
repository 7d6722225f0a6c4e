# fiscalai/core/logging_config.py

import contextvars
import logging
import sys
import uuid
from datetime import datetime, timezone

from loguru import logger

from fiscalai.core.config import Settings

# Context variable para Trace ID
trace_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("trace_id", default="unset")


class InterceptHandler(logging.Handler):
    """Redireciona o logging padrão do Python para o Loguru."""

    def emit(self, record: logging.LogRecord):
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Encontrar frame correto (fora do módulo logging)
        frame, depth = logging.currentframe(), 2
        while frame is not None and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).bind(
            trace_id=trace_id_var.get()
        ).log(level, record.getMessage())


def setup_logging(settings: Settings):
    """Configura Loguru como handler principal e define formatos."""
    logger.remove()

    log_level = settings.LOG_LEVEL.upper()
    logger.configure(extra={"trace_id": "unset"})
    logger.add(
        sys.stderr,
        level=log_level,
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}Z</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}:{function}:{line}</cyan> | "
            "<magenta>TID:{extra[trace_id]: >12.12}</magenta> | "
            "<level>{message}</level>"
        ),
        enqueue=True,
        backtrace=True,
        diagnose=log_level == "DEBUG",
        colorize=True,
    )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    logger.success(f"Loguru configured. Console log level: {log_level}")


async def add_trace_id_middleware(request, call_next):
    """Gera/propaga Trace ID via contextvars para cada request."""
    request_trace_id = request.headers.get("X-Request-ID") or f"req_{uuid.uuid4().hex[:12]}"
    token = trace_id_var.set(request_trace_id)

    with logger.contextualize(trace_id=request_trace_id):
        client_host = request.client.host if request.client else "unknown_host"
        logger.info(f"Request START: {request.method} {request.url.path} from {client_host}")
        start_time = datetime.now(timezone.utc)
        try:
            response = await call_next(request)
            response.headers["X-Trace-ID"] = request_trace_id
            duration_ms = (datetime.now(timezone.utc) - start_time).total_seconds() * 1000
            logger.info(f"Request END: {request.method} {request.url.path} Status: {response.status_code} Duration: {duration_ms:.2f}ms")
            return response
        except Exception:
            duration_ms = (datetime.now(timezone.utc) - start_time).total_seconds() * 1000
            logger.exception(f"Unhandled exception during request {request.method} {request.url.path}. Duration: {duration_ms:.2f}ms")
            raise
        finally:
            trace_id_var.reset(token)
