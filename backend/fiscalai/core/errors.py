# fiscalai/core/errors.py

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    CONFIGURATION = "configuration"
    VALIDATION = "validation"
    AUTHENTICATION = "authentication"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    RATE_LIMITED = "rate_limited"
    TIMEOUT = "timeout"
    UPSTREAM = "upstream"
    INVALID_SIGNATURE = "invalid_signature"


class FiscalError(Exception):
    """Erro estruturado da aplicação.

    Carrega o tipo (``kind``), a mensagem em português para o usuário, um código
    legível por máquina e o status HTTP que o handler da API deve devolver.
    """

    kind: ErrorKind = ErrorKind.UPSTREAM
    http_status: int = 500
    default_code: str = "UNKNOWN_ERROR"
    default_message: str = "Erro inesperado"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        code: Optional[str] = None,
        field: Optional[str] = None,
        http_status: Optional[int] = None,
        upstream_status: Optional[int] = None,
    ):
        self.message = message or self.default_message
        self.code = code or self.default_code
        self.field = field
        self.upstream_status = upstream_status
        if http_status is not None:
            self.http_status = http_status
        super().__init__(self.message)

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "status": "error",
            "success": False,
            "message": self.message,
            "error_code": self.code,
        }
        if self.field:
            payload["field"] = self.field
        return payload

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.value}, code={self.code}, message={self.message!r})"


class ConfigurationError(FiscalError):
    kind = ErrorKind.CONFIGURATION
    http_status = 500
    default_code = "CONFIGURATION_ERROR"
    default_message = "Configuração ausente no servidor"


class ValidationError(FiscalError):
    kind = ErrorKind.VALIDATION
    http_status = 400
    default_code = "VALIDATION_ERROR"
    default_message = "Dados inválidos"


class AuthenticationError(FiscalError):
    kind = ErrorKind.AUTHENTICATION
    http_status = 401
    default_code = "AUTHENTICATION_ERROR"
    default_message = "Erro de autenticação"


class NotFoundError(FiscalError):
    kind = ErrorKind.NOT_FOUND
    http_status = 404
    default_code = "NOT_FOUND"
    default_message = "Registro não encontrado"


class ConflictError(FiscalError):
    kind = ErrorKind.CONFLICT
    http_status = 409
    default_code = "CONFLICT"
    default_message = "Registro já existente"


class RateLimitedError(FiscalError):
    kind = ErrorKind.RATE_LIMITED
    http_status = 429
    default_code = "RATE_LIMITED"
    default_message = "Muitas requisições. Tente novamente em alguns instantes."


class FiscalTimeoutError(FiscalError):
    kind = ErrorKind.TIMEOUT
    http_status = 408
    default_code = "TIMEOUT"
    default_message = "Tempo de conexão esgotado"


class UpstreamServerError(FiscalError):
    kind = ErrorKind.UPSTREAM
    http_status = 502
    default_code = "UPSTREAM_ERROR"
    default_message = "Erro no servidor da Nuvem Fiscal"


class InvalidSignatureError(FiscalError):
    kind = ErrorKind.INVALID_SIGNATURE
    http_status = 401
    default_code = "INVALID_SIGNATURE"
    default_message = "Webhook signature validation failed"


def missing_field(label: str, field: str) -> ValidationError:
    return ValidationError(f"Campo obrigatório ausente: {label}", code="MISSING_FIELD", field=field)
