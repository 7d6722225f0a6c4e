from datetime import datetime
from enum import Enum
from typing import Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from fiscalai.models.api_common import PyObjectId


class ConnectionState(str, Enum):
    UNKNOWN = "unknown"
    CHECKING = "checking"
    CONNECTED = "connected"
    FAILED = "failed"


# Valores persistidos em fiscal_integration_status.status
STORED_STATUS = {
    ConnectionState.CONNECTED: "conectado",
    ConnectionState.FAILED: "falha",
}

CONNECTION_OK_MESSAGE = "Conexão estabelecida"
CONNECTION_AUTH_MESSAGE = "Erro de autenticação"
CONNECTION_TIMEOUT_MESSAGE = "Tempo de conexão esgotado"
CONNECTION_FAILED_MESSAGE = "Falha na conexão com a prefeitura"


# --- Internal/DB Models ---
class FiscalIntegrationStatusUpsert(BaseModel):
    status: Literal["conectado", "falha"]
    mensagem: str
    ultima_verificacao: datetime
    error_code: Optional[str] = None


class FiscalIntegrationStatusInDB(FiscalIntegrationStatusUpsert):
    id: PyObjectId = Field(..., alias="_id")
    company_id: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(populate_by_name=True)

    @property
    def state(self) -> ConnectionState:
        return ConnectionState.CONNECTED if self.status == "conectado" else ConnectionState.FAILED


# --- API Models ---
class ConnectionCheckRequest(BaseModel):
    company_id: Optional[str] = Field(None, validation_alias=AliasChoices("companyId", "company_id"))


class ConnectionCheckResponse(BaseModel):
    status: Literal["success", "error"]
    message: str
    state: ConnectionState
    error_code: Optional[str] = None
    ultima_verificacao: Optional[datetime] = None
