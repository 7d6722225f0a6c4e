from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from fiscalai.models.api_common import PyObjectId

NOTIFICATION_TYPES = Literal["sucesso", "erro", "alerta", "info"]


class NotificationCreateInternal(BaseModel):
    titulo: str
    mensagem: str
    tipo: NOTIFICATION_TYPES = "info"
    invoice_id: Optional[str] = None


class NotificationInDB(NotificationCreateInternal):
    id: PyObjectId = Field(..., alias="_id")
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(populate_by_name=True)


class NotificationAPI(BaseModel):
    id: str
    titulo: str
    mensagem: str
    tipo: NOTIFICATION_TYPES
    invoice_id: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class NotificationListResponse(BaseModel):
    status: str = "success"
    notifications: list[NotificationAPI]
    total: int
