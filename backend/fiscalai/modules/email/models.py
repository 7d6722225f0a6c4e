from typing import Optional

from pydantic import BaseModel

EMAIL_TYPES = ("success", "error", "info", "warning")


class EmailNotificationRequest(BaseModel):
    # Validação feita no serviço para devolver MISSING_FIELDS / INVALID_EMAIL
    to: Optional[str] = None
    subject: Optional[str] = None
    message: Optional[str] = None
    type: str = "info"


class EmailNotificationResponse(BaseModel):
    success: bool = True
    emailSent: bool
    message: str
    to: str
    subject: str
    messageId: Optional[str] = None
