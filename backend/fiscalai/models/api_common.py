# fiscalai/models/api_common.py

from typing import Annotated, Optional

from pydantic import BaseModel, BeforeValidator

# ObjectId do Mongo exposto como string nos modelos
PyObjectId = Annotated[str, BeforeValidator(str)]


class ErrorResponse(BaseModel):
    """Envelope de erro devolvido por todos os endpoints."""
    status: str = "error"
    success: bool = False
    message: str
    error_code: str
    field: Optional[str] = None
