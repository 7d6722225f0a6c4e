from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, Field


class AssistantActionType(str, Enum):
    EMITIR_NFSE = "emitir_nfse"
    CONSULTAR_STATUS = "consultar_status"
    LISTAR_NOTAS = "listar_notas"
    VERIFICAR_CONEXAO = "verificar_conexao"
    EXPLICAR_ERRO_FISCAL = "explicar_erro_fiscal"
    EXPLICAR = "explicar"


class ConversationMessage(BaseModel):
    role: Optional[str] = None
    content: Optional[str] = None

    @property
    def forwardable(self) -> bool:
        return self.role in FORWARDED_ROLES and bool(self.content)


FORWARDED_ROLES = ("user", "assistant")


class AssistantCommandRequest(BaseModel):
    message: Optional[str] = None
    company_id: Optional[str] = Field(None, validation_alias=AliasChoices("companyId", "company_id"))
    history: List[ConversationMessage] = Field(
        default_factory=list, validation_alias=AliasChoices("history", "conversationHistory")
    )


class AssistantAction(BaseModel):
    type: AssistantActionType
    data: Dict[str, Any] = Field(default_factory=dict)


class AssistantCommandResponse(BaseModel):
    success: bool = True
    action: Optional[AssistantAction] = None
    explanation: str
    requiresConfirmation: bool = False
