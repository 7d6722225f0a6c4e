# fiscalai/models/llm.py

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict

# Mensagem no formato da API Chat Completion
OpenAIMessage = Dict[str, str]


class LLMResponseMessage(BaseModel):
    role: Literal["assistant"]
    content: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


class LLMError(BaseModel):
    code: Optional[str] = None
    message: str
    type: Optional[str] = None
    param: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


class LLMResponseChoice(BaseModel):
    index: int
    message: LLMResponseMessage
    finish_reason: Optional[str] = None  # stop, length, content_filter


class LLMResponse(BaseModel):
    """Estrutura simplificada/validada da resposta da API OpenAI ChatCompletion."""

    id: str
    object: str
    created: int
    model: str
    choices: List[LLMResponseChoice] = []
    usage: Optional[Dict[str, int]] = None
    error: Optional[LLMError] = None

    model_config = ConfigDict(extra="ignore")

    @property
    def content(self) -> Optional[str]:
        if not self.choices:
            return None
        return self.choices[0].message.content
