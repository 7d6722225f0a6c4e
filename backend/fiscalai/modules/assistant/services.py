# fiscalai/modules/assistant/services.py

import json
import re
from typing import Any, Dict, List, Optional

from fastapi import Depends
from loguru import logger

from fiscalai.core.config import Settings, get_settings
from fiscalai.core.errors import ConfigurationError, UpstreamServerError, ValidationError
from fiscalai.models.llm import OpenAIMessage
from fiscalai.services.llm_client import OpenAIClient, get_llm_client
from .models import (
    AssistantAction,
    AssistantActionType,
    AssistantCommandRequest,
    AssistantCommandResponse,
    ConversationMessage,
)

HISTORY_WINDOW = 10
DEFAULT_EXPLANATION = "Processando sua solicitação..."

SYSTEM_PROMPT = """Você é um assistente fiscal especializado em ajudar empresas brasileiras a emitir notas fiscais de serviços (NFS-e).

Sua função é:
1. Entender comandos em português brasileiro
2. Retornar ações estruturadas em JSON
3. Explicar processos em linguagem natural

Ações disponíveis:
- emitir_nfse: Emitir uma nota fiscal de serviço
- consultar_status: Consultar status de uma nota fiscal
- listar_notas: Listar notas fiscais emitidas
- verificar_conexao: Verificar conexão com a prefeitura
- explicar_erro_fiscal: Explicar erros de conexão fiscal em linguagem natural
- explicar: Apenas explicar algo sem executar ação

IMPORTANTE:
- Você NUNCA deve chamar APIs fiscais diretamente
- Você apenas retorna JSON estruturado com a ação
- O backend executará a ação real
- Sempre retorne JSON válido
- Use português brasileiro para todas as explicações
- Quando o usuário perguntar sobre erros de conexão fiscal, use a ação "explicar_erro_fiscal"
- Explique erros técnicos de forma simples e clara em português
- Sugira soluções práticas para problemas de conexão

Formato de resposta (sempre JSON válido):
{
  "action": {
    "type": "tipo_da_acao" | null,
    "data": {
      "cliente_nome": "string",
      "cliente_documento": "string (CPF ou CNPJ)",
      "descricao_servico": "string",
      "valor": "number",
      "aliquota_iss": "number (percentual)",
      "municipio": "string"
    }
  },
  "explanation": "Explicação em português brasileiro",
  "requiresConfirmation": true/false
}

Se não entender o comando ou não houver ação clara, retorne:
{
  "action": null,
  "explanation": "Explicação do que você pode fazer",
  "requiresConfirmation": false
}"""

_FENCED_JSON = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")
_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


def extract_json_object(content: str) -> Dict[str, Any]:
    """JSON da resposta do modelo, aceitando blocos ```json``` ou texto ao redor."""
    candidates = [content]
    fenced = _FENCED_JSON.search(content)
    if fenced:
        candidates.append(fenced.group(1))
    bare = _JSON_OBJECT.search(content)
    if bare:
        candidates.append(bare.group(0))
    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except ValueError:
            continue
        if isinstance(parsed, dict):
            return parsed
    raise ValueError("Could not parse JSON from response")


def _parse_action(raw_action: Any) -> Optional[AssistantAction]:
    if not isinstance(raw_action, dict):
        return None
    try:
        action_type = AssistantActionType(raw_action.get("type"))
    except ValueError:
        logger.warning(f"Assistant returned unknown action type: {raw_action.get('type')!r}")
        return None
    data = raw_action.get("data")
    return AssistantAction(type=action_type, data=data if isinstance(data, dict) else {})


def parse_assistant_reply(content: str) -> AssistantCommandResponse:
    parsed = extract_json_object(content)
    action = _parse_action(parsed.get("action"))
    explanation = parsed.get("explanation")
    requires_confirmation = parsed.get("requiresConfirmation")
    if not isinstance(requires_confirmation, bool):
        requires_confirmation = action is not None and action.type is AssistantActionType.EMITIR_NFSE
    return AssistantCommandResponse(
        action=action,
        explanation=explanation if isinstance(explanation, str) and explanation else DEFAULT_EXPLANATION,
        requiresConfirmation=requires_confirmation,
    )


def build_messages(message: str, history: List[ConversationMessage], company_id: Optional[str] = None) -> List[OpenAIMessage]:
    system_prompt = SYSTEM_PROMPT
    if company_id:
        system_prompt += f"\n\nEmpresa selecionada: {company_id}"
    messages: List[OpenAIMessage] = [{"role": "system", "content": system_prompt}]
    for entry in history[-HISTORY_WINDOW:]:
        if entry.forwardable:
            messages.append({"role": entry.role, "content": entry.content})
    messages.append({"role": "user", "content": message})
    return messages


class AssistantService:
    """Traduz linguagem natural em uma ação estruturada. Nunca executa a ação."""

    def __init__(self, llm_client: OpenAIClient, model: str):
        self.llm_client = llm_client
        self.model = model

    async def process_command(self, request: AssistantCommandRequest) -> AssistantCommandResponse:
        if not request.message or not request.message.strip():
            raise ValidationError("Mensagem é obrigatória", code="MESSAGE_REQUIRED", field="message")
        if not self.llm_client.is_configured:
            raise ConfigurationError("OpenAI API key não configurada", code="API_KEY_NOT_CONFIGURED")

        log = logger.bind(service="AssistantService", company_id=request.company_id)
        messages = build_messages(request.message, request.history, request.company_id)
        response = await self.llm_client.get_completion(
            messages, model=self.model, temperature=0.7, max_tokens=1000, json_mode=True
        )
        if response.error or not response.content:
            detail = response.error.message if response.error else "Empty response from OpenAI"
            log.error(f"Assistant completion failed: {detail}")
            raise UpstreamServerError("Erro ao processar comando", code="ASSISTANT_ERROR")

        try:
            result = parse_assistant_reply(response.content)
        except ValueError as e:
            log.error(f"Could not parse assistant reply: {response.content[:200]}")
            raise UpstreamServerError("Erro ao processar comando", code="ASSISTANT_INVALID_RESPONSE") from e
        log.info(f"Assistant action: {result.action.type.value if result.action else None}")
        return result


async def get_assistant_service(
    settings: Settings = Depends(get_settings),
    llm_client: OpenAIClient = Depends(get_llm_client),
) -> AssistantService:
    return AssistantService(llm_client, settings.OPENAI_MODEL)
