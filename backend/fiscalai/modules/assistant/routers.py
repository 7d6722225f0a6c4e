from fastapi import APIRouter, Depends

from fiscalai.core.security import ApiKeyDependency
from .models import AssistantCommandRequest, AssistantCommandResponse
from .services import AssistantService, get_assistant_service

assistant_router = APIRouter(dependencies=[ApiKeyDependency])


@assistant_router.post(
    "/command",
    response_model=AssistantCommandResponse,
    summary="Translate a natural-language request into a structured fiscal action",
    tags=["Assistant"],
)
async def process_assistant_command_endpoint(
    command_in: AssistantCommandRequest,
    service: AssistantService = Depends(get_assistant_service),
):
    """
    Returns the suggested action, a pt-BR explanation and whether the user must
    confirm it. The action is never executed here.
    """
    return await service.process_command(command_in)
