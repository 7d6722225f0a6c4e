# fiscalai/services/llm_client.py

from datetime import datetime, timezone
from typing import List, Optional

import httpx
from fastapi import Depends
from loguru import logger

from fiscalai.core.config import Settings, get_settings
from fiscalai.models.llm import LLMError, LLMResponse, OpenAIMessage


class OpenAIClient:
    """Cliente da API Chat Completion da OpenAI.

    Falhas não levantam exceção: voltam como ``LLMResponse`` com ``error``
    preenchido, para o chamador decidir a mensagem ao usuário.
    """

    provider_name = "OpenAI"

    def __init__(
        self,
        api_key: Optional[str],
        api_url: str,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.api_url = api_url
        self.timeout = timeout
        self.transport = transport
        if not api_key:
            logger.warning("OpenAI API key not configured. Assistant features disabled.")

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    @staticmethod
    def _error_response(model: str, error_id: str, message: str, created: int = 0) -> LLMResponse:
        return LLMResponse(
            id=error_id, object="error", created=created, model=model, choices=[], error=LLMError(message=message)
        )

    async def get_completion(
        self,
        messages: List[OpenAIMessage],
        model: str,
        temperature: float = 0.7,
        max_tokens: int = 1000,
        json_mode: bool = False,
    ) -> LLMResponse:
        """Chama a API Chat Completion da OpenAI."""
        if not self.is_configured:
            logger.error("OpenAI Client not initialized (missing API key).")
            return self._error_response(model, "error-no-init", "OpenAI client not initialized.")

        payload = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if json_mode:
            payload["response_format"] = {"type": "json_object"}
        headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}

        log = logger.bind(service="LLMClient", provider=self.provider_name, model=model)
        log.info("Sending request to OpenAI Chat Completion...")
        # Só o início do prompt, para evitar PII no log
        if messages:
            log.debug(f"User Prompt Start: '{messages[-1].get('content', '')[:80]}...'")

        request_time = datetime.now(timezone.utc)
        created = int(request_time.timestamp())
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.api_url, headers=headers, json=payload)
            duration = (datetime.now(timezone.utc) - request_time).total_seconds()
            log.debug(f"OpenAI Response Status: {response.status_code}, Duration: {duration:.3f}s")
            response.raise_for_status()
            response_data = response.json()
        except httpx.HTTPStatusError as http_err:
            log.error(f"HTTP Error {http_err.response.status_code} from OpenAI: {http_err.response.text[:500]}")
            error_details = {"message": f"HTTP error {http_err.response.status_code} from OpenAI"}
            try:
                body_error = http_err.response.json().get("error", {})
            except ValueError:
                body_error = {}
            if isinstance(body_error, dict):
                error_details.update({k: v for k, v in body_error.items() if v is not None})
            return LLMResponse(
                id="error-http", object="error", created=created, model=model, choices=[],
                error=LLMError.model_validate(error_details),
            )
        except httpx.TimeoutException:
            log.error(f"Timeout error connecting to OpenAI API after {self.timeout}s.")
            return self._error_response(model, "error-timeout", "Request to OpenAI API timed out.", created)
        except httpx.RequestError as req_err:
            log.error(f"Network/Request error calling OpenAI: {req_err}")
            return self._error_response(model, "error-request", f"Network/Request error calling OpenAI: {req_err}", created)
        except ValueError as json_err:
            log.error(f"OpenAI returned a non-JSON body: {json_err}")
            return self._error_response(model, "error-validation", "OpenAI returned a non-JSON body.", created)

        try:
            llm_response = LLMResponse.model_validate(response_data)
        except ValueError as validation_error:
            log.exception(f"Error validating OpenAI response: {validation_error}")
            return self._error_response(
                model, "error-validation", f"Failed to parse/validate OpenAI response: {validation_error}", created
            )
        if not llm_response.choices and not llm_response.error:
            log.warning("OpenAI response OK but missing 'choices' data.")
            llm_response.error = LLMError(message="OpenAI returned no choices.")

        log.info(
            f"OpenAI request successful. Finish Reason: "
            f"{llm_response.choices[0].finish_reason if llm_response.choices else 'N/A'}"
        )
        return llm_response


def get_llm_client(settings: Settings = Depends(get_settings)) -> OpenAIClient:
    return OpenAIClient(api_key=settings.OPENAI_API_KEY, api_url=settings.OPENAI_API_URL)
