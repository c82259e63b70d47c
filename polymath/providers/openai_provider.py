"""OpenAI-compatible backend (OpenAI, Ollama and other /chat/completions servers)."""

import logging

import openai
from openai import AsyncOpenAI

from config.config_loader import GenerationParameters, ProviderConfig
from polymath.models import ChatMessage
from polymath.providers.base import ChatBackend, ProviderError

logger = logging.getLogger(__name__)

# The SDK refuses to build a client without a key; local servers ignore it.
_PLACEHOLDER_KEY = "ollama"


class OpenAICompatibleBackend(ChatBackend):
    """Chat completions via the openai SDK pointed at the provider's base URL."""

    def __init__(self, provider: ProviderConfig) -> None:
        super().__init__(provider)
        # Retries are owned by LLMClient, not the SDK.
        self._client = AsyncOpenAI(
            api_key=provider.api_key or _PLACEHOLDER_KEY,
            base_url=provider.base_url,
            max_retries=0,
        )

    async def complete(
        self,
        model: str,
        messages: list[ChatMessage],
        parameters: GenerationParameters,
        json_mode: bool = False,
    ) -> str:
        request: dict = {
            "model": model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "temperature": parameters.temperature,
            "top_p": parameters.top_p,
            "max_tokens": parameters.max_tokens,
            "stream": False,
        }
        if json_mode:
            request["response_format"] = {"type": "json_object"}

        try:
            response = await self._client.chat.completions.create(**request)
        except openai.APITimeoutError as exc:
            raise ProviderError(self.name(), "Request timed out", timed_out=True) from exc
        except openai.APIConnectionError as exc:
            raise ProviderError(self.name(), f"Network error: {exc}") from exc
        except openai.APIStatusError as exc:
            raise ProviderError(
                self.name(), f"HTTP {exc.status_code}: {exc.message}", status_code=exc.status_code
            ) from exc

        choice = response.choices[0] if response.choices else None
        content = choice.message.content if choice and choice.message else None

        if response.usage:
            logger.debug("%s %s: %s tokens", self.name(), model, response.usage.total_tokens)

        return content or ""
