"""Anthropic backend using the anthropic SDK Messages API."""

import logging

import anthropic as anthropic_sdk

from config.config_loader import GenerationParameters, ProviderConfig
from polymath.models import ChatMessage
from polymath.providers.base import ChatBackend, ProviderError

logger = logging.getLogger(__name__)

# Messages API accepts temperature in [0, 1] only.
_MAX_TEMPERATURE = 1.0

# No response_format on the Messages API; JSON mode is requested in the system text.
_JSON_INSTRUCTION = "Respond with a single JSON object only. No prose, no markdown fences."


class AnthropicBackend(ChatBackend):
    """Anthropic Claude via the anthropic SDK."""

    def __init__(self, provider: ProviderConfig) -> None:
        super().__init__(provider)
        self._client = anthropic_sdk.AsyncAnthropic(
            api_key=provider.api_key,
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
        # The Messages API takes system text as a parameter, not as a message.
        system_parts = [m.content for m in messages if m.role == "system"]
        if json_mode:
            system_parts.append(_JSON_INSTRUCTION)
        system = "\n\n".join(system_parts)
        request: dict = {
            "model": model,
            "messages": [{"role": m.role, "content": m.content} for m in messages if m.role != "system"],
            "max_tokens": parameters.max_tokens,
            "temperature": min(parameters.temperature, _MAX_TEMPERATURE),
            "top_p": parameters.top_p,
        }
        if system:
            request["system"] = system

        try:
            response = await self._client.messages.create(**request)
        except anthropic_sdk.APITimeoutError as exc:
            raise ProviderError(self.name(), "Request timed out", timed_out=True) from exc
        except anthropic_sdk.APIConnectionError as exc:
            raise ProviderError(self.name(), f"Network error: {exc}") from exc
        except anthropic_sdk.APIStatusError as exc:
            raise ProviderError(
                self.name(), f"HTTP {exc.status_code}: {exc.message}", status_code=exc.status_code
            ) from exc

        text_blocks = [b.text for b in (response.content or []) if b.type == "text"]

        if response.usage:
            logger.debug(
                "%s %s: %d tokens",
                self.name(),
                model,
                response.usage.input_tokens + response.usage.output_tokens,
            )

        return "\n".join(text_blocks)
