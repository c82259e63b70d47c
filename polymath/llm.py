"""Model invocation client: credential check, persona injection, timeout, retry with backoff."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import replace

from config.config_loader import AgentProfile, ProviderConfig
from polymath.models import ChatMessage
from polymath.providers.anthropic import AnthropicBackend
from polymath.providers.base import ChatBackend, ProviderError
from polymath.providers.openai_provider import OpenAICompatibleBackend

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 5
REQUEST_TIMEOUT_SEC = 60.0
BACKOFF_BASE_SEC = 1.0
BACKOFF_MAX_SEC = 30.0

# Backend kinds that cannot be called without an API key.
_CREDENTIAL_KINDS = {"openai", "anthropic"}

_TRANSIENT_MESSAGES = (
    "network error",
    "failed to fetch",
    "connection refused",
    "timeout",
    "timed out",
)

BACKEND_CLASSES: dict[str, type[ChatBackend]] = {
    "openai": OpenAICompatibleBackend,
    "ollama": OpenAICompatibleBackend,
    "anthropic": AnthropicBackend,
}


class LLMError(Exception):
    """Raised when a completion could not be produced for an agent."""

    def __init__(self, agent_name: str, message: str) -> None:
        self.agent_name = agent_name
        super().__init__(f"LLM Error [{agent_name}]: {message}")


def backoff_delay(attempt: int) -> float:
    """Delay in seconds after the given failed attempt (1-based): 1, 2, 4 ... capped at 30."""
    return min(BACKOFF_BASE_SEC * (2 ** (attempt - 1)), BACKOFF_MAX_SEC)


def is_retryable(exc: BaseException) -> bool:
    """Timeouts, HTTP 5xx, HTTP 429 and known transport failures are retryable."""
    if isinstance(exc, TimeoutError):
        return True
    if isinstance(exc, ProviderError):
        if exc.timed_out:
            return True
        if exc.status_code is not None:
            return exc.status_code == 429 or 500 <= exc.status_code < 600
    message = str(exc).lower()
    return any(fragment in message for fragment in _TRANSIENT_MESSAGES)


def build_backend(provider: ProviderConfig) -> ChatBackend:
    try:
        backend_cls = BACKEND_CLASSES[provider.kind]
    except KeyError:
        raise ProviderError(provider.name, f"Unsupported backend kind '{provider.kind}'") from None
    return backend_cls(provider)


class LLMClient:
    """Sends chat requests for agents, retrying transient failures."""

    def __init__(
        self,
        backend_factory: Callable[[ProviderConfig], ChatBackend] = build_backend,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        max_attempts: int = MAX_ATTEMPTS,
        timeout_sec: float = REQUEST_TIMEOUT_SEC,
    ) -> None:
        self._backend_factory = backend_factory
        self._sleep = sleep
        self._max_attempts = max_attempts
        self._timeout_sec = timeout_sec

    async def generate_completion(
        self,
        provider: ProviderConfig,
        agent: AgentProfile,
        messages: list[ChatMessage],
        json_mode: bool = False,
    ) -> str:
        """Generate a completion for a specific agent.

        Args:
            provider: Endpoint the agent is bound to.
            agent: Agent profile supplying model, parameters and persona.
            messages: Caller messages; the persona is prepended as a system message.
            json_mode: Request a JSON object and force temperature 0.

        Returns:
            The first choice's content, or "" if the response has none.

        Raises:
            ProviderError: If the provider needs an API key and has none (no request is made).
            LLMError: On a non-retryable failure or after exhausting all attempts.
        """
        if provider.kind in _CREDENTIAL_KINDS and not provider.api_key:
            raise ProviderError(provider.name, f"{provider.name} is missing an API key.")

        full_messages = list(messages)
        if agent.system_prompt:
            full_messages.insert(0, ChatMessage(role="system", content=agent.system_prompt))

        parameters = agent.parameters
        if json_mode:
            parameters = replace(parameters, temperature=0.0)

        backend = self._backend_factory(provider)
        last_error: Exception | None = None

        for attempt in range(1, self._max_attempts + 1):
            try:
                return await asyncio.wait_for(
                    backend.complete(agent.model, full_messages, parameters, json_mode=json_mode),
                    timeout=self._timeout_sec,
                )
            except TimeoutError as exc:
                last_error = ProviderError(
                    provider.name, f"Request timed out after {self._timeout_sec:g}s", timed_out=True
                )
                last_error.__cause__ = exc
            except Exception as exc:
                last_error = exc

            if not is_retryable(last_error):
                logger.error("%s: non-retryable error on attempt %d: %s", agent.name, attempt, last_error)
                break

            if attempt < self._max_attempts:
                delay = backoff_delay(attempt)
                logger.warning(
                    "%s: transient error (attempt %d/%d): %s. Retrying in %.0fs",
                    agent.name,
                    attempt,
                    self._max_attempts,
                    last_error,
                    delay,
                )
                await self._sleep(delay)
            else:
                logger.error("%s: giving up after %d attempts: %s", agent.name, attempt, last_error)

        raise LLMError(agent.name, str(last_error)) from last_error
