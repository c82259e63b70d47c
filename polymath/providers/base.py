"""Abstract base for all chat-completion backends."""

from abc import ABC, abstractmethod

from config.config_loader import GenerationParameters, ProviderConfig
from polymath.models import ChatMessage


class ProviderError(Exception):
    """Raised when a backend call fails.

    status_code is the HTTP status when the endpoint answered with an error;
    timed_out is set when the request was aborted by a timeout.
    """

    def __init__(
        self,
        provider_name: str,
        message: str,
        status_code: int | None = None,
        timed_out: bool = False,
    ) -> None:
        self.provider_name = provider_name
        self.status_code = status_code
        self.timed_out = timed_out
        super().__init__(f"[{provider_name}] {message}")


class ChatBackend(ABC):
    """One configured provider endpoint, wrapping a vendor SDK."""

    def __init__(self, provider: ProviderConfig) -> None:
        self._provider = provider

    def name(self) -> str:
        return self._provider.name

    @abstractmethod
    async def complete(
        self,
        model: str,
        messages: list[ChatMessage],
        parameters: GenerationParameters,
        json_mode: bool = False,
    ) -> str:
        """Send one chat request and return the first choice's text.

        Args:
            model: Model identifier understood by the endpoint.
            messages: Role-tagged messages, system messages first.
            parameters: Sampling parameters, already adjusted by the caller.
            json_mode: Ask the endpoint for a JSON object response.

        Returns:
            The completion text, or "" when the response carries none.

        Raises:
            ProviderError: On API failure or transport error.
        """
        ...
