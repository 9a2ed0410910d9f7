"""
Model capability interface.

Planners, replanners and answer synthesis talk to a language model only
through :class:`ModelProvider`. Any OpenAI-compatible endpoint, a local
model, or a scripted fake in tests can stand behind it.
"""

from abc import ABC, abstractmethod
from typing import AsyncIterator, List, Optional

from ..models.conversation_types import ConversationMessage


class ModelProvider(ABC):
    """
    Abstract base class for model capabilities.

    Implementations are responsible for:
    - Translating ``ConversationMessage`` lists to the endpoint's format
    - Making the API call
    - Mapping endpoint failures to :class:`ProviderError`
    """

    @abstractmethod
    async def generate(self, messages: List[ConversationMessage]) -> ConversationMessage:
        """
        Produce a single assistant message.

        Raises:
            ProviderError: For transport, API or rate-limit failures
        """
        pass

    @abstractmethod
    def stream(self, messages: List[ConversationMessage]) -> AsyncIterator[str]:
        """
        Produce the assistant reply as text chunks.

        The returned iterator is lazy, finite and not restartable. Consumers
        must drain it or call ``aclose()`` to release the connection.

        Raises:
            ProviderError: For transport, API or rate-limit failures
        """
        pass

    def get_provider_name(self) -> str:
        """Class name without the 'Provider' suffix, lower-cased."""
        class_name = self.__class__.__name__
        if class_name.endswith("Provider"):
            return class_name[:-8].lower()
        return class_name.lower()


class ProviderError(Exception):
    """
    Base exception for model endpoint errors.

    Attributes:
        provider: Provider name
        status_code: HTTP status code if applicable
        retry_after: Seconds to wait before retry if applicable
        is_retryable: Whether this error should be retried
        original_error: The original exception if wrapped
    """

    def __init__(
        self,
        message: str,
        provider: str,
        status_code: Optional[int] = None,
        retry_after: Optional[float] = None,
        is_retryable: bool = False,
        original_error: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code
        self.retry_after = retry_after
        self.is_retryable = is_retryable
        self.original_error = original_error
