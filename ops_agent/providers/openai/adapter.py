import os
from typing import AsyncIterator, List, Optional

from openai import AsyncOpenAI

from ..base import ModelProvider, ProviderError
from ..errors import ErrorMapper
from ...config import constants as c
from ...models.conversation_types import ConversationMessage, TurnRole
from ...observability.logging import AgentLogger

logger = AgentLogger("model")


class OpenAIChatProvider(ModelProvider):
    """Chat Completions client for any OpenAI-compatible endpoint.

    ``base_url`` points the client at DeepSeek, DashScope, vLLM or another
    compatible server. The SDK client is created lazily on first use.
    """

    def __init__(
        self,
        model: str = c.DEFAULT_MODEL_NAME,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        temperature: float = c.DEFAULT_MODEL_TEMPERATURE,
        timeout: float = c.DEFAULT_MODEL_TIMEOUT_SECONDS,
        client: Optional[AsyncOpenAI] = None,
        provider_name: str = "openai",
    ):
        self.model = model
        self.temperature = temperature
        self.provider_name = provider_name
        self._api_key = api_key or os.getenv("OPENAI_API_KEY")
        self._base_url = base_url
        self._timeout = timeout
        self._client = client

    @classmethod
    def from_settings(cls, settings) -> "OpenAIChatProvider":
        return cls(
            model=settings.model_name,
            api_key=settings.model_api_key,
            base_url=settings.model_base_url,
            temperature=settings.model_temperature,
            timeout=settings.model_timeout_s,
        )

    @property
    def client(self) -> AsyncOpenAI:
        """Lazy initialization of the SDK client."""
        if self._client is None:
            if not self._api_key:
                raise ProviderError(
                    "Model API key not configured (set OPS_AGENT_MODEL_API_KEY or OPENAI_API_KEY)",
                    provider=self.provider_name,
                )
            self._client = AsyncOpenAI(
                api_key=self._api_key,
                base_url=self._base_url,
                timeout=self._timeout,
            )
        return self._client

    def get_provider_name(self) -> str:
        return self.provider_name

    async def generate(self, messages: List[ConversationMessage]) -> ConversationMessage:
        with logger.track("generate", model=self.model):
            try:
                response = await self.client.chat.completions.create(
                    model=self.model,
                    messages=[m.to_openai() for m in messages],
                    temperature=self.temperature,
                )
            except ProviderError:
                raise
            except Exception as e:
                raise ErrorMapper.map_openai_error(e, self.provider_name) from e

            choice = response.choices[0]
            usage = getattr(response, "usage", None)
            if usage is not None:
                logger.debug(
                    "Token usage",
                    model=self.model,
                    prompt_tokens=getattr(usage, "prompt_tokens", None),
                    completion_tokens=getattr(usage, "completion_tokens", None),
                )
            return ConversationMessage(
                role=TurnRole.ASSISTANT,
                content=choice.message.content or "",
                metadata={"finish_reason": choice.finish_reason, "model": self.model},
            )

    async def stream(self, messages: List[ConversationMessage]) -> AsyncIterator[str]:
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[m.to_openai() for m in messages],
                temperature=self.temperature,
                stream=True,
            )
        except ProviderError:
            raise
        except Exception as e:
            raise ErrorMapper.map_openai_error(e, self.provider_name) from e

        chunks = 0
        try:
            async for chunk in response:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta
                if delta is not None and delta.content:
                    chunks += 1
                    yield delta.content
        except Exception as e:
            raise ErrorMapper.map_openai_error(e, self.provider_name) from e
        finally:
            close = getattr(response, "close", None)
            if close is not None:
                await close()
            logger.debug("Stream finished", model=self.model, chunks=chunks)
