"""Tests for the OpenAI-compatible model provider."""

from unittest.mock import AsyncMock, Mock

import httpx
import openai
import pytest

from ops_agent.config.settings import AgentSettings
from ops_agent.models.conversation_types import ConversationMessage, TurnRole
from ops_agent.providers import ProviderError
from ops_agent.providers.openai import OpenAIChatProvider
from ops_agent.providers.errors import ErrorMapper


class FakeStream:
    def __init__(self, pieces, error=None):
        self.pieces = pieces
        self.error = error
        self.closed = False

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for piece in self.pieces:
            yield Mock(choices=[Mock(delta=Mock(content=piece))])
        if self.error is not None:
            raise self.error

    async def close(self):
        self.closed = True


def completion(text="All systems nominal"):
    response = Mock()
    response.choices = [Mock(message=Mock(content=text), finish_reason="stop")]
    response.usage = Mock(prompt_tokens=12, completion_tokens=4)
    return response


@pytest.fixture
def mock_openai_client():
    client = Mock()
    client.chat.completions.create = AsyncMock(return_value=completion())
    return client


@pytest.mark.unit
class TestOpenAIChatProvider:

    @pytest.mark.asyncio
    async def test_generate(self, mock_openai_client):
        provider = OpenAIChatProvider(model="gpt-4o-mini", client=mock_openai_client, temperature=0.1)

        reply = await provider.generate([
            ConversationMessage.system("You are terse."),
            ConversationMessage.user("status?"),
        ])

        assert reply.role == TurnRole.ASSISTANT
        assert reply.content == "All systems nominal"
        assert reply.metadata["finish_reason"] == "stop"
        kwargs = mock_openai_client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["temperature"] == 0.1
        assert kwargs["messages"][1] == {"role": "user", "content": "status?"}

    @pytest.mark.asyncio
    async def test_generate_maps_errors(self, mock_openai_client):
        request = httpx.Request("POST", "https://api.test/v1/chat/completions")
        mock_openai_client.chat.completions.create.side_effect = openai.APIConnectionError(request=request)
        provider = OpenAIChatProvider(client=mock_openai_client)

        with pytest.raises(ProviderError) as exc_info:
            await provider.generate([ConversationMessage.user("hi")])

        assert exc_info.value.is_retryable is True
        assert exc_info.value.provider == "openai"

    @pytest.mark.asyncio
    async def test_stream(self, mock_openai_client):
        stream = FakeStream(["Checking", " logs"])
        mock_openai_client.chat.completions.create = AsyncMock(return_value=stream)
        provider = OpenAIChatProvider(client=mock_openai_client)

        chunks = [c async for c in provider.stream([ConversationMessage.user("hi")])]

        assert chunks == ["Checking", " logs"]
        assert stream.closed
        assert mock_openai_client.chat.completions.create.call_args.kwargs["stream"] is True

    @pytest.mark.asyncio
    async def test_stream_error_is_mapped(self, mock_openai_client):
        stream = FakeStream(["partial"], error=RuntimeError("Rate limit reached"))
        mock_openai_client.chat.completions.create = AsyncMock(return_value=stream)
        provider = OpenAIChatProvider(client=mock_openai_client)

        with pytest.raises(ProviderError) as exc_info:
            async for _ in provider.stream([ConversationMessage.user("hi")]):
                pass

        assert exc_info.value.is_retryable is True
        assert stream.closed

    @pytest.mark.asyncio
    async def test_missing_api_key(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        provider = OpenAIChatProvider(api_key=None)

        with pytest.raises(ProviderError):
            await provider.generate([ConversationMessage.user("hi")])

    def test_from_settings(self):
        settings = AgentSettings(
            model_name="qwen-plus",
            model_api_key="sk-test",
            model_base_url="https://dashscope.test/v1/",
            model_temperature=0.0,
        )
        provider = OpenAIChatProvider.from_settings(settings)

        assert provider.model == "qwen-plus"
        assert provider.temperature == 0.0
        assert provider.client.base_url.host == "dashscope.test"


@pytest.mark.unit
class TestErrorMapper:

    def test_retryable_status_codes(self):
        assert ErrorMapper.is_retryable(Mock(status_code=429))
        assert ErrorMapper.is_retryable(Mock(status_code=503))
        assert not ErrorMapper.is_retryable(ValueError("invalid model"))

    def test_categorize(self):
        assert ErrorMapper.categorize(ProviderError("x", provider="p", status_code=401)) == "authentication"
        assert ErrorMapper.categorize(ProviderError("x", provider="p", status_code=429)) == "rate_limit"
        assert ErrorMapper.categorize(ProviderError("x", provider="p", status_code=502)) == "server_error"
