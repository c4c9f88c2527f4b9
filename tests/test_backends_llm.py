"""
Tests for the Anthropic API backend.

The SDK client is patched; no network calls are made.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from anthropic import APIConnectionError, AuthenticationError, InternalServerError, RateLimitError

from headless_swarm.backends import create_backend
from headless_swarm.backends.base import LLMBackend, LLMResponse
from headless_swarm.backends.llm import AnthropicAPIBackend
from headless_swarm.config import SwarmConfig
from headless_swarm.errors import AuthError, ConfigurationError, RateLimited, TransportError


REQUEST = httpx.Request("POST", "https://api.anthropic.com/v1/messages")


def status_error(cls, status: int, headers=None):
    response = httpx.Response(status, headers=headers or {}, request=REQUEST)
    return cls("request failed", response=response, body=None)


def api_response(*texts, input_tokens=12, output_tokens=30):
    return SimpleNamespace(
        content=[SimpleNamespace(type="text", text=t) for t in texts],
        usage=SimpleNamespace(input_tokens=input_tokens, output_tokens=output_tokens),
        model="claude-sonnet-4-20250514",
    )


@pytest.fixture
def mock_client():
    with patch("headless_swarm.backends.llm.AsyncAnthropic") as mock_cls:
        client = MagicMock()
        client.messages.create = AsyncMock(return_value=api_response("Hello"))
        client.close = AsyncMock()
        mock_cls.return_value = client
        client.cls = mock_cls
        yield client


def backend(**kwargs):
    kwargs.setdefault("environ", {"ANTHROPIC_API_KEY": "sk-ant-real"})
    return AnthropicAPIBackend(**kwargs)


class TestCredentials:
    """Tests for check_credentials."""

    def test_implements_llm_backend(self):
        assert isinstance(backend(), LLMBackend)

    def test_missing_key_raises(self):
        with pytest.raises(ConfigurationError, match="ANTHROPIC_API_KEY"):
            backend(environ={}).check_credentials()

    def test_blank_key_raises(self):
        with pytest.raises(ConfigurationError):
            backend(environ={"ANTHROPIC_API_KEY": "   "}).check_credentials()

    def test_placeholder_key_rejected_outside_test_env(self):
        with pytest.raises(ConfigurationError, match="placeholder"):
            backend(environ={"ANTHROPIC_API_KEY": "test-key"}).check_credentials()

    def test_placeholder_key_allowed_in_test_env(self):
        backend(environ={"ANTHROPIC_API_KEY": "test-key", "SWARM_ENV": "test"}).check_credentials()

    def test_explicit_key_wins(self):
        backend(api_key="sk-explicit", environ={}).check_credentials()

    @pytest.mark.asyncio
    async def test_send_without_key_makes_no_call(self, mock_client):
        """A missing credential fails before the client is created."""
        with pytest.raises(ConfigurationError):
            await backend(environ={}).send("hi")

        mock_client.cls.assert_not_called()


class TestSend:
    """Tests for send()."""

    @pytest.mark.asyncio
    async def test_returns_text_and_tokens(self, mock_client):
        mock_client.messages.create.return_value = api_response("Hello ", "world")

        response = await backend().send("Say hello")

        assert isinstance(response, LLMResponse)
        assert response.text == "Hello world"
        assert response.tokens_used == 42
        assert response.model == "claude-sonnet-4-20250514"

    @pytest.mark.asyncio
    async def test_passes_model_settings(self, mock_client):
        await backend(model="claude-opus-4-20250514", max_tokens=100, temperature=0.2).send("prompt")

        kwargs = mock_client.messages.create.call_args.kwargs
        assert kwargs["model"] == "claude-opus-4-20250514"
        assert kwargs["max_tokens"] == 100
        assert kwargs["temperature"] == 0.2
        assert kwargs["messages"] == [{"role": "user", "content": "prompt"}]

    @pytest.mark.asyncio
    async def test_client_disables_sdk_retries(self, mock_client):
        await backend(timeout=30).send("prompt")

        kwargs = mock_client.cls.call_args.kwargs
        assert kwargs["max_retries"] == 0
        assert kwargs["timeout"] == 30
        assert kwargs["api_key"] == "sk-ant-real"

    @pytest.mark.asyncio
    async def test_client_is_reused(self, mock_client):
        llm = backend()
        await llm.send("one")
        await llm.send("two")

        assert mock_client.cls.call_count == 1

    @pytest.mark.asyncio
    async def test_ignores_non_text_blocks(self, mock_client):
        response = api_response("answer")
        response.content.insert(0, SimpleNamespace(type="tool_use", name="search"))
        mock_client.messages.create.return_value = response

        assert (await backend().send("prompt")).text == "answer"


class TestErrorMapping:
    """SDK exceptions are mapped onto the swarm error taxonomy."""

    @pytest.mark.asyncio
    async def test_authentication_error(self, mock_client):
        mock_client.messages.create.side_effect = status_error(AuthenticationError, 401)

        with pytest.raises(AuthError):
            await backend().send("prompt")

    @pytest.mark.asyncio
    async def test_rate_limit_with_retry_after(self, mock_client):
        mock_client.messages.create.side_effect = status_error(
            RateLimitError, 429, headers={"retry-after": "7"}
        )

        with pytest.raises(RateLimited) as exc_info:
            await backend().send("prompt")

        assert exc_info.value.retry_after == 7.0

    @pytest.mark.asyncio
    async def test_server_error(self, mock_client):
        mock_client.messages.create.side_effect = status_error(InternalServerError, 500)

        with pytest.raises(TransportError) as exc_info:
            await backend().send("prompt")

        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_connection_error(self, mock_client):
        mock_client.messages.create.side_effect = APIConnectionError(request=REQUEST)

        with pytest.raises(TransportError, match="Could not reach"):
            await backend().send("prompt")


class TestClose:
    @pytest.mark.asyncio
    async def test_close_releases_client(self, mock_client):
        llm = backend()
        await llm.send("prompt")
        await llm.close()
        await llm.close()

        mock_client.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_close_without_client_is_noop(self, mock_client):
        await backend().close()

        mock_client.close.assert_not_awaited()


class TestCreateBackend:
    def test_uses_config_settings(self):
        llm = create_backend(SwarmConfig(llm_model="claude-opus-4-20250514", llm_timeout=60))

        assert isinstance(llm, AnthropicAPIBackend)
        assert llm.model == "claude-opus-4-20250514"
        assert llm.timeout == 60
