"""
LLM backend implementation using the Anthropic API.

Requires ANTHROPIC_API_KEY (or an explicit api_key). The SDK's built-in
retries are disabled so rate limits surface immediately to the scheduler.
"""

import logging
import os
from typing import Optional

from anthropic import (
    APIConnectionError,
    APIStatusError,
    AsyncAnthropic,
    AuthenticationError,
    PermissionDeniedError,
    RateLimitError,
)

from ..errors import AuthError, ConfigurationError, RateLimited, TransportError
from .base import LLMBackend, LLMResponse

logger = logging.getLogger(__name__)

API_KEY_VAR = "ANTHROPIC_API_KEY"
PLACEHOLDER_KEY = "test-key"
DEFAULT_MODEL = "claude-sonnet-4-20250514"


def _retry_after(error: RateLimitError) -> Optional[float]:
    """Extract the retry-after header (seconds) from a 429 response."""
    response = getattr(error, "response", None)
    if response is None:
        return None
    value = response.headers.get("retry-after")
    try:
        return float(value) if value is not None else None
    except ValueError:
        return None


class AnthropicAPIBackend(LLMBackend):
    """
    LLM backend using Anthropic API directly.

    Requires ANTHROPIC_API_KEY environment variable unless api_key is given.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_MODEL,
        max_tokens: int = 4096,
        temperature: float = 0.7,
        timeout: float = 120,
        base_url: Optional[str] = None,
        environ: Optional[dict] = None,
    ):
        """
        Initialize the API backend.

        Args:
            api_key: Explicit API key (default: ANTHROPIC_API_KEY)
            model: Model to use (default: claude-sonnet-4-20250514)
            max_tokens: Maximum tokens per response
            temperature: Sampling temperature
            timeout: Transport timeout in seconds for one request
            base_url: Alternate API endpoint (default: SDK default)
            environ: Environment mapping (defaults to os.environ)
        """
        self.environ = os.environ if environ is None else environ
        self.api_key = api_key
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.timeout = timeout
        self.base_url = base_url
        self._client: Optional[AsyncAnthropic] = None

    def _resolve_key(self) -> Optional[str]:
        key = self.api_key or self.environ.get(API_KEY_VAR)
        return key.strip() if key and key.strip() else None

    def check_credentials(self) -> None:
        key = self._resolve_key()
        if key is None:
            raise ConfigurationError(
                f"No API key configured. Set {API_KEY_VAR} in the environment."
            )
        test_mode = self.environ.get("SWARM_ENV", "").lower() == "test"
        if key == PLACEHOLDER_KEY and not test_mode:
            raise ConfigurationError(
                f"{API_KEY_VAR} is set to a placeholder value. Provide a real key."
            )

    def _get_client(self) -> AsyncAnthropic:
        if self._client is None:
            self._client = AsyncAnthropic(
                api_key=self._resolve_key(),
                base_url=self.base_url,
                timeout=self.timeout,
                max_retries=0,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None

    async def send(self, prompt: str) -> LLMResponse:
        self.check_credentials()
        client = self._get_client()
        try:
            response = await client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                messages=[{"role": "user", "content": prompt}],
            )
        except (AuthenticationError, PermissionDeniedError) as e:
            raise AuthError(f"Anthropic API rejected the credential: {e}") from e
        except RateLimitError as e:
            raise RateLimited(f"Anthropic API rate limit hit: {e}", retry_after=_retry_after(e)) from e
        except APIStatusError as e:
            raise TransportError(
                f"Anthropic API error {e.status_code}: {e}", status_code=e.status_code
            ) from e
        except APIConnectionError as e:
            raise TransportError(f"Could not reach Anthropic API: {e}") from e

        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
        usage = response.usage
        tokens = (usage.input_tokens or 0) + (usage.output_tokens or 0) if usage else 0
        logger.debug("Received %d chars (%d tokens) from %s", len(text), tokens, response.model)
        return LLMResponse(text=text, tokens_used=tokens, model=response.model)
