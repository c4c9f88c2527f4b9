"""
Abstract base class for pluggable LLM backends.

Defines the contract used by the planner, scheduler and synthesizer:
one prompt in, one response out, errors classified but never retried.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass
class LLMResponse:
    """
    Backend-agnostic response to a single prompt.

    Contains the generated text and the total tokens billed for the
    round trip (input + output).
    """

    text: str
    tokens_used: int = 0
    model: Optional[str] = None


class LLMBackend(ABC):
    """
    Abstract interface for LLM calls.

    Implementations issue one network call per send() and classify
    failures into the headless_swarm.errors taxonomy:

    - ConfigurationError: no usable credential (raised before any call)
    - AuthError: credential rejected by the service
    - RateLimited: 429 response
    - TransportError: network failures and unexpected responses

    Retry and pacing policy belongs to the caller.
    """

    @abstractmethod
    def check_credentials(self) -> None:
        """
        Verify that a credential is configured.

        Raises:
            ConfigurationError: If no usable credential can be resolved
        """
        ...

    @abstractmethod
    async def send(self, prompt: str) -> LLMResponse:
        """
        Send a prompt and wait for the complete response.

        Args:
            prompt: The full prompt text

        Returns:
            LLMResponse with text and token usage
        """
        ...

    async def close(self) -> None:
        """Release network resources. Registered as a shutdown cleanup."""
        return None
