"""
Backend interfaces for headless-swarm.

This package defines the abstract LLMBackend interface and its
Anthropic API implementation.
"""

from ..config import SwarmConfig
from .base import LLMBackend, LLMResponse
from .llm import AnthropicAPIBackend


def create_backend(config: SwarmConfig | None = None) -> LLMBackend:
    """Create the LLM backend described by a config."""
    config = config or SwarmConfig()
    return AnthropicAPIBackend(
        model=config.llm_model,
        max_tokens=config.llm_max_tokens,
        temperature=config.llm_temperature,
        timeout=config.llm_timeout,
    )


__all__ = [
    # Abstract interface
    "LLMBackend",
    # Data models
    "LLMResponse",
    # Implementations
    "AnthropicAPIBackend",
    "create_backend",
]
