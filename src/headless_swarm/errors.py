"""
Error taxonomy for headless-swarm.

Fatal errors abort a run before any further LLM spend. Transient errors are
contained per task by the scheduler and recorded on the TaskResult.
"""

from typing import Optional


class SwarmError(Exception):
    """Base class for all headless-swarm errors."""

    @property
    def kind(self) -> str:
        """Short classification used in TaskResult.error_kind."""
        return type(self).__name__


class ConfigurationError(SwarmError):
    """Raised when required configuration (e.g. the API key) is missing."""


class NonInteractiveError(ConfigurationError):
    """Raised when interactive mode is forced without an attached terminal."""


class AuthError(SwarmError):
    """Raised when the LLM service rejects the configured credential."""


class RateLimited(SwarmError):
    """Raised on a 429 response from the LLM service."""

    def __init__(self, message: str, retry_after: Optional[float] = None):
        super().__init__(message)
        self.retry_after = retry_after


class TransportError(SwarmError):
    """Raised for network-level failures and unexpected service responses."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class EmptyDecomposition(SwarmError):
    """Raised when the planner recovers zero tasks from the model response."""

    def __init__(self, message: str, raw_response: str = ""):
        super().__init__(message)
        self.raw_response = raw_response


class SynthesisError(SwarmError):
    """Raised when the final synthesis call fails."""


class InteractiveError(SwarmError):
    """Raised when the interactive session fails or times out."""


class InteractiveUnavailable(InteractiveError):
    """Raised when the interactive CLI is not installed."""


# Errors that end a run instead of being recorded against a single task
FATAL_ERRORS = (ConfigurationError, AuthError, EmptyDecomposition)


def error_kind(error: BaseException) -> str:
    """Classify any exception for reporting."""
    if isinstance(error, SwarmError):
        return error.kind
    if isinstance(error, TimeoutError):
        return "Timeout"
    return type(error).__name__
