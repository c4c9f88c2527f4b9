"""
Detection of the execution environment.

Decides whether a run collaborates with a person at a terminal or runs
headless (CI pipelines, containers, background jobs). Precedence is:

1. Explicit override (flag or SWARM_HEADLESS)
2. CI/container markers in the environment
3. Whether stdout is attached to a TTY
"""

import os
import sys
from typing import Mapping, Optional, TextIO, Union

from .errors import NonInteractiveError
from .models import ExecutionMode


TRUTHY = {"1", "true", "yes", "on"}

# Markers that are set to a boolean-ish value
FLAG_MARKERS = [
    "CI",
    "CONTINUOUS_INTEGRATION",
    "GITHUB_ACTIONS",
    "GITLAB_CI",
    "BUILDKITE",
    "DOCKER_CONTAINER",
]

# Markers whose mere presence (non-empty value) identifies the host
PRESENCE_MARKERS = [
    "JENKINS_URL",
    "KUBERNETES_SERVICE_HOST",
    "ECS_CONTAINER_METADATA_URI",
    "AWS_BATCH_JOB_ID",
]

HEADLESS_OVERRIDE_VAR = "SWARM_HEADLESS"
ENVIRONMENT_VAR = "SWARM_ENV"

Override = Union[ExecutionMode, str, bool, None]


def is_truthy(value: Optional[str]) -> bool:
    """Interpret an environment variable value as a boolean."""
    return value is not None and value.strip().lower() in TRUTHY


def _normalize_override(override: Override) -> Optional[ExecutionMode]:
    if override is None:
        return None
    if isinstance(override, ExecutionMode):
        return override
    if isinstance(override, bool):
        return ExecutionMode.HEADLESS if override else None
    value = override.strip().lower()
    if not value or value == "auto":
        return None
    try:
        return ExecutionMode(value)
    except ValueError:
        raise ValueError(
            f"Invalid execution mode: {override}. "
            f"Valid options: {[m.value for m in ExecutionMode]}"
        )


class EnvironmentProbe:
    """
    Inspects the process context and yields a single ExecutionMode.

    The probe reads nothing but its inputs, so tests can pass a fake
    environment mapping and stdout.
    """

    def __init__(
        self,
        environ: Optional[Mapping[str, str]] = None,
        stdout: Optional[TextIO] = None,
    ):
        """
        Args:
            environ: Environment mapping (defaults to os.environ)
            stdout: Stream checked for a terminal (defaults to sys.stdout)
        """
        self.environ = os.environ if environ is None else environ
        self._stdout = stdout

    @property
    def stdout(self) -> Optional[TextIO]:
        return self._stdout if self._stdout is not None else sys.stdout

    def is_tty(self) -> bool:
        """Whether an interactive terminal is attached to stdout."""
        stream = self.stdout
        if stream is None:
            return False
        try:
            return bool(stream.isatty())
        except (AttributeError, ValueError, OSError):
            # Closed or replaced streams count as non-interactive
            return False

    def markers(self) -> list[str]:
        """Names of the CI/container markers present in the environment."""
        found = [name for name in FLAG_MARKERS if is_truthy(self.environ.get(name))]
        found.extend(name for name in PRESENCE_MARKERS if self.environ.get(name))
        if self.environ.get(ENVIRONMENT_VAR, "").strip().lower() == "production":
            found.append(ENVIRONMENT_VAR)
        return found

    def headless_forced(self) -> bool:
        """Whether SWARM_HEADLESS asks for headless execution."""
        return is_truthy(self.environ.get(HEADLESS_OVERRIDE_VAR))

    def detect(self, override: Override = None) -> ExecutionMode:
        """
        Determine the execution mode.

        Args:
            override: Explicit mode request. HEADLESS (or True/"headless")
                always wins. INTERACTIVE is only honored when a terminal
                is attached.

        Returns:
            ExecutionMode for this process

        Raises:
            NonInteractiveError: If interactive mode is forced without a TTY
        """
        requested = _normalize_override(override)

        if requested is ExecutionMode.HEADLESS or self.headless_forced():
            return ExecutionMode.HEADLESS

        if requested is ExecutionMode.INTERACTIVE:
            if not self.is_tty():
                raise NonInteractiveError(
                    "Interactive mode was requested but no terminal is attached. "
                    "Re-run with --headless or from an interactive shell."
                )
            return ExecutionMode.INTERACTIVE

        if self.markers():
            return ExecutionMode.HEADLESS

        return ExecutionMode.INTERACTIVE if self.is_tty() else ExecutionMode.HEADLESS


def detect_mode(override: Override = None) -> ExecutionMode:
    """Convenience function to detect the mode of the current process."""
    return EnvironmentProbe().detect(override)
