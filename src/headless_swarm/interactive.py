"""
Interactive collaborator: hands the objective to the claude CLI.

Used when a person is at the terminal. The CLI inherits stdin/stdout so
the user drives the session directly; this module only starts it, bounds
it with the run timeout, and reports the outcome.
"""

import asyncio
import logging
import time
from typing import Optional

from .errors import InteractiveError, InteractiveUnavailable
from .models import ExecutionContext, ExecutionMode, SwarmResult

logger = logging.getLogger(__name__)


class InteractiveLauncher:
    """Starts an interactive claude session for an objective."""

    def __init__(self, command: str = "claude", extra_args: Optional[list[str]] = None):
        """
        Args:
            command: CLI executable to launch
            extra_args: Additional arguments placed before the objective
        """
        self.command = command
        self.extra_args = extra_args or []

    def build_command(self, objective: str) -> list[str]:
        return [self.command, *self.extra_args, objective]

    async def launch(self, context: ExecutionContext) -> SwarmResult:
        """
        Run the interactive session to completion.

        Raises:
            InteractiveUnavailable: If the CLI is not installed
            InteractiveError: If the session exceeds the run timeout
        """
        started = time.monotonic()
        cmd = self.build_command(context.objective)
        logger.info("Starting interactive session: %s", self.command)
        try:
            process = await asyncio.create_subprocess_exec(*cmd)
        except FileNotFoundError as e:
            raise InteractiveUnavailable(
                f"{self.command} CLI not found. Install it or re-run with --headless."
            ) from e

        try:
            returncode = await asyncio.wait_for(process.wait(), timeout=context.timeout)
        except TimeoutError:
            raise InteractiveError(
                f"Interactive session timed out after {context.timeout} seconds"
            )
        finally:
            # Timed out or cancelled by a signal
            if process.returncode is None:
                logger.info("Stopping interactive session (pid %s)", process.pid)
                process.kill()
                await process.wait()

        success = returncode == 0
        return SwarmResult(
            execution_id=context.id,
            objective=context.objective,
            success=success,
            duration_ms=int((time.monotonic() - started) * 1000),
            agent_count=0,
            synthesis=(
                "Interactive session completed"
                if success
                else f"Interactive session exited with code {returncode}"
            ),
            mode=ExecutionMode.INTERACTIVE,
            strategy=context.strategy,
            error=None if success else f"{self.command} exited with code {returncode}",
        )
