"""
Execution router: the entry point of a swarm run.

Picks an execution mode, then drives plan -> batch-execute -> synthesize,
persists the artifacts and hands the result to the lifecycle supervisor.
"""

import asyncio
import logging
import re
import time
from dataclasses import dataclass, fields, replace
from typing import Any, Awaitable, Callable, Optional, Union

from rich.console import Console
from rich.markup import escape

from .agents import AgentPool
from .artifacts import ArtifactWriter
from .backends import LLMBackend, create_backend
from .config import SwarmConfig
from .environment import EnvironmentProbe
from .errors import FATAL_ERRORS, InteractiveUnavailable, SynthesisError, error_kind
from .interactive import InteractiveLauncher
from .lifecycle import LifecycleSupervisor
from .models import ExecutionContext, ExecutionMode, SwarmResult, TaskResult, generate_id
from .planner import TaskPlanner
from .scheduler import BatchScheduler, summarize
from .synthesizer import PLACEHOLDER_SYNTHESIS, Synthesizer

logger = logging.getLogger(__name__)


MILLISECOND_OPTIONS = {
    "timeout_ms": "timeout",
    "inter_batch_delay_ms": "inter_batch_delay",
}


def _snake_case(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


@dataclass
class RunOptions:
    """
    Per-invocation options. Unset fields fall back to SwarmConfig.

    Attributes:
        mode: "headless", "interactive" or None to auto-detect
        strategy: Persona roster name
        max_agents: Number of personas
        batch_size: Maximum concurrent LLM calls
        timeout: Overall run deadline in seconds
        task_timeout: Per-call timeout in seconds
        inter_batch_delay: Seconds between batches
        output_format: "text" or "json" (consumed by the CLI)
        output_dir: Directory receiving the run artifacts
    """

    mode: Optional[str] = None
    strategy: Optional[str] = None
    max_agents: Optional[int] = None
    batch_size: Optional[int] = None
    timeout: Optional[float] = None
    task_timeout: Optional[float] = None
    inter_batch_delay: Optional[float] = None
    output_format: str = "text"
    output_dir: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RunOptions":
        """
        Build options from a dict with snake_case or camelCase keys.

        ``timeoutMs`` and ``interBatchDelayMs`` (or their snake_case forms)
        are accepted in milliseconds.
        """
        known = {f.name for f in fields(cls)}
        values = {}
        for key, value in data.items():
            name = _snake_case(key)
            if name in MILLISECOND_OPTIONS:
                if value is not None:
                    values[MILLISECOND_OPTIONS[name]] = value / 1000
            elif name in known:
                values[name] = value
        return cls(**values)


class ExecutionRouter:
    """
    Coordinates one swarm run.

    1. Detect the execution mode
    2. Interactive: hand off to the claude CLI
    3. Headless: build agents, decompose, execute in batches, synthesize
    4. Persist artifacts and notify the lifecycle supervisor
    """

    def __init__(
        self,
        config: Optional[SwarmConfig] = None,
        backend: Optional[LLMBackend] = None,
        probe: Optional[EnvironmentProbe] = None,
        supervisor: Optional[LifecycleSupervisor] = None,
        interactive: Optional[InteractiveLauncher] = None,
        writer: Optional[ArtifactWriter] = None,
        console: Optional[Console] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.config = config or SwarmConfig()
        self.backend = backend or create_backend(self.config)
        self.probe = probe or EnvironmentProbe()
        self.supervisor = supervisor
        self.interactive = interactive or InteractiveLauncher()
        self.writer = writer
        self.console = console or Console()
        self.pool = AgentPool()
        self._sleep = sleep

        if self.supervisor is not None:
            self.supervisor.register_cleanup(self.backend.close)

    def _create_context(
        self, objective: str, mode: ExecutionMode, options: RunOptions
    ) -> ExecutionContext:
        config = self.config
        max_agents = options.max_agents if options.max_agents is not None else config.max_agents
        batch_size = options.batch_size if options.batch_size is not None else config.batch_size
        if max_agents < 1:
            raise ValueError(f"max_agents must be at least 1, got {max_agents}")
        if batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {batch_size}")
        return ExecutionContext(
            id=generate_id("exec"),
            objective=objective,
            mode=mode,
            strategy=options.strategy or config.strategy,
            max_agents=max_agents,
            per_task_timeout=options.task_timeout or config.task_timeout,
            batch_size=batch_size,
            timeout=options.timeout or config.timeout,
        )

    async def run(
        self, objective: str, options: Union[RunOptions, dict, None] = None
    ) -> SwarmResult:
        """
        Execute the full swarm workflow.

        Returns:
            SwarmResult, possibly marked unsuccessful

        Raises:
            ConfigurationError: Missing credential or impossible mode request
            AuthError: Credential rejected during planning
            EmptyDecomposition: Planner recovered no tasks
        """
        if not objective or not objective.strip():
            raise ValueError("Objective must not be empty")
        if isinstance(options, dict):
            options = RunOptions.from_dict(options)
        options = options or RunOptions()

        try:
            mode = self.probe.detect(options.mode)
            context = self._create_context(objective.strip(), mode, options)
            self.console.print(f"\n[bold blue]🚀 Starting swarm execution:[/] {context.id}")
            self.console.print(f"   [dim]Objective:[/] {escape(context.objective)}")
            self.console.print(f"   [dim]Mode:[/] {mode.value} | [dim]Strategy:[/] {context.strategy}")

            result = None
            if mode is ExecutionMode.INTERACTIVE:
                result = await self._run_interactive(context)
                if result is None:
                    context = replace(context, mode=ExecutionMode.HEADLESS)
                    if self.supervisor is not None:
                        self.supervisor.set_mode(ExecutionMode.HEADLESS)
            if result is None:
                result = await self._run_headless(context, options)
        except Exception as e:
            if isinstance(e, FATAL_ERRORS):
                logger.error("Run aborted: %s: %s", error_kind(e), e)
            else:
                logger.exception("Unexpected failure during run")
            self.console.print(f"[bold red]❌ Execution failed:[/] {error_kind(e)}: {escape(str(e))}")
            if self.supervisor is not None:
                await self.supervisor.on_fault(e)
            raise

        if self.supervisor is not None:
            await self.supervisor.on_complete(result)
        return result

    async def _run_interactive(self, context: ExecutionContext) -> Optional[SwarmResult]:
        """Run the interactive collaborator; None means fall back to headless."""
        self.console.print("[bold]💻 Executing in interactive mode...[/]")
        try:
            return await self.interactive.launch(context)
        except InteractiveUnavailable as e:
            self.console.print(f"[yellow]⚠️  {escape(str(e))} Falling back to headless execution.[/]")
            return None

    async def _run_headless(self, context: ExecutionContext, options: RunOptions) -> SwarmResult:
        loop = asyncio.get_running_loop()
        started = time.monotonic()
        deadline = loop.time() + context.timeout if context.timeout else None

        # Fails before any network call when no key is configured
        self.backend.check_credentials()

        self.console.print("\n[bold]📌 Phase 1: Initializing agents...[/]")
        agents = self.pool.build(context.strategy, context.max_agents)
        for agent in agents:
            self.console.print(f"   🤖 {agent.display_name} [dim]({agent.persona_type})[/]")

        self.console.print("\n[bold]📌 Phase 2: Decomposing objective into tasks...[/]")
        planner = TaskPlanner(self.backend, timeout=context.per_task_timeout or context.timeout)
        tasks = await planner.decompose(context.objective)
        for number, task in enumerate(tasks, 1):
            self.console.print(f"   {number}. {escape(task.description)}")

        self.console.print(
            f"\n[bold]📌 Phase 3: Executing {len(tasks)} tasks with {len(agents)} agents...[/]"
        )
        inter_batch_delay = options.inter_batch_delay
        if inter_batch_delay is None:
            inter_batch_delay = self.config.inter_batch_delay
        scheduler = BatchScheduler(
            self.backend,
            task_timeout=context.per_task_timeout,
            sleep=self._sleep,
            on_result=self._report_result,
        )
        results = await scheduler.run(
            tasks,
            agents,
            batch_size=context.batch_size,
            inter_batch_delay=inter_batch_delay,
            deadline=deadline,
            context=context.objective,
        )
        summary = summarize(results)
        self.console.print(
            f"   [dim]Completed {summary.succeeded}/{summary.total} tasks successfully[/]"
        )

        self.console.print("\n[bold]📌 Phase 4: Synthesizing results...[/]")
        synthesizer = Synthesizer(self.backend, timeout=context.per_task_timeout)
        error = None
        synthesis_failed = False
        try:
            synthesis = await synthesizer.combine(context.objective, results, tasks, agents)
        except SynthesisError as e:
            self.console.print(f"   [yellow]⚠️  {escape(str(e))}[/]")
            synthesis = PLACEHOLDER_SYNTHESIS
            synthesis_failed = True
            error = str(e)

        success = summary.succeeded > 0 and not synthesis_failed
        if summary.succeeded == 0:
            error = error or "No task completed successfully"
        duration_ms = int((time.monotonic() - started) * 1000)

        self.console.print("\n[bold]📌 Phase 5: Writing artifacts...[/]")
        writer = self.writer or ArtifactWriter(options.output_dir or self.config.output_dir)
        location = writer.write(context, agents, tasks, results, synthesis, success, duration_ms)
        self.console.print(f"   [dim]Output saved to:[/] {location.directory}")

        status = "[bold green]✅ Swarm execution succeeded[/]" if success else "[bold yellow]⚠️  Swarm execution failed[/]"
        self.console.print(f"\n{status} in {duration_ms / 1000:.1f}s")
        self.console.print(f"   [dim]Tokens used: {summary.tokens_used}[/]")

        return SwarmResult(
            execution_id=context.id,
            objective=context.objective,
            success=success,
            duration_ms=duration_ms,
            agent_count=len(agents),
            task_results=results,
            synthesis=synthesis,
            output_location=str(location.directory),
            mode=context.mode,
            strategy=context.strategy,
            error=error,
        )

    def _report_result(self, result: TaskResult) -> None:
        if result.success:
            self.console.print(
                f"   ✓ {result.task_id} [dim]({result.agent_id}, {result.duration_ms}ms)[/]"
            )
        else:
            self.console.print(
                f"   [red]✗ {result.task_id} ({result.error_kind}): {escape(result.error or '')}[/]"
            )


def execute(
    objective: str,
    options: Union[RunOptions, dict, None] = None,
    **router_kwargs: Any,
) -> SwarmResult:
    """Convenience function to run the router synchronously."""
    router = ExecutionRouter(**router_kwargs)
    return asyncio.run(router.run(objective, options))
