"""
Batch Scheduler - paced fan-out/fan-in execution of tasks.

Tasks are assigned to agents round-robin and executed in consecutive
groups of at most batch_size concurrent LLM calls, with a pause between
groups to stay under the service's rate limits. Individual failures are
recorded as failed TaskResults and never abort the batch.
"""

import asyncio
import inspect
import logging
import time
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional, Union

from .agents import describe_persona
from .backends.base import LLMBackend
from .errors import error_kind
from .models import Agent, AgentStatus, Task, TaskResult, TaskStatus

logger = logging.getLogger(__name__)

ResultCallback = Callable[[TaskResult], Union[None, Awaitable[None]]]


TASK_PROMPT = """You are a {persona_type} agent named "{agent_name}" working as part of a swarm.

{personality}

Your task: {description}
{context}
Please complete this task and provide concrete, actionable output. If this involves code, provide working implementations. If this involves analysis, provide specific findings and recommendations.

Begin your work:"""


def build_task_prompt(task: Task, agent: Agent, context: Optional[str] = None) -> str:
    """Build the persona-scoped prompt for one task."""
    return TASK_PROMPT.format(
        persona_type=agent.persona_type,
        agent_name=agent.display_name,
        personality=describe_persona(agent.persona_type),
        description=task.description,
        context=f"\nContext (overall objective): {context}\n" if context else "",
    )


def assign_round_robin(tasks: list[Task], agents: list[Agent]) -> list[tuple[Task, Agent]]:
    """Pair each task with agents[index % len(agents)]."""
    return [(task, agents[index % len(agents)]) for index, task in enumerate(tasks)]


class BatchStatus(str, Enum):
    """Overall status of a scheduler run."""
    COMPLETED = "completed"
    PARTIAL_FAILURE = "partial_failure"
    FAILED = "failed"


@dataclass
class BatchSummary:
    """Summary of a completed scheduler run."""
    status: BatchStatus
    total: int
    succeeded: int
    failed: int
    tokens_used: int

    @property
    def success_rate(self) -> float:
        """Fraction of tasks that succeeded."""
        if self.total == 0:
            return 0.0
        return self.succeeded / self.total


def summarize(results: list[TaskResult]) -> BatchSummary:
    succeeded = sum(1 for r in results if r.success)
    failed = len(results) - succeeded
    if failed == 0:
        status = BatchStatus.COMPLETED
    elif succeeded == 0:
        status = BatchStatus.FAILED
    else:
        status = BatchStatus.PARTIAL_FAILURE
    return BatchSummary(
        status=status,
        total=len(results),
        succeeded=succeeded,
        failed=failed,
        tokens_used=sum(r.tokens_used for r in results),
    )


class BatchScheduler:
    """
    Executes tasks against an LLM backend in bounded, paced groups.

    Each task is attempted exactly once. Results are returned in the
    original task order regardless of completion order.
    """

    def __init__(
        self,
        backend: LLMBackend,
        task_timeout: Optional[float] = None,
        prompt_builder: Callable[..., str] = build_task_prompt,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        on_result: Optional[ResultCallback] = None,
    ):
        """
        Initialize the scheduler.

        Args:
            backend: LLM backend used for every task
            task_timeout: Seconds allowed per LLM call (None = no limit)
            prompt_builder: Builds the prompt from (task, agent, context)
            sleep: Coroutine used for the inter-batch pause
            on_result: Optional callback after each result is recorded
        """
        self.backend = backend
        self.task_timeout = task_timeout
        self.prompt_builder = prompt_builder
        self.sleep = sleep
        self.on_result = on_result

    async def run(
        self,
        tasks: list[Task],
        agents: list[Agent],
        batch_size: int = 3,
        inter_batch_delay: float = 1.0,
        deadline: Optional[float] = None,
        context: Optional[str] = None,
    ) -> list[TaskResult]:
        """
        Execute all tasks.

        Args:
            tasks: Pending tasks from the planner
            agents: Persona pool; tasks are assigned round-robin
            batch_size: Maximum concurrent executions
            inter_batch_delay: Seconds to pause between groups
            deadline: Event loop time after which in-flight calls are
                abandoned and unstarted tasks fail with a Timeout
            context: Optional objective text embedded in each prompt

        Returns:
            One TaskResult per task, in task order
        """
        if batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {batch_size}")
        if not tasks:
            return []
        if not agents:
            raise ValueError("Cannot schedule tasks without agents")

        loop = asyncio.get_running_loop()
        assignments = assign_round_robin(tasks, agents)
        results: list[Optional[TaskResult]] = [None] * len(assignments)
        busy: Counter = Counter()
        group_count = (len(assignments) + batch_size - 1) // batch_size

        for group_number, start in enumerate(range(0, len(assignments), batch_size), 1):
            remaining = None if deadline is None else deadline - loop.time()
            if remaining is not None and remaining <= 0:
                logger.warning("Run deadline reached before batch %d/%d", group_number, group_count)
                break

            logger.info("Executing batch %d/%d", group_number, group_count)
            pending = {}
            for index in range(start, min(start + batch_size, len(assignments))):
                task, agent = assignments[index]
                coro = self._execute(task, agent, busy, context)
                pending[asyncio.create_task(coro)] = index

            try:
                done, not_done = await asyncio.wait(pending, timeout=remaining)
            except asyncio.CancelledError:
                # No LLM call may outlive a cancelled run
                for future in pending:
                    future.cancel()
                await asyncio.gather(*pending, return_exceptions=True)
                raise
            for future in done:
                results[pending[future]] = future.result()

            if not_done:
                logger.warning("Run deadline reached, abandoning %d in-flight task(s)", len(not_done))
                for future in not_done:
                    future.cancel()
                await asyncio.gather(*not_done, return_exceptions=True)
                for future in not_done:
                    task, agent = assignments[pending[future]]
                    results[pending[future]] = await self._record_timeout(
                        task, agent, "Run deadline exceeded while task was in flight"
                    )
                break

            if group_number < group_count and inter_batch_delay > 0:
                delay = inter_batch_delay
                if deadline is not None:
                    delay = max(0.0, min(delay, deadline - loop.time()))
                logger.debug("Rate limit delay %.2fs", delay)
                await self.sleep(delay)

        for index, (task, agent) in enumerate(assignments):
            if results[index] is None:
                results[index] = await self._record_timeout(
                    task, agent, "Run deadline exceeded before task started"
                )

        for agent in agents:
            agent.status = AgentStatus.DONE

        summary = summarize(results)
        logger.info("Completed %d/%d tasks successfully", summary.succeeded, summary.total)
        return results

    async def _execute(
        self, task: Task, agent: Agent, busy: Counter, context: Optional[str]
    ) -> TaskResult:
        """Run one task; every Exception becomes a failed TaskResult."""
        task.assigned_agent_id = agent.id
        task.transition(TaskStatus.IN_PROGRESS)
        busy[agent.id] += 1
        agent.status = AgentStatus.BUSY
        started = time.monotonic()
        try:
            prompt = self.prompt_builder(task, agent, context)
            response = await asyncio.wait_for(self.backend.send(prompt), timeout=self.task_timeout)
        except Exception as e:
            kind = error_kind(e)
            message = str(e) or f"Task timed out after {self.task_timeout} seconds"
            logger.warning("Task %s failed (%s): %s", task.id, kind, message)
            task.transition(TaskStatus.FAILED)
            result = TaskResult(
                task_id=task.id,
                agent_id=agent.id,
                output="",
                success=False,
                duration_ms=_elapsed_ms(started),
                error=message,
                error_kind=kind,
            )
        else:
            task.transition(TaskStatus.COMPLETED)
            result = TaskResult(
                task_id=task.id,
                agent_id=agent.id,
                output=response.text,
                success=True,
                duration_ms=_elapsed_ms(started),
                tokens_used=response.tokens_used,
            )
        finally:
            busy[agent.id] -= 1
            if busy[agent.id] == 0:
                agent.status = AgentStatus.READY

        await self._notify(result)
        return result

    async def _record_timeout(self, task: Task, agent: Agent, message: str) -> TaskResult:
        task.assigned_agent_id = task.assigned_agent_id or agent.id
        if not task.is_finished:
            task.transition(TaskStatus.FAILED)
        result = TaskResult(
            task_id=task.id,
            agent_id=agent.id,
            output="",
            success=False,
            duration_ms=0,
            error=message,
            error_kind="Timeout",
        )
        await self._notify(result)
        return result

    async def _notify(self, result: TaskResult) -> None:
        if self.on_result is None:
            return
        try:
            outcome = self.on_result(result)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            logger.warning("on_result callback failed for %s: %s", result.task_id, e)


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
