"""
Task planner that asks the LLM to break an objective into subtasks.

The response is parsed as a plain list (numbered or bulleted). Parsing is
isolated in parse_task_list so a structured-output parser can replace it
without touching the scheduler or synthesizer.
"""

import asyncio
import logging
import re
from typing import Callable, Optional

from .backends.base import LLMBackend
from .errors import EmptyDecomposition, TransportError
from .models import Task, generate_id

logger = logging.getLogger(__name__)


DECOMPOSE_PROMPT = """As a project coordinator, break down this objective into concrete, actionable tasks:

Objective: {objective}

Create a list of 3-7 specific tasks that would accomplish this objective. Each task should be:
- Clear and actionable
- Assignable to a single agent
- Completable independently
- Contributing to the overall objective

Format your response as a numbered list of tasks, with each task on its own line.
Do not include any other text."""

# "1." / "12)" / "-" / "*" / "•" at the start of a line, optional indentation
LIST_ITEM_PATTERN = re.compile(r"^\s*(?:\d+[.)]|[-*•])\s+(.*\S)\s*$")


def parse_task_list(text: str) -> list[str]:
    """
    Extract list items from a model response.

    Lines that do not start with a list marker are ignored.

    Args:
        text: Raw response text

    Returns:
        Task descriptions in response order
    """
    items = []
    for line in text.splitlines():
        match = LIST_ITEM_PATTERN.match(line)
        if not match:
            continue
        description = match.group(1).strip()
        # Models often bold the task title
        if description.startswith("**"):
            description = description.replace("**", "").strip()
        if description:
            items.append(description)
    return items


class TaskPlanner:
    """
    Decomposes an objective into Tasks with a single LLM call.

    No retry at this layer: any failure is terminal for the run.
    """

    def __init__(
        self,
        backend: LLMBackend,
        timeout: Optional[float] = None,
        parser: Callable[[str], list[str]] = parse_task_list,
        max_tasks: Optional[int] = None,
    ):
        """
        Args:
            backend: LLM backend used for the decomposition call
            timeout: Seconds to wait for the response (None = no limit)
            parser: Turns response text into task descriptions
            max_tasks: Keep at most this many tasks (None = all)
        """
        self.backend = backend
        self.timeout = timeout
        self.parser = parser
        self.max_tasks = max_tasks

    def build_prompt(self, objective: str) -> str:
        return DECOMPOSE_PROMPT.format(objective=objective)

    async def decompose(self, objective: str) -> list[Task]:
        """
        Decompose an objective into pending tasks.

        Raises:
            EmptyDecomposition: If no list items could be recovered
            TransportError: If the call times out
        """
        prompt = self.build_prompt(objective)
        try:
            response = await asyncio.wait_for(self.backend.send(prompt), timeout=self.timeout)
        except TimeoutError:
            raise TransportError(f"Task decomposition timed out after {self.timeout} seconds")

        descriptions = self.parser(response.text)
        if self.max_tasks is not None:
            descriptions = descriptions[: self.max_tasks]
        if not descriptions:
            raise EmptyDecomposition(
                f"Could not find any tasks in response: {response.text[:200]}",
                raw_response=response.text,
            )

        tasks = [Task(id=generate_id("task"), description=d) for d in descriptions]
        logger.info("Decomposed objective into %d tasks", len(tasks))
        return tasks
