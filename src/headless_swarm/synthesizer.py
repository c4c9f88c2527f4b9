"""
Synthesizer that folds task outputs back into one narrative.
"""

import asyncio
import logging
from typing import Optional

from .backends.base import LLMBackend
from .errors import SynthesisError
from .models import Agent, Task, TaskResult

logger = logging.getLogger(__name__)


SYNTHESIS_PROMPT = """As a project coordinator, synthesize the following task results into a cohesive solution for the objective:

Original Objective: {objective}

Task Results:
{results}

Create a comprehensive synthesis that:
1. Integrates all task outputs into a unified solution
2. Identifies key findings and recommendations
3. Highlights any gaps or areas needing attention, including failed tasks
4. Provides clear next steps

Be specific and actionable in your synthesis."""

PLACEHOLDER_SYNTHESIS = (
    "Synthesis unavailable: the final summarization call failed. "
    "The individual task results below were collected successfully and are reported as-is."
)


def build_synthesis_prompt(
    objective: str,
    results: list[TaskResult],
    tasks: Optional[list[Task]] = None,
    agents: Optional[list[Agent]] = None,
) -> str:
    """
    Build the synthesis prompt.

    Successful outputs are included in full; failed tasks are listed with
    their failure kind so the model can call out the gaps.
    """
    tasks_by_id = {t.id: t for t in tasks or []}
    agents_by_id = {a.id: a for a in agents or []}

    sections = []
    for number, result in enumerate(results, 1):
        task = tasks_by_id.get(result.task_id)
        title = task.description if task else result.task_id
        agent = agents_by_id.get(result.agent_id)
        by = f"{agent.display_name} ({agent.persona_type})" if agent else result.agent_id

        if result.success:
            sections.append(f"Task {number}: {title}\nAgent: {by}\nOutput: {result.output}\n---")
        else:
            sections.append(
                f"Task {number}: {title}\nAgent: {by}\n"
                f"[FAILED: {result.error_kind or 'Error'}] {result.error or 'no output'}\n---"
            )

    return SYNTHESIS_PROMPT.format(
        objective=objective,
        results="\n\n".join(sections) if sections else "(no task results)",
    )


class Synthesizer:
    """Produces the final narrative for a run."""

    def __init__(self, backend: LLMBackend, timeout: Optional[float] = None):
        self.backend = backend
        self.timeout = timeout

    async def combine(
        self,
        objective: str,
        results: list[TaskResult],
        tasks: Optional[list[Task]] = None,
        agents: Optional[list[Agent]] = None,
    ) -> str:
        """
        Combine task results into one narrative addressing the objective.

        Args:
            objective: The original objective
            results: All task results, successful or not
            tasks: Tasks used to label results (optional)
            agents: Agents used to label results (optional)

        Returns:
            The synthesized narrative

        Raises:
            SynthesisError: If the LLM call fails for any reason
        """
        prompt = build_synthesis_prompt(objective, results, tasks, agents)
        try:
            response = await asyncio.wait_for(self.backend.send(prompt), timeout=self.timeout)
        except TimeoutError as e:
            raise SynthesisError(f"Synthesis timed out after {self.timeout} seconds") from e
        except Exception as e:
            raise SynthesisError(f"Synthesis failed: {e}") from e
        logger.info("Synthesis completed (%d chars)", len(response.text))
        return response.text
