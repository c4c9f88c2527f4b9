"""
Data model for a swarm run.

ExecutionContext and TaskResult are immutable once created. Task and Agent
carry status that only the BatchScheduler mutates.
"""

import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


def generate_id(prefix: str) -> str:
    """Generate a short unique id such as ``exec-1a2b3c4d``."""
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


class ExecutionMode(str, Enum):
    """How the run collaborates with its host process."""
    INTERACTIVE = "interactive"
    HEADLESS = "headless"


class AgentStatus(str, Enum):
    READY = "ready"
    BUSY = "busy"
    DONE = "done"


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


# Allowed forward transitions; terminal states have none
_TASK_TRANSITIONS = {
    TaskStatus.PENDING: {TaskStatus.IN_PROGRESS, TaskStatus.FAILED},
    TaskStatus.IN_PROGRESS: {TaskStatus.COMPLETED, TaskStatus.FAILED},
    TaskStatus.COMPLETED: set(),
    TaskStatus.FAILED: set(),
}


@dataclass
class Agent:
    """A persona used to frame task prompts. Not a process or a thread."""
    id: str
    display_name: str
    persona_type: str
    status: AgentStatus = AgentStatus.READY

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "display_name": self.display_name,
            "persona_type": self.persona_type,
            "status": self.status.value,
        }


@dataclass
class Task:
    """A single unit of work produced by the planner."""
    id: str
    description: str
    status: TaskStatus = TaskStatus.PENDING
    assigned_agent_id: Optional[str] = None

    def transition(self, new_status: TaskStatus) -> None:
        """
        Move the task to a new status.

        Raises:
            ValueError: If the transition would move the task backwards
        """
        if new_status not in _TASK_TRANSITIONS[self.status]:
            raise ValueError(
                f"Illegal task transition for {self.id}: "
                f"{self.status.value} -> {new_status.value}"
            )
        self.status = new_status

    @property
    def is_finished(self) -> bool:
        return self.status in (TaskStatus.COMPLETED, TaskStatus.FAILED)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "description": self.description,
            "status": self.status.value,
            "assigned_agent_id": self.assigned_agent_id,
        }


@dataclass(frozen=True)
class TaskResult:
    """Outcome of exactly one attempt at one task."""
    task_id: str
    agent_id: str
    output: str
    success: bool
    duration_ms: int
    tokens_used: int = 0
    error: Optional[str] = None
    error_kind: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class ExecutionContext:
    """Immutable description of one invocation, owned by the router."""
    id: str
    objective: str
    mode: ExecutionMode
    strategy: str
    max_agents: int
    per_task_timeout: Optional[float]
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    batch_size: int = 3
    timeout: Optional[float] = None


@dataclass
class SwarmResult:
    """Terminal artifact of one run."""
    execution_id: str
    objective: str
    success: bool
    duration_ms: int
    agent_count: int
    task_results: list[TaskResult] = field(default_factory=list)
    synthesis: str = ""
    output_location: Optional[str] = None
    mode: ExecutionMode = ExecutionMode.HEADLESS
    strategy: str = "auto"
    error: Optional[str] = None

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.task_results if r.success)

    @property
    def tokens_used(self) -> int:
        return sum(r.tokens_used for r in self.task_results)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON output."""
        return {
            "execution_id": self.execution_id,
            "objective": self.objective,
            "success": self.success,
            "mode": self.mode.value,
            "strategy": self.strategy,
            "duration_ms": self.duration_ms,
            "agent_count": self.agent_count,
            "task_results": [r.to_dict() for r in self.task_results],
            "synthesis": self.synthesis,
            "output_location": self.output_location,
            "tokens_used": self.tokens_used,
            "error": self.error,
        }
