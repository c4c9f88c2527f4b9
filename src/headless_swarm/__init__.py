"""
Headless Swarm - objective decomposition and multi-persona execution

Splits a natural-language objective into a handful of tasks with one LLM
call, runs them across role-playing agent personas in bounded batches, and
synthesizes a single answer. Runs unattended in CI and containers, with a
lifecycle supervisor that guarantees a clean, deterministic exit.
"""

__version__ = "0.1.0"

from .agents import AgentPool
from .artifacts import ArtifactWriter
from .environment import EnvironmentProbe, detect_mode
from .errors import (
    AuthError,
    ConfigurationError,
    EmptyDecomposition,
    RateLimited,
    SwarmError,
    SynthesisError,
    TransportError,
)
from .lifecycle import LifecycleSupervisor
from .models import (
    Agent,
    ExecutionContext,
    ExecutionMode,
    SwarmResult,
    Task,
    TaskResult,
)
from .planner import TaskPlanner, parse_task_list
from .router import ExecutionRouter, RunOptions, execute
from .scheduler import BatchScheduler
from .synthesizer import Synthesizer

__all__ = [
    # Version
    "__version__",
    # Entry point
    "ExecutionRouter",
    "RunOptions",
    "execute",
    # Environment
    "EnvironmentProbe",
    "detect_mode",
    # Models
    "Agent",
    "ExecutionContext",
    "ExecutionMode",
    "SwarmResult",
    "Task",
    "TaskResult",
    # Pipeline
    "AgentPool",
    "TaskPlanner",
    "parse_task_list",
    "BatchScheduler",
    "Synthesizer",
    "ArtifactWriter",
    "LifecycleSupervisor",
    # Errors
    "SwarmError",
    "ConfigurationError",
    "AuthError",
    "RateLimited",
    "TransportError",
    "EmptyDecomposition",
    "SynthesisError",
]
