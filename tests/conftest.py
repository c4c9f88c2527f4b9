"""
Shared pytest fixtures for headless_swarm tests.
"""

import asyncio
import inspect

import pytest

from headless_swarm.agents import AgentPool
from headless_swarm.backends.base import LLMBackend, LLMResponse
from headless_swarm.models import Task, TaskResult


DECOMPOSITION_TEXT = """1. Design the data model
2. Implement the storage layer
3. Write the HTTP handlers
4. Add integration tests
5. Document the API"""


class FakeBackend(LLMBackend):
    """
    Scripted LLMBackend that records prompts and peak concurrency.

    Each send() consumes the next scripted reply, or the default when the
    script is exhausted. A reply may be a string, an LLMResponse, an
    exception instance (raised), or a callable taking the prompt.
    """

    def __init__(self, replies=None, default="ok", delay: float = 0.0, credentials_error=None):
        self.replies = list(replies or [])
        self.default = default
        self.delay = delay
        self.credentials_error = credentials_error
        self.prompts: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.close_calls = 0

    def check_credentials(self) -> None:
        if self.credentials_error is not None:
            raise self.credentials_error

    async def send(self, prompt: str) -> LLMResponse:
        self.prompts.append(prompt)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            reply = self.replies.pop(0) if self.replies else self.default
            if callable(reply):
                reply = reply(prompt)
                if inspect.isawaitable(reply):
                    reply = await reply
            if self.delay:
                await asyncio.sleep(self.delay)
            if isinstance(reply, BaseException):
                raise reply
            if isinstance(reply, LLMResponse):
                return reply
            return LLMResponse(text=reply, tokens_used=10)
        finally:
            self.in_flight -= 1

    async def close(self) -> None:
        self.close_calls += 1


def swarm_responder(decomposition: str = DECOMPOSITION_TEXT, fail_tasks=(), synthesis="Final synthesis"):
    """
    Reply based on prompt type: decomposition, synthesis, or task work.

    Args:
        decomposition: Text returned for the decomposition prompt
        fail_tasks: Task descriptions whose prompts raise the paired error,
            given as (description, exception) tuples
        synthesis: Text or exception for the synthesis prompt
    """
    failures = dict(fail_tasks)

    def reply(prompt: str):
        if "break down this objective" in prompt:
            return decomposition
        if "synthesize the following task results" in prompt:
            return synthesis
        for description, error in failures.items():
            if f"Your task: {description}\n" in prompt:
                return error
        return LLMResponse(text="task output", tokens_used=25)

    return reply


def make_tasks(count: int) -> list[Task]:
    return [Task(id=f"task-{i}", description=f"Task number {i}") for i in range(1, count + 1)]


def make_result(task_id: str = "task-1", agent_id: str = "agent-0-coordinator", **kwargs) -> TaskResult:
    values = {"output": "done", "success": True, "duration_ms": 12, "tokens_used": 30}
    values.update(kwargs)
    return TaskResult(task_id=task_id, agent_id=agent_id, **values)


@pytest.fixture
def fake_backend():
    return FakeBackend()


@pytest.fixture
def agents():
    """Three research personas."""
    return AgentPool().build("research", 3)


@pytest.fixture
def tasks():
    return make_tasks(5)


@pytest.fixture
def sleeps():
    """Recording replacement for asyncio.sleep; returns the list of delays."""
    delays = []

    async def fake_sleep(delay):
        delays.append(delay)

    fake_sleep.delays = delays
    return fake_sleep


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every environment marker that influences mode detection."""
    for name in (
        "CI",
        "CONTINUOUS_INTEGRATION",
        "GITHUB_ACTIONS",
        "GITLAB_CI",
        "BUILDKITE",
        "DOCKER_CONTAINER",
        "JENKINS_URL",
        "KUBERNETES_SERVICE_HOST",
        "ECS_CONTAINER_METADATA_URI",
        "AWS_BATCH_JOB_ID",
        "SWARM_HEADLESS",
        "SWARM_ENV",
        "SWARM_EXIT_ON_COMPLETE",
        "SWARM_STRATEGY",
        "SWARM_MAX_AGENTS",
        "SWARM_BATCH_SIZE",
        "SWARM_TIMEOUT",
        "SWARM_TASK_TIMEOUT",
        "SWARM_MODEL",
        "SWARM_OUTPUT_DIR",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch
