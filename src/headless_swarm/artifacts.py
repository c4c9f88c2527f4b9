"""
Artifact writer for completed runs.

Each run produces three documents in <output_dir>/<execution_id>/:

- summary.json: execution id, objective, strategy, timing, success flag
- results.json: every TaskResult verbatim
- report.md: human-readable narrative with per-task breakdown
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from .models import Agent, ExecutionContext, Task, TaskResult

SUMMARY_FILE = "summary.json"
RESULTS_FILE = "results.json"
REPORT_FILE = "report.md"


@dataclass
class ArtifactLocation:
    """Where the artifacts of a run were written."""
    directory: Path
    files: list[str] = field(default_factory=list)

    def paths(self) -> list[Path]:
        return [self.directory / name for name in self.files]


def build_summary(
    context: ExecutionContext,
    agents: list[Agent],
    tasks: list[Task],
    results: list[TaskResult],
    success: bool,
    duration_ms: int,
) -> dict:
    """Machine-readable run summary."""
    return {
        "execution_id": context.id,
        "objective": context.objective,
        "strategy": context.strategy,
        "mode": context.mode.value,
        "started_at": context.started_at.isoformat(),
        "finished_at": datetime.now(timezone.utc).isoformat(),
        "duration_ms": duration_ms,
        "success": success,
        "agents": [a.to_dict() for a in agents],
        "tasks": [t.to_dict() for t in tasks],
        "succeeded": sum(1 for r in results if r.success),
        "failed": sum(1 for r in results if not r.success),
        "tokens_used": sum(r.tokens_used for r in results),
    }


def render_report(
    context: ExecutionContext,
    agents: list[Agent],
    tasks: list[Task],
    results: list[TaskResult],
    synthesis: str,
) -> str:
    """Human-readable markdown report: synthesis plus per-task breakdown."""
    agents_by_id = {a.id: a for a in agents}
    lines = [
        "# Swarm Execution Results",
        "",
        f"**Objective:** {context.objective}  ",
        f"**Strategy:** {context.strategy}  ",
        f"**Execution ID:** {context.id}  ",
        f"**Date:** {context.started_at.isoformat()}",
        "",
        "## Agents",
        "",
    ]
    lines.extend(f"- **{a.display_name}** ({a.persona_type})" for a in agents)
    lines.extend(["", "## Tasks", ""])
    lines.extend(f"{i}. {t.description} - {t.status.value}" for i, t in enumerate(tasks, 1))
    lines.extend(["", "## Synthesis", "", synthesis, "", "## Individual Task Results", ""])

    for number, (task, result) in enumerate(zip(tasks, results), 1):
        agent = agents_by_id.get(result.agent_id)
        agent_label = f"{agent.display_name} ({agent.persona_type})" if agent else result.agent_id
        lines.append(f"### Task {number}: {task.description}")
        lines.append("")
        lines.append(f"**Agent:** {agent_label}  ")
        lines.append(f"**Duration:** {result.duration_ms}ms  ")
        lines.append(f"**Tokens Used:** {result.tokens_used}")
        lines.append("")
        if result.success:
            lines.append(result.output)
        else:
            lines.append(f"**Failed ({result.error_kind or 'Error'}):** {result.error or 'no output'}")
        lines.extend(["", "---", ""])

    return "\n".join(lines)


class ArtifactWriter:
    """Persists the three documents of a run under an output directory."""

    def __init__(self, output_dir: str | Path = "./swarm-runs"):
        self.output_dir = Path(output_dir)

    def write(
        self,
        context: ExecutionContext,
        agents: list[Agent],
        tasks: list[Task],
        results: list[TaskResult],
        synthesis: str,
        success: bool,
        duration_ms: int,
    ) -> ArtifactLocation:
        """
        Write summary, detailed results and report.

        Returns:
            ArtifactLocation listing the written files
        """
        directory = self.output_dir / context.id
        directory.mkdir(parents=True, exist_ok=True)

        summary = build_summary(context, agents, tasks, results, success, duration_ms)
        (directory / SUMMARY_FILE).write_text(json.dumps(summary, indent=2), encoding="utf-8")
        (directory / RESULTS_FILE).write_text(
            json.dumps([r.to_dict() for r in results], indent=2), encoding="utf-8"
        )
        (directory / REPORT_FILE).write_text(
            render_report(context, agents, tasks, results, synthesis), encoding="utf-8"
        )

        return ArtifactLocation(
            directory=directory,
            files=[SUMMARY_FILE, RESULTS_FILE, REPORT_FILE],
        )
