"""
CLI entry point for Headless Swarm.
"""

import asyncio
import json
import logging
from dataclasses import fields
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .backends import create_backend
from .config import (
    OUTPUT_FORMATS,
    SwarmConfig,
    apply_env_overrides,
    format_strategy_help,
    get_strategy_choices,
    load_config,
    save_config,
)
from .environment import EnvironmentProbe
from .errors import SwarmError
from .lifecycle import LifecycleSupervisor
from .models import SwarmResult
from .planner import TaskPlanner
from .router import ExecutionRouter, RunOptions


console = Console()


def _configure_logging(verbose: bool, out: Console) -> None:
    """Send library logging through rich; warnings only unless --verbose."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=out, show_path=False, markup=False)],
        force=True,
    )
    # The SDK's HTTP client is chatty at DEBUG
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _load_settings(config_path: str | None) -> SwarmConfig:
    return apply_env_overrides(load_config(config_path))


def _print_error(out: Console, error: Exception) -> None:
    kind = error.kind if isinstance(error, SwarmError) else type(error).__name__
    out.print(f"\n[bold red]Error:[/] {kind}: {escape(str(error))}")


def _emit_result(result: SwarmResult, output_format: str, output_file: str | None, out: Console) -> None:
    """Print the result in the requested format and optionally save it."""
    payload = json.dumps(result.to_dict(), indent=2)
    if output_file:
        Path(output_file).write_text(payload, encoding="utf-8")
        out.print(f"[dim]Result written to {output_file}[/]")

    if output_format == "json":
        click.echo(payload)
        return

    out.print("\n" + "━" * 50)
    out.print(Panel(escape(result.synthesis or "(no synthesis)"), title="Synthesis", border_style="blue"))
    succeeded = result.succeeded
    total = len(result.task_results)
    if result.success:
        out.print(f"[bold green]✅ {succeeded}/{total} tasks succeeded[/]")
    else:
        out.print(f"[bold yellow]⚠️  Run failed: {escape(result.error or 'see task results')}[/]")
    if result.output_location:
        out.print(f"[dim]Artifacts: {result.output_location}[/]")


@click.group()
@click.version_option(version=__version__, prog_name="swarm")
def main():
    """Headless Swarm - decompose an objective and run it across LLM personas."""
    pass


@main.command()
@click.argument("objective")
@click.option(
    "--strategy",
    type=click.Choice(get_strategy_choices(), case_sensitive=False),
    default=None,
    help="Persona roster for the swarm (default: auto).",
)
@click.option("--max-agents", type=int, default=None, help="Number of agent personas (default: 5).")
@click.option("--batch-size", type=int, default=None, help="Maximum concurrent LLM calls (default: 3).")
@click.option("--timeout", type=float, default=None, help="Overall run deadline in seconds (default: 300).")
@click.option("--task-timeout", type=float, default=None, help="Timeout per LLM call in seconds.")
@click.option(
    "--headless/--interactive",
    "headless",
    default=None,
    help="Force headless execution, or request an interactive session (requires a terminal).",
)
@click.option(
    "--output-format",
    type=click.Choice(OUTPUT_FORMATS),
    default="text",
    show_default=True,
    help="Result format on stdout. json implies headless execution.",
)
@click.option("--output-file", type=click.Path(dir_okay=False), default=None, help="Also write the JSON result here.")
@click.option("--output-dir", default=None, help="Directory for run artifacts (default: ./swarm-runs).")
@click.option("--config", "config_path", default=None, help="Path to config file (default: .swarm/config.json).")
@click.option("--model", default=None, help="Model for all LLM calls.")
@click.option("-v", "--verbose", is_flag=True, help="Show debug logging.")
def run(
    objective: str,
    strategy: str | None,
    max_agents: int | None,
    batch_size: int | None,
    timeout: float | None,
    task_timeout: float | None,
    headless: bool | None,
    output_format: str,
    output_file: str | None,
    output_dir: str | None,
    config_path: str | None,
    model: str | None,
    verbose: bool,
):
    """Run an objective through the swarm.

    \b
    Execution mode:
      Headless is selected automatically without a terminal, in CI, or in
      containers (CI, GITHUB_ACTIONS, KUBERNETES_SERVICE_HOST, ...).
      SWARM_HEADLESS=true or --headless forces it. Headless runs exit
      with 0 on success and 1 otherwise.
    """
    # Keep stdout machine-readable in json mode
    out = Console(stderr=True) if output_format == "json" else console
    _configure_logging(verbose, out)
    if output_format == "json" and headless is None:
        headless = True

    out.print(
        Panel.fit(
            f"[bold blue]🐝 Headless Swarm v{__version__}[/]",
            border_style="blue",
        )
    )

    try:
        swarm_config = _load_settings(config_path)
        if model:
            swarm_config.llm_model = model

        mode_override = None if headless is None else ("headless" if headless else "interactive")
        probe = EnvironmentProbe()
        mode = probe.detect(mode_override)
        supervisor = LifecycleSupervisor(
            mode=mode,
            shutdown_timeout=swarm_config.shutdown_timeout,
            cleanup_timeout=swarm_config.cleanup_timeout,
        )
        router = ExecutionRouter(
            config=swarm_config,
            probe=probe,
            supervisor=supervisor,
            console=out,
        )
        options = RunOptions(
            mode=mode_override,
            strategy=strategy,
            max_agents=max_agents,
            batch_size=batch_size,
            timeout=timeout,
            task_timeout=task_timeout,
            output_format=output_format,
            output_dir=output_dir,
        )
        result = asyncio.run(_supervised_run(supervisor, router.run(objective, options)))
    except KeyboardInterrupt:
        out.print("\n[yellow]Interrupted by user[/]")
        raise SystemExit(1)
    except (SwarmError, ValueError) as e:
        _print_error(out, e)
        raise SystemExit(1)

    if result is None:
        out.print(f"\n[yellow]Swarm execution interrupted ({supervisor.reason})[/]")
        raise SystemExit(supervisor.exit_code if supervisor.exit_code is not None else 1)

    _emit_result(result, output_format, output_file, out)

    if supervisor.should_auto_exit():
        exit_code = supervisor.exit_code
        raise SystemExit(exit_code if exit_code is not None else int(not result.success))
    if not result.success:
        raise SystemExit(1)


async def _supervised_run(supervisor: LifecycleSupervisor, main) -> SwarmResult | None:
    """Run under the supervisor; registered cleanups run once even when it did not auto-exit."""
    result = None
    try:
        result = await supervisor.guard(main)
        return result
    finally:
        if not supervisor.is_shutting_down:
            await supervisor.shutdown("exit", 0 if result is not None and result.success else 1)


async def _plan(planner: TaskPlanner, objective: str):
    try:
        return await planner.decompose(objective)
    finally:
        await planner.backend.close()


@main.command()
@click.argument("objective")
@click.option("--config", "config_path", default=None, help="Path to config file (default: .swarm/config.json).")
def decompose(objective: str, config_path: str | None):
    """Decompose an objective into tasks (dry run, no tasks executed)."""
    console.print(f"\n[bold]🔍 Decomposing:[/] {escape(objective)}\n")

    try:
        swarm_config = _load_settings(config_path)
        backend = create_backend(swarm_config)
        backend.check_credentials()
        planner = TaskPlanner(backend, timeout=swarm_config.task_timeout or swarm_config.timeout)
        tasks = asyncio.run(_plan(planner, objective))
    except (SwarmError, ValueError) as e:
        _print_error(console, e)
        raise SystemExit(1)

    console.print(f"[cyan]Tasks:[/] {len(tasks)}")
    for number, task in enumerate(tasks, 1):
        console.print(f"  [bold cyan]{number}.[/] {escape(task.description)}")


@main.command("config")
@click.option("--config", "config_path", default=None, help="Path to config file (default: .swarm/config.json).")
@click.option(
    "--set",
    "assignments",
    multiple=True,
    metavar="KEY=VALUE",
    help="Update a setting and save the config file. May be repeated.",
)
def config_command(config_path: str | None, assignments: tuple[str, ...]):
    """Show or update run defaults."""
    try:
        swarm_config = load_config(config_path)
        if assignments:
            data = swarm_config.to_dict()
            known = {f.name for f in fields(SwarmConfig)}
            for assignment in assignments:
                key, sep, raw = assignment.partition("=")
                key = key.strip().replace("-", "_")
                if not sep or key not in known:
                    raise ValueError(f"Invalid setting: {assignment!r}")
                data[key] = _coerce(raw.strip(), data[key])
            swarm_config = SwarmConfig.from_dict(data)
            save_config(swarm_config, config_path)
            console.print("[green]✓ Configuration saved[/]")
    except ValueError as e:
        _print_error(console, e)
        raise SystemExit(1)

    table = Table(title="Swarm configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    for key, value in swarm_config.to_dict().items():
        table.add_row(key, str(value))
    console.print(table)
    console.print(f"\n[dim]{format_strategy_help('Strategies:')}[/]")


def _coerce(raw: str, current):
    """Convert a --set value to the type of the current setting."""
    if raw.lower() in ("none", "null"):
        return None
    if isinstance(current, bool):
        return raw.lower() in ("1", "true", "yes", "on")
    if isinstance(current, int):
        return int(raw)
    if isinstance(current, float) or current is None:
        try:
            return float(raw)
        except ValueError:
            if current is None:
                raise ValueError(f"Expected a number, got {raw!r}")
            raise
    return raw


if __name__ == "__main__":
    main()
