"""
Configuration system for headless-swarm.

Provides SwarmConfig dataclass for run defaults, load_config for loading
configuration from .swarm/config.json, and apply_env_overrides for the
SWARM_* environment variables used in containers and CI.
"""

import json
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Mapping, Optional


DEFAULT_CONFIG_PATH = Path(".swarm/config.json")

# Strategy registry: centralized definitions with descriptions for help text
STRATEGIES = {
    "auto": "General-purpose roster: coordinator, architect, developer, analyst, tester (default)",
    "development": "Software delivery roster: architect, developers, QA engineer, code reviewer",
    "research": "Research roster: lead researcher, data analyst, research assistant",
    "analysis": "Analysis roster: senior analyst, data scientist, business analyst",
}

OUTPUT_FORMATS = ["text", "json"]

# Environment variable -> (field name, converter)
ENV_OVERRIDES = {
    "SWARM_STRATEGY": ("strategy", str),
    "SWARM_MAX_AGENTS": ("max_agents", int),
    "SWARM_BATCH_SIZE": ("batch_size", int),
    "SWARM_TIMEOUT": ("timeout", float),
    "SWARM_TASK_TIMEOUT": ("task_timeout", float),
    "SWARM_MODEL": ("llm_model", str),
    "SWARM_OUTPUT_DIR": ("output_dir", str),
}


def get_strategy_choices() -> list[str]:
    """Get list of known strategy names."""
    return list(STRATEGIES.keys())


def format_strategy_help(intro: str = "") -> str:
    """Format help text with all strategies described."""
    lines = [intro] if intro else []
    for name, desc in STRATEGIES.items():
        lines.append(f"  {name}: {desc}")
    return "\n".join(lines)


@dataclass
class SwarmConfig:
    """
    Defaults for a swarm run.

    Attributes:
        strategy: Persona roster to use (see STRATEGIES)
        max_agents: Number of personas in the pool (default: 5)
        batch_size: Maximum concurrent LLM calls per batch (default: 3)
        inter_batch_delay: Seconds to pause between batches (default: 1.0)
        timeout: Overall run deadline in seconds (default: 300)
        task_timeout: Per-task LLM call timeout in seconds, None to disable
        llm_model: Model used for all LLM calls
        llm_max_tokens: Max tokens per response (default: 4096)
        llm_temperature: Sampling temperature (default: 0.7)
        llm_timeout: Transport timeout for one request in seconds (default: 120)
        output_dir: Directory receiving run artifacts (default: ./swarm-runs)
        shutdown_timeout: Global shutdown deadline in seconds (default: 30)
        cleanup_timeout: Per-cleanup-callback timeout in seconds (default: 5)
    """

    strategy: str = "auto"
    max_agents: int = 5
    batch_size: int = 3
    inter_batch_delay: float = 1.0
    timeout: float = 300.0
    task_timeout: Optional[float] = None
    llm_model: str = "claude-sonnet-4-20250514"
    llm_max_tokens: int = 4096
    llm_temperature: float = 0.7
    llm_timeout: int = 120
    output_dir: str = "./swarm-runs"
    shutdown_timeout: float = 30.0
    cleanup_timeout: float = 5.0

    def __post_init__(self):
        """Validate configuration values."""
        if self.max_agents < 1:
            raise ValueError(f"Invalid max_agents: {self.max_agents}. Must be at least 1")
        if self.batch_size < 1:
            raise ValueError(f"Invalid batch_size: {self.batch_size}. Must be at least 1")
        if self.inter_batch_delay < 0:
            raise ValueError(
                f"Invalid inter_batch_delay: {self.inter_batch_delay}. Must not be negative"
            )
        if self.timeout <= 0:
            raise ValueError(f"Invalid timeout: {self.timeout}. Must be positive")
        if self.task_timeout is not None and self.task_timeout <= 0:
            raise ValueError(f"Invalid task_timeout: {self.task_timeout}. Must be positive")
        if not (0.0 <= self.llm_temperature <= 1.0):
            raise ValueError(
                f"Invalid llm_temperature: {self.llm_temperature}. "
                f"Must be between 0.0 and 1.0"
            )
        if self.cleanup_timeout > self.shutdown_timeout:
            raise ValueError(
                f"Invalid cleanup_timeout: {self.cleanup_timeout}. "
                f"Must not exceed shutdown_timeout ({self.shutdown_timeout})"
            )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SwarmConfig":
        """Create SwarmConfig from a dictionary, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {f.name: getattr(self, f.name) for f in fields(self)}


def apply_env_overrides(
    config: SwarmConfig, environ: Optional[Mapping[str, str]] = None
) -> SwarmConfig:
    """
    Overlay SWARM_* environment variables on a config.

    Args:
        config: Base configuration (not modified)
        environ: Environment mapping (defaults to os.environ)

    Returns:
        New SwarmConfig with overrides applied
    """
    environ = os.environ if environ is None else environ
    changes = {}
    for var, (name, convert) in ENV_OVERRIDES.items():
        raw = environ.get(var)
        if raw is None or raw.strip() == "":
            continue
        try:
            changes[name] = convert(raw.strip())
        except ValueError:
            raise ValueError(f"Invalid value for {var}: {raw!r}")
    return replace(config, **changes) if changes else config


def load_config(config_path: str | Path | None = None) -> SwarmConfig:
    """
    Load configuration from file or return defaults.

    Args:
        config_path: Path to config file. If None, looks for .swarm/config.json

    Returns:
        SwarmConfig with loaded or default values
    """
    config_path = DEFAULT_CONFIG_PATH if config_path is None else Path(config_path)

    if not config_path.exists():
        return SwarmConfig()

    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid config file {config_path}: {e}")

    if not isinstance(data, dict):
        raise ValueError(f"Invalid config file {config_path}: expected a JSON object")
    try:
        return SwarmConfig.from_dict(data)
    except TypeError as e:
        raise ValueError(f"Invalid config file {config_path}: {e}")


def save_config(config: SwarmConfig, config_path: str | Path | None = None) -> None:
    """
    Save configuration to file.

    Args:
        config: SwarmConfig to save
        config_path: Path to config file. If None, saves to .swarm/config.json
    """
    config_path = DEFAULT_CONFIG_PATH if config_path is None else Path(config_path)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(json.dumps(config.to_dict(), indent=2), encoding="utf-8")
