"""Configuration loading from environment variables and agentmem.toml."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib
from pathlib import Path

_DEFAULT_TASKS_DIR = Path.home() / ".agentmem" / "tasks"
_CONFIG_FILENAME = "agentmem.toml"


@dataclass
class ServerConfig:
    """Identity reported by the ``info`` command."""

    name: str = "agent-memory"
    version: str = "1.0.0"


@dataclass
class AgentMemConfig:
    """Top-level configuration."""

    server: ServerConfig = field(default_factory=ServerConfig)
    tasks_dir: Path = _DEFAULT_TASKS_DIR
    log_level: str = "INFO"


def _expand(path: str) -> Path:
    return Path(path).expanduser()


def load_config(config_path: Path | None = None) -> AgentMemConfig:
    """Load configuration from environment variables and optional agentmem.toml.

    Priority: environment variables > agentmem.toml > defaults.
    """
    file_data: dict = {}
    if config_path and config_path.exists():
        file_data = tomllib.loads(config_path.read_text())
    else:
        # Search current dir and ~/.agentmem/
        for candidate in [Path.cwd() / _CONFIG_FILENAME, Path.home() / ".agentmem" / _CONFIG_FILENAME]:
            if candidate.exists():
                file_data = tomllib.loads(candidate.read_text())
                break

    server_data = file_data.get("server", {})

    return AgentMemConfig(
        server=ServerConfig(
            name=server_data.get("name", "agent-memory"),
            version=server_data.get("version", "1.0.0"),
        ),
        tasks_dir=_expand(
            os.getenv("AGENTMEM_TASKS_DIR")
            or file_data.get("tasks_dir")
            or str(_DEFAULT_TASKS_DIR)
        ),
        log_level=os.getenv("AGENTMEM_LOG_LEVEL") or file_data.get("log_level") or "INFO",
    )
