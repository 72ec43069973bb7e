"""
sabo/config.py - Local configuration management

Reads user config from a platform-appropriate config directory:
  - macOS/Linux: ~/.sabo/config.toml
  - Windows: %APPDATA%\\sabo\\config.toml

Example:
    [arena]
    server = "http://localhost:8000"
    host = "0.0.0.0"
    port = 8000
    db = "~/.sabo/arena.db"

    [workflow]
    strict_gating = false
    reset_on_tournament_change = false

    [logging]
    level = "INFO"
"""

import logging
import os
import sys
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

# ============================================================================
# Constants
# ============================================================================


def _get_config_dir() -> Path:
    """Get platform-appropriate config directory."""
    if sys.platform == "win32":
        appdata = os.environ.get("APPDATA")
        if appdata:
            return Path(appdata) / "sabo"
    return Path.home() / ".sabo"


CONFIG_DIR = _get_config_dir()
CONFIG_PATH = CONFIG_DIR / "config.toml"

DEFAULT_ARENA_URL = "http://localhost:8000"
DEFAULT_DB_PATH = "arena.db"
DEFAULT_PORT = 8000

# Overrides [arena] db for the server process
DB_ENV_VAR = "SABO_DB"


# ============================================================================
# Data Types
# ============================================================================


@dataclass
class ArenaConfig:
    """Where the arena server listens and stores reward configuration."""

    server: str = DEFAULT_ARENA_URL
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    db_path: str = DEFAULT_DB_PATH


@dataclass
class WorkflowConfig:
    """Gating policy for tournament setup wizards."""

    strict_gating: bool = False
    reset_on_tournament_change: bool = False


@dataclass
class SaboConfig:
    """Top-level configuration."""

    arena: ArenaConfig = field(default_factory=ArenaConfig)
    workflow: WorkflowConfig = field(default_factory=WorkflowConfig)
    log_level: str = "INFO"


# ============================================================================
# Parsing
# ============================================================================


def _expand(path: str | None) -> str | None:
    """Expand ~ in a path string."""
    if path is None:
        return None
    return str(Path(path).expanduser())


def _parse_arena(data: dict) -> ArenaConfig:
    defaults = ArenaConfig()
    return ArenaConfig(
        server=data.get("server", defaults.server),
        host=data.get("host", defaults.host),
        port=int(data.get("port", defaults.port)),
        db_path=_expand(data.get("db")) or defaults.db_path,
    )


def _parse_workflow(data: dict) -> WorkflowConfig:
    return WorkflowConfig(
        strict_gating=bool(data.get("strict_gating", False)),
        reset_on_tournament_change=bool(data.get("reset_on_tournament_change", False)),
    )


def load_config(path: Path | None = None) -> SaboConfig:
    """
    Read config from TOML file.

    Args:
        path: Override config file path (default: ~/.sabo/config.toml)

    Returns:
        SaboConfig. Missing file or bad TOML returns defaults.
    """
    config_path = path or CONFIG_PATH

    if not config_path.exists():
        return SaboConfig()

    try:
        with open(config_path, "rb") as f:
            raw = tomllib.load(f)
    except Exception as e:
        logger.warning(f"Failed to parse {config_path}: {e}")
        return SaboConfig()

    arena = ArenaConfig()
    if isinstance(raw.get("arena"), dict):
        arena = _parse_arena(raw["arena"])

    workflow = WorkflowConfig()
    if isinstance(raw.get("workflow"), dict):
        workflow = _parse_workflow(raw["workflow"])

    log_level = "INFO"
    if isinstance(raw.get("logging"), dict):
        log_level = str(raw["logging"].get("level", "INFO")).upper()

    return SaboConfig(arena=arena, workflow=workflow, log_level=log_level)


def resolve_db_path(config: SaboConfig | None = None) -> str:
    """DB path for the server: $SABO_DB wins over the config file."""
    env = os.environ.get(DB_ENV_VAR)
    if env:
        return _expand(env)
    return (config or SaboConfig()).arena.db_path
