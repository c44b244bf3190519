"""
Workspace configuration loading.

Configuration lives in ``.worky/config.yml`` as YAML. String values may
refer to environment variables as ``${VAR}`` or ``$VAR``; this is meant for
shared config files where ``workspace.name``, ``defaults.state`` or
``defaults.labels`` differ per team or machine (e.g.
``labels: ['team-${WORKY_TEAM}']``). A ``.env`` file in the working
directory is honoured through python-dotenv.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import find_dotenv, load_dotenv

from worky.core.item import DEFAULT_STATE
from worky.errors import SerializationError

CONFIG_VERSION = 1

WORKSPACE_ENV = "WORKY_WORKSPACE"


def expand_env_vars(value: Any) -> Any:
    """
    Recursively expand ${VAR} environment variables in config values.

    Args:
        value: Config value (string, dict, list, or other)

    Returns:
        Value with env vars expanded
    """
    if isinstance(value, str):
        pattern = r'\$\{([^}]+)\}|\$([A-Z_][A-Z0-9_]*)'

        def replace(match):
            var_name = match.group(1) or match.group(2)
            return os.environ.get(var_name, "")

        return re.sub(pattern, replace, value)

    elif isinstance(value, dict):
        return {k: expand_env_vars(v) for k, v in value.items()}

    elif isinstance(value, list):
        return [expand_env_vars(item) for item in value]

    return value


@dataclass
class ItemDefaults:
    """Default values stamped onto new work items."""

    state: str = DEFAULT_STATE
    labels: list[str] = field(default_factory=list)


@dataclass
class WorkspaceConfig:
    """Complete workspace configuration."""

    version: int = CONFIG_VERSION
    name: str | None = None
    defaults: ItemDefaults = field(default_factory=ItemDefaults)

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "workspace": {"name": self.name},
            "defaults": {
                "state": self.defaults.state,
                "labels": list(self.defaults.labels),
            },
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "WorkspaceConfig":
        """
        Build a config from parsed YAML, filling in defaults.

        Raises:
            SerializationError: If a section has the wrong shape
        """
        data = data or {}
        if not isinstance(data, dict):
            raise SerializationError("config must be a mapping")

        workspace = data.get("workspace") or {}
        defaults = data.get("defaults") or {}
        if not isinstance(workspace, dict) or not isinstance(defaults, dict):
            raise SerializationError("config sections 'workspace' and 'defaults' must be mappings")

        labels = defaults.get("labels") or []
        if not isinstance(labels, list):
            raise SerializationError("defaults.labels must be a list")

        version = data.get("version", CONFIG_VERSION)
        if not isinstance(version, int):
            raise SerializationError("version must be an integer")

        return cls(
            version=version,
            name=workspace.get("name"),
            defaults=ItemDefaults(
                state=str(defaults.get("state") or DEFAULT_STATE),
                labels=[str(label) for label in labels],
            ),
        )


def load_config(path: str | Path) -> WorkspaceConfig:
    """
    Load workspace configuration from a YAML file.

    Args:
        path: Path to ``config.yml``

    Returns:
        Parsed configuration with env vars expanded

    Raises:
        FileNotFoundError: If the file does not exist
        SerializationError: If the YAML is malformed
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise SerializationError(f"invalid config {path}: {e}") from e

    return WorkspaceConfig.from_dict(expand_env_vars(data))


def save_config(path: str | Path, config: WorkspaceConfig) -> None:
    Path(path).write_text(yaml.safe_dump(config.to_dict(), sort_keys=False), encoding="utf-8")


def default_workspace_root() -> Path:
    """
    Resolve the workspace root when none is given.

    Uses ``WORKY_WORKSPACE`` (from the environment or a ``.env`` file),
    falling back to the current directory.
    """
    load_dotenv(find_dotenv(usecwd=True))
    configured = os.environ.get(WORKSPACE_ENV, "").strip()
    return Path(configured) if configured else Path.cwd()
