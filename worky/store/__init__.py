"""File-backed persistence for work items."""

from worky.store.config import WorkspaceConfig, load_config, save_config
from worky.store.workspace import Workspace

__all__ = ["Workspace", "WorkspaceConfig", "load_config", "save_config"]
