"""
worky: event-sourced work item store.

Work items live as plain files: a YAML snapshot plus an append-only
NDJSON event log per item.
"""

from worky.core import ItemFilter, SetOperation, WorkEvent, WorkItem
from worky.errors import (
    InvalidIdentifier,
    InvalidPath,
    ItemExists,
    ItemNotFound,
    SerializationError,
    ValidationError,
    WorkspaceExists,
    WorkspaceNotFound,
    WorkyError,
)
from worky.store import Workspace

__version__ = "0.1.0"

__all__ = [
    "InvalidIdentifier",
    "InvalidPath",
    "ItemExists",
    "ItemFilter",
    "ItemNotFound",
    "SerializationError",
    "SetOperation",
    "ValidationError",
    "WorkEvent",
    "WorkItem",
    "Workspace",
    "WorkspaceExists",
    "WorkspaceNotFound",
    "WorkyError",
]
