"""Dot-separated path resolution over JSON-style documents."""

from __future__ import annotations

from typing import Any

from worky.errors import InvalidPath


def split_path(path: str) -> list[str]:
    """Split a dot-path into segments; the empty path addresses the root."""
    if not path:
        return []
    parts = path.split(".")
    if any(not part for part in parts):
        raise InvalidPath(f"empty segment in path '{path}'")
    return parts


def join_path(parent: str, key: str) -> str:
    return f"{parent}.{key}" if parent else key


def to_pointer(path: str) -> str:
    """
    Translate a dot-path into an RFC 6901 JSON pointer.

    Examples:
        state                        -> /state
        fields.priority              -> /fields/priority
        fields.System.IterationPath  -> /fields/System/IterationPath
        ""                           -> ""
    """
    if not path:
        return ""
    escaped = (part.replace("~", "~0").replace("/", "~1") for part in path.split("."))
    return "/" + "/".join(escaped)


def resolve(document: Any, path: str) -> tuple[dict[str, Any] | None, str]:
    """
    Resolve a path to an assignable slot, creating containers on the way.

    Missing intermediate segments become empty objects and a missing
    terminal key is inserted with a ``None`` placeholder, so resolving a
    path is visible in the document even if nothing is assigned.

    Args:
        document: Root document (nested dicts, lists and scalars)
        path: Dot-separated path; "" addresses the root

    Returns:
        ``(parent, key)`` for the slot, or ``(None, "")`` for the root

    Raises:
        InvalidPath: If the path is malformed or crosses a non-object
    """
    parts = split_path(path)
    if not parts:
        return None, ""

    current = document
    for index, part in enumerate(parts):
        if not isinstance(current, dict):
            walked = ".".join(parts[:index])
            raise InvalidPath(f"cannot traverse into non-object at '{walked}'")
        if index < len(parts) - 1:
            current = current.setdefault(part, {})

    current.setdefault(parts[-1], None)
    return current, parts[-1]


def lookup(document: Any, path: str, default: Any = None) -> Any:
    """Read the value at a path without creating anything."""
    current = document
    for part in split_path(path):
        if not isinstance(current, dict) or part not in current:
            return default
        current = current[part]
    return current
