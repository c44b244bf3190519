"""Structural differ for work item documents."""

from __future__ import annotations

from typing import Any, NamedTuple

from worky.core.paths import join_path
from worky.core.patch import SetOperation


class Change(NamedTuple):
    """One leaf-level difference between two documents."""

    path: str
    old: Any
    new: Any
    removed: bool = False


def values_equal(left: Any, right: Any) -> bool:
    """JSON equality: ``True`` is not ``1`` and ``1.0`` is not ``1``."""
    if type(left) is not type(right):
        return False
    if isinstance(left, dict):
        return left.keys() == right.keys() and all(
            values_equal(left[key], right[key]) for key in left
        )
    if isinstance(left, list):
        return len(left) == len(right) and all(
            values_equal(a, b) for a, b in zip(left, right)
        )
    return left == right


def diff(old: Any, new: Any) -> list[Change]:
    """
    Compute the leaf-level changes that turn ``old`` into ``new``.

    Equal subtrees are skipped. Objects are walked key by key in sorted
    order: keys of ``new`` first (new-only keys report ``old=None``), then
    keys that only ``old`` has, reported as removals. Arrays and any other
    shape mismatch are a single change at the current path.
    """
    changes: list[Change] = []
    _walk(old, new, "", changes)
    return changes


def _walk(old: Any, new: Any, path: str, changes: list[Change]) -> None:
    if values_equal(old, new):
        return

    if isinstance(old, dict) and isinstance(new, dict):
        for key in sorted(new):
            child = join_path(path, key)
            if key in old:
                _walk(old[key], new[key], child, changes)
            else:
                changes.append(Change(child, None, new[key]))

        for key in sorted(old):
            if key not in new:
                changes.append(Change(join_path(path, key), old[key], None, removed=True))
        return

    changes.append(Change(path, old, new))


def to_set_operations(changes: list[Change]) -> list[SetOperation]:
    """Turn diff output into operations that replay it onto the old document."""
    return [
        SetOperation.remove(change.path) if change.removed else SetOperation(change.path, change.new)
        for change in changes
    ]
