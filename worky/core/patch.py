"""
Patch operations for work item documents.

Supports:
- Path-based set operations (``state=IN_PROGRESS``, ``fields.priority=high``)
- JSON Merge Patch (RFC 7396) for partial updates
"""

from __future__ import annotations

import copy
import json
from dataclasses import dataclass
from typing import Any, Iterable

from worky.core.paths import resolve, split_path
from worky.errors import InvalidPath


def _reject_constant(name: str) -> Any:
    # NaN / Infinity are not JSON; let the caller treat them as text
    raise ValueError(name)


def parse_value(text: str) -> Any:
    """Parse text as JSON, falling back to the literal string."""
    try:
        return json.loads(text, parse_constant=_reject_constant)
    except ValueError:
        return text


@dataclass(frozen=True)
class SetOperation:
    """A single ``path = value`` assignment, or a removal when ``unset`` is set."""

    path: str
    value: Any = None
    unset: bool = False

    @classmethod
    def parse(cls, text: str) -> "SetOperation":
        """
        Parse a ``key=value`` string.

        The value is decoded as JSON when possible, so ``count=42`` yields a
        number and ``active=true`` a boolean; anything else is kept as text.

        Raises:
            InvalidPath: If there is no ``=`` or the path is empty
        """
        path, sep, raw_value = text.partition("=")
        if not sep:
            raise InvalidPath(f"expected 'key=value', got '{text}'")
        path = path.strip()
        if not path:
            raise InvalidPath(f"missing path in '{text}'")
        split_path(path)
        return cls(path=path, value=parse_value(raw_value.strip()))

    @classmethod
    def remove(cls, path: str) -> "SetOperation":
        return cls(path=path, unset=True)

    def __str__(self) -> str:
        if self.unset:
            return f"-{self.path}"
        return f"{self.path}={json.dumps(self.value)}"


def coerce_operations(operations: Iterable[SetOperation | str]) -> list[SetOperation]:
    """Accept operation objects or their raw text form."""
    result: list[SetOperation] = []
    for op in operations:
        if isinstance(op, SetOperation):
            result.append(op)
        elif isinstance(op, str):
            result.append(SetOperation.parse(op))
        else:
            raise InvalidPath(f"unsupported set operation: {op!r}")
    return result


def apply_set_operation(document: Any, op: SetOperation) -> tuple[Any, Any]:
    """
    Apply one set operation.

    Intermediate objects are created as needed. The document is mutated in
    place unless the operation targets the root, in which case the new value
    becomes the document.

    Returns:
        ``(document, old_value)``; ``old_value`` is None if the slot was
        absent or null
    """
    if op.unset:
        return _remove(document, op.path)

    parent, key = resolve(document, op.path)
    if parent is None:
        return copy.deepcopy(op.value), document

    old_value = parent[key]
    parent[key] = copy.deepcopy(op.value)
    return document, old_value


def _remove(document: Any, path: str) -> tuple[Any, Any]:
    parts = split_path(path)
    if not parts:
        return None, document

    current = document
    for part in parts[:-1]:
        if not isinstance(current, dict) or part not in current:
            return document, None
        current = current[part]
    if not isinstance(current, dict):
        return document, None
    return document, current.pop(parts[-1], None)


def apply_set_operations(
    document: Any,
    operations: Iterable[SetOperation],
) -> tuple[Any, list[Any]]:
    """Apply operations in order; each one sees the effects of the previous."""
    old_values: list[Any] = []
    for op in operations:
        document, old_value = apply_set_operation(document, op)
        old_values.append(old_value)
    return document, old_values


def apply_merge_patch(target: Any, patch: Any) -> Any:
    """
    Apply a JSON Merge Patch (RFC 7396) and return the result.

    Rules:
    - A non-object patch (null included) replaces the target wholesale
    - An object patch turns a non-object target into ``{}`` first
    - null members remove keys, object members merge recursively,
      everything else replaces
    - Keys the patch does not mention are left alone
    """
    if not isinstance(patch, dict):
        return copy.deepcopy(patch)

    if not isinstance(target, dict):
        target = {}

    for key, value in patch.items():
        if value is None:
            target.pop(key, None)
        elif isinstance(value, dict):
            target[key] = apply_merge_patch(target.get(key), value)
        else:
            target[key] = copy.deepcopy(value)
    return target
