"""
WorkItem types and data structures.

This module defines the current-state snapshot of a work item, the
document form the patch engine operates on, and the filter used when
listing items.
"""

from __future__ import annotations

import copy
import re
import unicodedata
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from worky.core.events import parse_timestamp, utc_now
from worky.errors import InvalidIdentifier, SerializationError

FS_BACKEND = "fs"

DEFAULT_STATE = "TODO"

DOCUMENT_KEYS = (
    "uid",
    "title",
    "state",
    "assignee",
    "labels",
    "created_at",
    "updated_at",
    "fields",
)

_SLUG_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


def slugify(title: str) -> str:
    """
    Derive a URL-safe slug from a title.

    Accents are folded to ASCII, everything is lowercased, and each run of
    non-alphanumeric characters collapses into one hyphen.
    """
    folded = unicodedata.normalize("NFKD", title).encode("ascii", "ignore").decode("ascii")
    slug = re.sub(r"[^a-z0-9]+", "-", folded.lower())
    return slug.strip("-")


def validate_slug(slug: str) -> bool:
    return bool(_SLUG_RE.match(slug))


def make_uid(slug: str, backend: str = FS_BACKEND) -> str:
    return f"{backend}:{slug}"


def split_uid(uid: str) -> tuple[str, str]:
    """
    Split a UID into ``(backend, slug)`` on the first colon.

    Raises:
        InvalidIdentifier: If there is no colon or either side is empty
    """
    backend, sep, slug = uid.partition(":")
    if not sep or not backend or not slug:
        raise InvalidIdentifier(f"invalid UID format: {uid!r}")
    return backend, slug


def _labels_from(value: Any) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(label, str) for label in value):
        raise SerializationError("labels must be a list of strings")
    labels: list[str] = []
    seen: set[str] = set()
    for label in value:
        key = label.casefold()
        if key not in seen:
            seen.add(key)
            labels.append(label)
    return labels


def _required_str(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise SerializationError(f"{key} must be a string")
    return value


@dataclass
class WorkItem:
    """
    Current-state snapshot of one work item.

    Attributes:
        uid: Stable identifier, ``"<backend>:<slug>"`` (e.g. ``fs:implement-auth``)
        title: Human-readable title
        state: Open state tag (e.g. "TODO", "IN_PROGRESS"); not an enum here
        assignee: Single owner, if any
        labels: Labels in display order, unique ignoring case
        created_at: Creation timestamp (UTC)
        updated_at: Last mutation timestamp (UTC)
        fields: Custom fields; values may be nested objects
    """
    uid: str
    title: str
    state: str = DEFAULT_STATE
    assignee: str | None = None
    labels: list[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime | None = None
    fields: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.updated_at is None:
            self.updated_at = self.created_at

    @property
    def slug(self) -> str:
        return split_uid(self.uid)[1]

    def touch(self, at: datetime | None = None) -> None:
        """Refresh updated_at, never moving it before created_at."""
        self.updated_at = max(at or utc_now(), self.created_at)

    def has_label(self, label: str) -> bool:
        """Check for a label, ignoring case."""
        wanted = label.casefold()
        return any(existing.casefold() == wanted for existing in self.labels)

    def add_label(self, label: str) -> bool:
        """Append a label unless present. Returns True if the item changed."""
        if self.has_label(label):
            return False
        self.labels.append(label)
        self.touch()
        return True

    def remove_label(self, label: str) -> bool:
        """Drop a label, ignoring case. Returns True if the item changed."""
        wanted = label.casefold()
        kept = [existing for existing in self.labels if existing.casefold() != wanted]
        if len(kept) == len(self.labels):
            return False
        self.labels = kept
        self.touch()
        return True

    def to_dict(self) -> dict[str, Any]:
        """Convert to the document form used for patching and storage."""
        return {
            "uid": self.uid,
            "title": self.title,
            "state": self.state,
            "assignee": self.assignee,
            "labels": list(self.labels),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "fields": copy.deepcopy(self.fields),
        }

    @classmethod
    def from_dict(cls, data: Any) -> "WorkItem":
        """
        Create a WorkItem from its document form.

        Raises:
            SerializationError: If a key has the wrong shape
        """
        if not isinstance(data, dict):
            raise SerializationError("work item document must be an object")

        assignee = data.get("assignee")
        if assignee is not None and not isinstance(assignee, str):
            raise SerializationError("assignee must be a string or null")

        fields = data.get("fields")
        if fields is None:
            fields = {}
        if not isinstance(fields, dict):
            raise SerializationError("fields must be an object")

        if "created_at" not in data:
            raise SerializationError("created_at is required")
        created_at = parse_timestamp(data["created_at"])
        updated_at = parse_timestamp(data.get("updated_at") or created_at)

        return cls(
            uid=_required_str(data, "uid"),
            title=_required_str(data, "title"),
            state=_required_str(data, "state"),
            assignee=assignee,
            labels=_labels_from(data.get("labels")),
            created_at=created_at,
            updated_at=updated_at,
            fields=fields,
        )


@dataclass
class ItemFilter:
    """
    Filter parameters for listing work items.

    All fields are optional; None means "no filter". Set fields are
    combined with AND and compared ignoring case.

    Attributes:
        state: Exact state match
        assignee: Exact assignee match
        label: Item must carry this label
    """
    state: str | None = None
    assignee: str | None = None
    label: str | None = None

    def is_empty(self) -> bool:
        return self.state is None and self.assignee is None and self.label is None

    def matches(self, item: WorkItem) -> bool:
        if self.state is not None and item.state.casefold() != self.state.casefold():
            return False

        if self.assignee is not None:
            if item.assignee is None or item.assignee.casefold() != self.assignee.casefold():
                return False

        if self.label is not None and not item.has_label(self.label):
            return False

        return True
