"""
Work event model for append-only change tracking.

Every event carries an explicit ``type`` discriminant, and the payload is
decoded with the record registered for that type. Payload records are
strict: unknown or missing keys never match, so one event type's data can
not be read as another's. Shape-trial decoding (``sniff_payload``) exists
only for importing legacy logs whose payloads do not line up with their
types.
"""

from __future__ import annotations

import dataclasses
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Union

from worky.errors import SerializationError


class EventType(Enum):
    """Type of change recorded in an item's history."""
    CREATED = "CREATED"
    STATE_CHANGED = "STATE_CHANGED"
    FIELD_CHANGED = "FIELD_CHANGED"
    COMMENT_ADDED = "COMMENT_ADDED"
    LABEL_ADDED = "LABEL_ADDED"
    LABEL_REMOVED = "LABEL_REMOVED"
    ASSIGNED = "ASSIGNED"
    AI_ACTION = "AI_ACTION"

    def __str__(self) -> str:
        return self.value


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO 8601 timestamp (or datetime) into an aware UTC datetime."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as e:
            raise SerializationError(f"invalid timestamp '{value}'") from e
    else:
        raise SerializationError(f"invalid timestamp {value!r}")

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _check_keys(data: Any, record: str, required: set[str], optional: set[str]) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise SerializationError(f"{record} payload must be an object")
    unknown = set(data) - required - optional
    if unknown:
        raise SerializationError(f"{record} payload has unknown fields: {sorted(unknown)}")
    missing = required - set(data)
    if missing:
        raise SerializationError(f"{record} payload is missing fields: {sorted(missing)}")
    return data


def _check_str(value: Any, record: str, key: str, optional: bool = False) -> str | None:
    if value is None and optional:
        return None
    if not isinstance(value, str):
        raise SerializationError(f"{record}.{key} must be a string")
    return value


@dataclass(frozen=True)
class StateChangePayload:
    from_state: str
    to_state: str

    def to_dict(self) -> dict[str, Any]:
        return {"from": self.from_state, "to": self.to_state}

    @classmethod
    def from_dict(cls, data: Any) -> "StateChangePayload":
        data = _check_keys(data, "StateChange", {"from", "to"}, set())
        return cls(
            from_state=_check_str(data["from"], "StateChange", "from"),
            to_state=_check_str(data["to"], "StateChange", "to"),
        )


@dataclass(frozen=True)
class FieldChangePayload:
    path: str
    new_value: Any
    old_value: Any = None

    def to_dict(self) -> dict[str, Any]:
        return {"path": self.path, "old_value": self.old_value, "new_value": self.new_value}

    @classmethod
    def from_dict(cls, data: Any) -> "FieldChangePayload":
        data = _check_keys(data, "FieldChange", {"path", "new_value"}, {"old_value"})
        return cls(
            path=_check_str(data["path"], "FieldChange", "path"),
            new_value=data["new_value"],
            old_value=data.get("old_value"),
        )


@dataclass(frozen=True)
class AssigneeChangePayload:
    from_assignee: str | None = None
    to_assignee: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"from": self.from_assignee, "to": self.to_assignee}

    @classmethod
    def from_dict(cls, data: Any) -> "AssigneeChangePayload":
        data = _check_keys(data, "AssigneeChange", set(), {"from", "to"})
        return cls(
            from_assignee=_check_str(data.get("from"), "AssigneeChange", "from", optional=True),
            to_assignee=_check_str(data.get("to"), "AssigneeChange", "to", optional=True),
        )


@dataclass(frozen=True)
class LabelPayload:
    label: str

    def to_dict(self) -> dict[str, Any]:
        return {"label": self.label}

    @classmethod
    def from_dict(cls, data: Any) -> "LabelPayload":
        data = _check_keys(data, "Label", {"label"}, set())
        return cls(label=_check_str(data["label"], "Label", "label"))


@dataclass(frozen=True)
class CommentPayload:
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"message": self.message}

    @classmethod
    def from_dict(cls, data: Any) -> "CommentPayload":
        data = _check_keys(data, "Comment", {"message"}, set())
        return cls(message=_check_str(data["message"], "Comment", "message"))


@dataclass(frozen=True)
class AiActionPayload:
    tool: str
    action: str
    details: Any = None

    def to_dict(self) -> dict[str, Any]:
        return {"tool": self.tool, "action": self.action, "details": self.details}

    @classmethod
    def from_dict(cls, data: Any) -> "AiActionPayload":
        data = _check_keys(data, "AiAction", {"tool", "action"}, {"details"})
        return cls(
            tool=_check_str(data["tool"], "AiAction", "tool"),
            action=_check_str(data["action"], "AiAction", "action"),
            details=data.get("details"),
        )


@dataclass(frozen=True)
class GenericPayload:
    """Arbitrary JSON payload kept as-is."""
    document: Any = None

    def to_dict(self) -> Any:
        return self.document

    @classmethod
    def from_dict(cls, data: Any) -> "GenericPayload":
        return cls(document=data)


EventPayload = Union[
    StateChangePayload,
    FieldChangePayload,
    AssigneeChangePayload,
    LabelPayload,
    CommentPayload,
    AiActionPayload,
    GenericPayload,
]

PAYLOAD_FOR_TYPE: dict[EventType, type] = {
    EventType.CREATED: CommentPayload,
    EventType.STATE_CHANGED: StateChangePayload,
    EventType.FIELD_CHANGED: FieldChangePayload,
    EventType.COMMENT_ADDED: CommentPayload,
    EventType.LABEL_ADDED: LabelPayload,
    EventType.LABEL_REMOVED: LabelPayload,
    EventType.ASSIGNED: AssigneeChangePayload,
    EventType.AI_ACTION: AiActionPayload,
}

# Attempt order for legacy payloads; strict keys keep the optional-only
# AssigneeChange from matching Label or Comment data.
LEGACY_SHAPE_ORDER: tuple[type, ...] = (
    StateChangePayload,
    FieldChangePayload,
    AssigneeChangePayload,
    LabelPayload,
    CommentPayload,
    AiActionPayload,
)


def decode_payload(event_type: EventType, data: Any) -> EventPayload:
    """Decode a payload with the record registered for its event type."""
    record = PAYLOAD_FOR_TYPE[event_type]
    try:
        return record.from_dict(data)
    except SerializationError:
        return GenericPayload(data)


def sniff_payload(data: Any) -> EventPayload:
    """
    Legacy decoding: try each record shape in order, first strict match wins.

    Only for importing old logs; new code should call ``decode_payload``.
    """
    for record in LEGACY_SHAPE_ORDER:
        try:
            return record.from_dict(data)
        except SerializationError:
            continue
    return GenericPayload(data)


@dataclass(frozen=True)
class WorkEvent:
    """
    A single immutable entry in a work item's history.

    Attributes:
        id: Unique event identifier (``evt_<uuid hex>``)
        event_type: Kind of change
        timestamp: When the event was created (UTC)
        payload: Type-specific data
        actor: Who or what caused the event, if known
    """
    id: str
    event_type: EventType
    timestamp: datetime
    payload: EventPayload
    actor: str | None = None

    @classmethod
    def new(cls, event_type: EventType, payload: EventPayload) -> "WorkEvent":
        """Create an event with a fresh id and the current time."""
        return cls(
            id=f"evt_{uuid.uuid4().hex}",
            event_type=event_type,
            timestamp=utc_now(),
            payload=payload,
        )

    def with_actor(self, actor: str | None) -> "WorkEvent":
        """Return a copy attributed to ``actor``."""
        return dataclasses.replace(self, actor=actor)

    # --- Construction helpers ---

    @classmethod
    def created(cls, title: str) -> "WorkEvent":
        return cls.new(EventType.CREATED, CommentPayload(message=f"Created: {title}"))

    @classmethod
    def state_changed(cls, from_state: str, to_state: str) -> "WorkEvent":
        return cls.new(EventType.STATE_CHANGED, StateChangePayload(from_state, to_state))

    @classmethod
    def field_changed(cls, path: str, old_value: Any, new_value: Any) -> "WorkEvent":
        return cls.new(
            EventType.FIELD_CHANGED,
            FieldChangePayload(path=path, new_value=new_value, old_value=old_value),
        )

    @classmethod
    def assigned(cls, from_assignee: str | None, to_assignee: str | None) -> "WorkEvent":
        return cls.new(EventType.ASSIGNED, AssigneeChangePayload(from_assignee, to_assignee))

    @classmethod
    def label_added(cls, label: str) -> "WorkEvent":
        return cls.new(EventType.LABEL_ADDED, LabelPayload(label))

    @classmethod
    def label_removed(cls, label: str) -> "WorkEvent":
        return cls.new(EventType.LABEL_REMOVED, LabelPayload(label))

    @classmethod
    def comment(cls, message: str) -> "WorkEvent":
        return cls.new(EventType.COMMENT_ADDED, CommentPayload(message))

    @classmethod
    def ai_action(cls, tool: str, action: str, details: Any = None) -> "WorkEvent":
        return cls.new(EventType.AI_ACTION, AiActionPayload(tool, action, details))

    # --- Serialization ---

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "type": self.event_type.value,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.actor is not None:
            data["actor"] = self.actor
        data["payload"] = self.payload.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Any, legacy: bool = False) -> "WorkEvent":
        """
        Decode an event record.

        Args:
            data: Mapping read from the event log
            legacy: Classify the payload by shape instead of by type

        Raises:
            SerializationError: If the envelope is malformed
        """
        if not isinstance(data, dict):
            raise SerializationError("event must be an object")
        for key in ("id", "type", "timestamp", "payload"):
            if key not in data:
                raise SerializationError(f"event is missing '{key}'")

        try:
            event_type = EventType(data["type"])
        except ValueError as e:
            raise SerializationError(f"unknown event type {data['type']!r}") from e

        actor = data.get("actor")
        if actor is not None and not isinstance(actor, str):
            raise SerializationError("event actor must be a string")

        payload = sniff_payload(data["payload"]) if legacy else decode_payload(event_type, data["payload"])
        return cls(
            id=str(data["id"]),
            event_type=event_type,
            timestamp=parse_timestamp(data["timestamp"]),
            payload=payload,
            actor=actor,
        )
