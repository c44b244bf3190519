"""
Core domain model for worky.

Work item snapshots, the append-only event model, and the patch/diff
engine that turns field updates into reconstructable history.
"""

from worky.core.diff import Change, diff, to_set_operations, values_equal
from worky.core.events import (
    AiActionPayload,
    AssigneeChangePayload,
    CommentPayload,
    EventType,
    FieldChangePayload,
    GenericPayload,
    LabelPayload,
    StateChangePayload,
    WorkEvent,
    decode_payload,
    sniff_payload,
)
from worky.core.item import ItemFilter, WorkItem, slugify, split_uid
from worky.core.patch import (
    SetOperation,
    apply_merge_patch,
    apply_set_operation,
    apply_set_operations,
)
from worky.core.paths import lookup, resolve, to_pointer

__all__ = [
    "AiActionPayload",
    "AssigneeChangePayload",
    "Change",
    "CommentPayload",
    "EventType",
    "FieldChangePayload",
    "GenericPayload",
    "ItemFilter",
    "LabelPayload",
    "SetOperation",
    "StateChangePayload",
    "WorkEvent",
    "WorkItem",
    "apply_merge_patch",
    "apply_set_operation",
    "apply_set_operations",
    "decode_payload",
    "diff",
    "lookup",
    "resolve",
    "slugify",
    "sniff_payload",
    "split_uid",
    "to_pointer",
    "to_set_operations",
    "values_equal",
]
