"""State transitions along the default work item workflow."""

from __future__ import annotations

from dataclasses import dataclass

from worky.core.patch import SetOperation
from worky.logger import get_logger
from worky.store.workspace import Workspace

WORKFLOW_STATES = ("TODO", "IN_PROGRESS", "IN_REVIEW", "DONE")

log = get_logger("workflow")


@dataclass(frozen=True)
class TransitionResult:
    """Result metadata for a workflow transition."""

    uid: str
    from_state: str
    to_state: str
    changed: bool


def _state_index(state: str) -> int | None:
    wanted = state.upper()
    for index, candidate in enumerate(WORKFLOW_STATES):
        if candidate == wanted:
            return index
    return None


def next_state(state: str) -> str | None:
    """
    State after ``state``, or None at the end of the workflow.

    States outside the workflow advance to ``IN_PROGRESS``.
    """
    index = _state_index(state)
    if index is None:
        return "IN_PROGRESS"
    if index + 1 >= len(WORKFLOW_STATES):
        return None
    return WORKFLOW_STATES[index + 1]


def previous_state(state: str) -> str | None:
    """
    State before ``state``, or None at the start of the workflow.

    States outside the workflow revert to ``TODO``.
    """
    index = _state_index(state)
    if index is None:
        return "TODO"
    if index == 0:
        return None
    return WORKFLOW_STATES[index - 1]


def _transition(ws: Workspace, uid: str, target: str | None, from_state: str, actor: str | None) -> TransitionResult:
    if target is None:
        log.info("No transition available", uid=uid, state=from_state)
        return TransitionResult(uid=uid, from_state=from_state, to_state=from_state, changed=False)

    ws.update_item(uid, [SetOperation("state", target)], actor=actor)
    log.info("Transitioned work item", uid=uid, from_state=from_state, to_state=target)
    return TransitionResult(uid=uid, from_state=from_state, to_state=target, changed=True)


def advance(ws: Workspace, uid: str, actor: str | None = None) -> TransitionResult:
    """Move an item one step forward; a no-op at ``DONE``."""
    state = ws.get_item(uid).state
    return _transition(ws, uid, next_state(state), state, actor)


def revert(ws: Workspace, uid: str, actor: str | None = None) -> TransitionResult:
    """Move an item one step back; a no-op at ``TODO``."""
    state = ws.get_item(uid).state
    return _transition(ws, uid, previous_state(state), state, actor)
