"""Append-only NDJSON event log for a single work item."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Iterator

from worky.core.events import WorkEvent
from worky.errors import SerializationError


def encode_event(event: WorkEvent) -> str:
    try:
        return json.dumps(event.to_dict(), ensure_ascii=False)
    except (TypeError, ValueError) as e:
        raise SerializationError(f"cannot encode event {event.id}: {e}") from e


def append_events(events_file: Path, events: Iterable[WorkEvent]) -> int:
    """
    Append events to the log, one JSON object per line.

    All lines are encoded before the file is opened, so an encoding
    failure leaves the log untouched.

    Returns:
        Number of events written
    """
    lines = [encode_event(event) + "\n" for event in events]
    if not lines:
        return 0
    with open(events_file, "a", encoding="utf-8") as f:
        f.write("".join(lines))
        f.flush()
    return len(lines)


def iter_events(events_file: Path, legacy: bool = False) -> Iterator[WorkEvent]:
    """Yield events in append order; blank lines are skipped."""
    if not events_file.exists():
        return
    with open(events_file, "rb") as f:
        for line_no, raw in enumerate(f, start=1):
            try:
                line = raw.decode("utf-8")
            except UnicodeDecodeError as e:
                raise SerializationError(f"{events_file}:{line_no}: invalid UTF-8: {e}") from e
            if not line.strip():
                continue
            try:
                data = json.loads(line)
            except json.JSONDecodeError as e:
                raise SerializationError(f"{events_file}:{line_no}: invalid JSON: {e}") from e
            yield WorkEvent.from_dict(data, legacy=legacy)


def read_events(
    events_file: Path,
    since: datetime | None = None,
    legacy: bool = False,
) -> list[WorkEvent]:
    """
    Load events in append order.

    Args:
        events_file: Path to ``events.ndjson``
        since: Inclusive lower bound on event timestamps; naive values are UTC
        legacy: Classify payloads by shape (old logs)
    """
    if since is not None and since.tzinfo is None:
        since = since.replace(tzinfo=timezone.utc)
    return [
        event
        for event in iter_events(events_file, legacy=legacy)
        if since is None or event.timestamp >= since
    ]
