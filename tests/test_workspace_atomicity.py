"""Hardening tests for mutation persistence and failure handling."""

import pytest

from worky.core.events import EventType
from worky.core.patch import SetOperation
from worky.errors import SerializationError
from worky.store import workspace as workspace_module
from worky.store.workspace import Workspace


def _item_dir(ws: Workspace, slug: str):
    return ws.root / "work" / "items" / slug


def test_failed_append_preserves_snapshot_and_log(workspace, monkeypatch):
    """A failing log append should leave both files as they were."""
    item = workspace.create_item("Hardening Test")
    events_file = _item_dir(workspace, item.slug) / "events.ndjson"
    log_before = events_file.read_text()

    def _fail_append(*args, **kwargs):
        raise OSError("simulated disk failure")

    monkeypatch.setattr(workspace_module.eventlog, "append_events", _fail_append)

    with pytest.raises(OSError, match="simulated disk failure"):
        workspace.update_item(item.uid, ["state=IN_PROGRESS"])

    assert workspace.get_item(item.uid) == item
    assert events_file.read_text() == log_before


def test_failed_snapshot_write_leaves_log_ahead(workspace, monkeypatch):
    """Events are durable before the snapshot; the old snapshot stays readable."""
    item = workspace.create_item("Hardening Test")

    def _fail_write(*args, **kwargs):
        raise OSError("simulated crash")

    monkeypatch.setattr(Workspace, "_write_meta", _fail_write)

    with pytest.raises(OSError, match="simulated crash"):
        workspace.update_item(item.uid, ["state=IN_PROGRESS"])

    monkeypatch.undo()
    assert workspace.get_item(item.uid).state == "TODO"
    assert [e.event_type for e in workspace.read_events(item.uid)] == [
        EventType.CREATED,
        EventType.STATE_CHANGED,
    ]


def test_unencodable_value_writes_nothing(workspace):
    """Encoding happens before any file is touched."""
    item = workspace.create_item("Hardening Test")

    with pytest.raises(SerializationError):
        workspace.update_item(item.uid, [SetOperation("fields.blob", object())])

    assert workspace.get_item(item.uid) == item
    assert len(workspace.read_events(item.uid)) == 1


def test_snapshot_write_leaves_no_temp_files(workspace):
    item = workspace.create_item("Hardening Test")
    workspace.update_item(item.uid, ["state=IN_PROGRESS"])
    workspace.patch_item(item.uid, {"fields": {"a": 1}})

    assert list(_item_dir(workspace, item.slug).glob("*.tmp")) == []


def test_batch_is_written_together(workspace, monkeypatch):
    """All events of one mutation go to the log in a single append call."""
    item = workspace.create_item("Hardening Test")
    batches = []
    real_append = workspace_module.eventlog.append_events

    def _recording_append(events_file, events):
        events = list(events)
        batches.append(len(events))
        return real_append(events_file, events)

    monkeypatch.setattr(workspace_module.eventlog, "append_events", _recording_append)
    workspace.update_item(item.uid, ["state=IN_PROGRESS", "assignee=alice", "fields.points=3"])

    assert batches == [3]


def test_concurrent_handles_do_not_lose_updates(tmp_path):
    """Two handles on one root serialize their read-modify-write cycles."""
    first = Workspace.init(tmp_path)
    second = Workspace.open(tmp_path)
    item = first.create_item("Hardening Test")

    first.update_item(item.uid, ["fields.a=1"])
    second.update_item(item.uid, ["fields.b=2"])

    assert first.get_item(item.uid).fields == {"a": 1, "b": 2}


def test_failed_create_releases_slug(workspace, monkeypatch):
    """A create that fails part way leaves no item directory behind."""

    def _fail_write(*args, **kwargs):
        raise OSError("simulated disk failure")

    monkeypatch.setattr(Workspace, "_write_meta", _fail_write)

    with pytest.raises(OSError, match="simulated disk failure"):
        workspace.create_item("Fix login bug")

    monkeypatch.undo()
    assert not _item_dir(workspace, "fix-login-bug").exists()
    assert workspace.list_items() == []

    item = workspace.create_item("Fix login bug")
    assert workspace.get_item(item.uid) == item
    assert len(workspace.read_events(item.uid)) == 1
