"""
Filesystem workspace for work item storage.

Each item is a directory under ``work/items/<slug>/`` holding:
- ``meta.yml``: current snapshot
- ``events.ndjson``: append-only event log
- ``notes.md``: free-form notes
- ``artifacts/``: attached files
"""

from __future__ import annotations

import copy
import shutil
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Iterable

import yaml

from worky.core.diff import diff
from worky.core.events import EventType, WorkEvent
from worky.core.item import (
    DOCUMENT_KEYS,
    FS_BACKEND,
    ItemFilter,
    WorkItem,
    make_uid,
    slugify,
    split_uid,
    validate_slug,
)
from worky.core.patch import SetOperation, apply_merge_patch, apply_set_operations, coerce_operations
from worky.errors import (
    InvalidIdentifier,
    ItemExists,
    ItemNotFound,
    SerializationError,
    ValidationError,
    WorkspaceExists,
    WorkspaceNotFound,
    WorkyError,
)
from worky.logger import get_logger
from worky.store import eventlog
from worky.store.config import WorkspaceConfig, default_workspace_root, load_config, save_config
from worky.store.locking import item_lock

WORKY_DIR = ".worky"
CONFIG_FILE = "config.yml"
LOCKS_DIR = "locks"
ITEMS_DIR = Path("work") / "items"
META_FILE = "meta.yml"
EVENTS_FILE = "events.ndjson"
NOTES_FILE = "notes.md"
ARTIFACTS_DIR = "artifacts"

# Managed by the store; never diffed into events.
BOOKKEEPING_PATHS = frozenset({"updated_at"})

log = get_logger("workspace")


def _encode_meta(item: WorkItem) -> str:
    try:
        return yaml.safe_dump(item.to_dict(), sort_keys=False, allow_unicode=True)
    except yaml.YAMLError as e:
        raise SerializationError(f"cannot encode {item.uid}: {e}") from e


def _check_field_keys(value: Any, path: str) -> None:
    """Nested field keys must be addressable as dot-path segments."""
    if not isinstance(value, dict):
        return
    for key, child in value.items():
        if not isinstance(key, str) or not key or "." in key:
            raise ValidationError(f"invalid field key {key!r} under '{path}'")
        _check_field_keys(child, f"{path}.{key}")


def events_for_changes(old_doc: dict[str, Any], new_doc: dict[str, Any]) -> list[WorkEvent]:
    """
    Build one event per changed path between two item documents.

    ``state`` becomes STATE_CHANGED, ``assignee`` becomes ASSIGNED, and every
    other path a FIELD_CHANGED event.
    """
    events: list[WorkEvent] = []
    for change in diff(old_doc, new_doc):
        if change.path in BOOKKEEPING_PATHS:
            continue
        if change.path == "state":
            event = WorkEvent.state_changed(change.old or "", change.new or "")
        elif change.path == "assignee":
            event = WorkEvent.assigned(change.old, change.new)
        else:
            event = WorkEvent.field_changed(change.path, change.old, change.new)
        events.append(event)
    return events


class Workspace:
    """
    A workspace manages work items on the filesystem.

    Workspaces are plain handles: construct one per operation or keep one
    per root. Mutations of a single item are serialized with an advisory
    file lock; there is no in-memory caching.

    Example:
        ws = Workspace.init(tmp_path)
        item = ws.create_item("Fix login bug")
        ws.update_item(item.uid, ["state=IN_PROGRESS", "assignee=alice"])
        ws.patch_item(item.uid, {"fields": {"priority": "high"}})
    """

    def __init__(self, root: Path, config: WorkspaceConfig):
        self._root = Path(root)
        self._config = config

    @classmethod
    def init(cls, root: str | Path, name: str | None = None) -> "Workspace":
        """
        Create the on-disk workspace structure.

        Raises:
            WorkspaceExists: If ``root`` already holds a workspace
        """
        root = Path(root)
        worky_dir = root / WORKY_DIR
        if worky_dir.exists():
            raise WorkspaceExists(root)

        worky_dir.mkdir(parents=True)
        (root / ITEMS_DIR).mkdir(parents=True, exist_ok=True)

        config = WorkspaceConfig(name=name)
        save_config(worky_dir / CONFIG_FILE, config)

        log.info("Initialized workspace", path=str(root))
        return cls(root, config)

    @classmethod
    def open(cls, root: str | Path | None = None) -> "Workspace":
        """
        Open an existing workspace.

        Args:
            root: Workspace root; defaults to ``WORKY_WORKSPACE`` or the cwd

        Raises:
            WorkspaceNotFound: If no configuration exists under ``root``
        """
        root = Path(root) if root is not None else default_workspace_root()
        config_path = root / WORKY_DIR / CONFIG_FILE
        if not config_path.exists():
            raise WorkspaceNotFound(root)

        config = load_config(config_path)
        log.debug("Opened workspace", path=str(root))
        return cls(root, config)

    @property
    def root(self) -> Path:
        return self._root

    @property
    def config(self) -> WorkspaceConfig:
        return self._config

    @property
    def items_dir(self) -> Path:
        return self._root / ITEMS_DIR

    @property
    def locks_dir(self) -> Path:
        return self._root / WORKY_DIR / LOCKS_DIR

    def item_dir(self, slug: str) -> Path:
        return self.items_dir / slug

    # --- Identity ---

    @staticmethod
    def slug_from_uid(uid: str) -> str:
        """
        Extract the slug from a UID served by this backend.

        Raises:
            InvalidIdentifier: If the UID is malformed or not an ``fs`` UID
        """
        backend, slug = split_uid(uid)
        if backend != FS_BACKEND:
            raise InvalidIdentifier(f"unsupported backend '{backend}' in {uid!r}")
        if not validate_slug(slug):
            raise InvalidIdentifier(f"invalid slug in {uid!r}")
        return slug

    def _existing_slug(self, uid: str) -> str:
        slug = self.slug_from_uid(uid)
        if not (self.item_dir(slug) / META_FILE).exists():
            raise ItemNotFound(uid)
        return slug

    # --- Items ---

    def create_item(self, title: str, actor: str | None = None) -> WorkItem:
        """
        Create a new work item from a title.

        The UID is ``fs:<slug>`` where the slug is derived from the title.
        Distinct titles that normalize to the same slug collide.

        Raises:
            InvalidIdentifier: If the title yields an empty slug
            ItemExists: If the slug is already taken
        """
        slug = slugify(title)
        if not slug:
            raise InvalidIdentifier(f"title {title!r} produces an empty slug")
        uid = make_uid(slug)

        item_dir = self.item_dir(slug)
        self.items_dir.mkdir(parents=True, exist_ok=True)
        try:
            item_dir.mkdir()
        except FileExistsError:
            raise ItemExists(uid) from None

        event = WorkEvent.created(title).with_actor(actor)
        item = WorkItem(
            uid=uid,
            title=title,
            state=self._config.defaults.state,
            labels=list(self._config.defaults.labels),
            created_at=event.timestamp,
        )

        try:
            (item_dir / ARTIFACTS_DIR).mkdir()
            self._write_meta(slug, _encode_meta(item))
            (item_dir / NOTES_FILE).write_text(f"# {title}\n\n", encoding="utf-8")
            self.append_event(slug, event)
        except Exception:
            # No partial item may hold the slug.
            shutil.rmtree(item_dir, ignore_errors=True)
            raise

        log.info("Created work item", uid=uid, title=title)
        return item

    def get_item(self, uid: str) -> WorkItem:
        """
        Load an item snapshot.

        Raises:
            ItemNotFound: If the item or its snapshot is missing or unreadable
            SerializationError: If the snapshot content is malformed
        """
        return self._read_meta(uid, self.slug_from_uid(uid))

    def list_items(self, filter: ItemFilter | None = None) -> list[WorkItem]:
        """
        List items, newest update first.

        Items whose snapshot cannot be read are skipped and logged.
        """
        if not self.items_dir.exists():
            return []

        items: list[WorkItem] = []
        for entry in sorted(self.items_dir.iterdir()):
            if not entry.is_dir() or not (entry / META_FILE).exists():
                continue
            try:
                item = self._read_meta(make_uid(entry.name), entry.name)
            except (WorkyError, OSError) as e:
                log.warning("Skipping unreadable item", slug=entry.name, error=str(e))
                continue
            if filter is None or filter.matches(item):
                items.append(item)

        items.sort(key=lambda item: item.updated_at, reverse=True)
        return items

    def update_item(
        self,
        uid: str,
        operations: Iterable[SetOperation | str],
        actor: str | None = None,
    ) -> WorkItem:
        """
        Apply set operations to an item and record one event per change.

        Args:
            uid: Work item UID
            operations: ``SetOperation`` objects or ``"path=value"`` strings,
                applied in order
            actor: Attribution stamped on the generated events

        Raises:
            ItemNotFound: If the item does not exist
            InvalidPath: If an operation is malformed or unresolvable
            ValidationError: If the result changes uid/created_at or adds
                unknown top-level keys
        """
        ops = coerce_operations(operations)

        def transform(document: dict[str, Any]) -> Any:
            document, _ = apply_set_operations(document, ops)
            return document

        item = self._mutate(uid, transform, actor)
        log.info("Updated work item", uid=uid, operations=[str(op) for op in ops])
        return item

    def patch_item(self, uid: str, patch: Any, actor: str | None = None) -> WorkItem:
        """Apply an RFC 7396 merge patch through the same pipeline as ``update_item``."""

        def transform(document: dict[str, Any]) -> Any:
            return apply_merge_patch(document, patch)

        item = self._mutate(uid, transform, actor)
        log.info("Patched work item", uid=uid)
        return item

    def _mutate(
        self,
        uid: str,
        transform: Callable[[dict[str, Any]], Any],
        actor: str | None,
    ) -> WorkItem:
        slug = self.slug_from_uid(uid)
        with item_lock(self.locks_dir, slug):
            current = self._read_meta(uid, slug)
            old_doc = current.to_dict()
            updated = self._rebuild(old_doc, transform(copy.deepcopy(old_doc)))

            events = [event.with_actor(actor) for event in events_for_changes(old_doc, updated.to_dict())]
            if not events:
                return updated

            updated.touch(events[-1].timestamp)
            meta_text = _encode_meta(updated)

            # Log first, then snapshot: a crash in between leaves events
            # without their snapshot, never the reverse.
            self.append_events(slug, events)
            self._write_meta(slug, meta_text)

        log.debug("Recorded changes", uid=uid, event_count=len(events))
        return updated

    @staticmethod
    def _rebuild(old_doc: dict[str, Any], new_doc: Any) -> WorkItem:
        if not isinstance(new_doc, dict):
            raise ValidationError("work item document must remain an object")

        unknown = set(new_doc) - set(DOCUMENT_KEYS)
        if unknown:
            raise ValidationError(f"unknown work item fields: {sorted(unknown)}")
        for key in ("uid", "created_at"):
            if new_doc.get(key) != old_doc[key]:
                raise ValidationError(f"{key} is immutable")

        _check_field_keys(new_doc.get("fields"), "fields")

        new_doc["updated_at"] = old_doc["updated_at"]
        return WorkItem.from_dict(new_doc)

    # --- Labels ---

    def add_label(self, uid: str, label: str, actor: str | None = None) -> WorkItem:
        """Attach a label, recording LABEL_ADDED. No-op if already present."""
        return self._change_label(uid, label, actor, add=True)

    def remove_label(self, uid: str, label: str, actor: str | None = None) -> WorkItem:
        """Detach a label (ignoring case), recording LABEL_REMOVED. No-op if absent."""
        return self._change_label(uid, label, actor, add=False)

    def _change_label(self, uid: str, label: str, actor: str | None, add: bool) -> WorkItem:
        if not label.strip():
            raise ValidationError("label must not be empty")

        slug = self.slug_from_uid(uid)
        with item_lock(self.locks_dir, slug):
            item = self._read_meta(uid, slug)
            changed = item.add_label(label) if add else item.remove_label(label)
            if not changed:
                return item

            event = WorkEvent.label_added(label) if add else WorkEvent.label_removed(label)
            event = event.with_actor(actor)
            item.touch(event.timestamp)
            meta_text = _encode_meta(item)
            self.append_event(slug, event)
            self._write_meta(slug, meta_text)

        log.info("Changed labels", uid=uid, label=label, added=add)
        return item

    # --- Log-only entries ---

    def add_comment(self, uid: str, message: str, actor: str | None = None) -> WorkEvent:
        """Append a COMMENT_ADDED event; the snapshot is not touched."""
        slug = self._existing_slug(uid)
        event = WorkEvent.comment(message).with_actor(actor)
        with item_lock(self.locks_dir, slug):
            self.append_event(slug, event)
        return event

    def record_ai_action(
        self,
        uid: str,
        tool: str,
        action: str,
        details: Any = None,
        actor: str | None = None,
    ) -> WorkEvent:
        """Append an AI_ACTION event attributing a change to an external tool."""
        slug = self._existing_slug(uid)
        event = WorkEvent.ai_action(tool, action, details).with_actor(actor)
        with item_lock(self.locks_dir, slug):
            self.append_event(slug, event)
        return event

    def recent_comments(self, uid: str, limit: int = 5) -> list[WorkEvent]:
        """Return the last ``limit`` comments, oldest first."""
        if limit <= 0:
            return []
        comments = [
            event for event in self.read_events(uid)
            if event.event_type == EventType.COMMENT_ADDED
        ]
        return comments[-limit:]

    def read_notes(self, uid: str) -> str:
        slug = self._existing_slug(uid)
        notes_file = self.item_dir(slug) / NOTES_FILE
        return notes_file.read_text(encoding="utf-8") if notes_file.exists() else ""

    # --- Event log ---

    def append_event(self, slug: str, event: WorkEvent) -> None:
        """Append one event to an item's log."""
        self.append_events(slug, [event])

    def append_events(self, slug: str, events: Iterable[WorkEvent]) -> None:
        events = list(events)
        if not events:
            return
        if not validate_slug(slug) or not self.item_dir(slug).is_dir():
            raise ItemNotFound(make_uid(slug))
        eventlog.append_events(self.item_dir(slug) / EVENTS_FILE, events)
        for event in events:
            log.debug("Appended event", slug=slug, event_type=event.event_type.value)

    def read_events(
        self,
        uid: str,
        since: datetime | None = None,
        legacy: bool = False,
    ) -> list[WorkEvent]:
        """
        Read an item's history in append order.

        Args:
            uid: Work item UID
            since: Only events at or after this time; None means all
            legacy: Classify payloads by shape, for logs written by older tools
        """
        slug = self.slug_from_uid(uid)
        if not self.item_dir(slug).is_dir():
            raise ItemNotFound(uid)
        return eventlog.read_events(self.item_dir(slug) / EVENTS_FILE, since=since, legacy=legacy)

    # --- Snapshot I/O ---

    def _read_meta(self, uid: str, slug: str) -> WorkItem:
        meta_path = self.item_dir(slug) / META_FILE
        try:
            content = meta_path.read_text(encoding="utf-8")
        except OSError:
            raise ItemNotFound(uid) from None
        except UnicodeDecodeError as e:
            raise SerializationError(f"snapshot for {uid} is not UTF-8: {e}") from e

        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise SerializationError(f"invalid snapshot for {uid}: {e}") from e
        return WorkItem.from_dict(data)

    def _write_meta(self, slug: str, content: str) -> None:
        meta_path = self.item_dir(slug) / META_FILE
        tmp_path = meta_path.with_suffix(".yml.tmp")
        tmp_path.write_text(content, encoding="utf-8")
        tmp_path.replace(meta_path)
