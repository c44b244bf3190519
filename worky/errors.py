"""Exception types raised by the worky item store."""

from __future__ import annotations

from pathlib import Path


class WorkyError(Exception):
    """Base class for all worky errors."""


class NotFoundError(WorkyError, LookupError):
    """Raised when a workspace or item does not exist."""


class WorkspaceNotFound(NotFoundError):
    """Raised when no workspace is initialized at a root."""

    def __init__(self, root: Path):
        self.root = Path(root)
        super().__init__(f"workspace not found at '{self.root}'")


class ItemNotFound(NotFoundError):
    """Raised when a work item cannot be located or read."""

    def __init__(self, uid: str):
        self.uid = uid
        super().__init__(f"work item not found: {uid}")


class AlreadyExistsError(WorkyError):
    """Raised when creating something that already exists."""


class WorkspaceExists(AlreadyExistsError):
    """Raised when initializing over an existing workspace."""

    def __init__(self, root: Path):
        self.root = Path(root)
        super().__init__(f"workspace already exists at '{self.root}'")


class ItemExists(AlreadyExistsError):
    """Raised when a title normalizes to a slug that is already taken."""

    def __init__(self, uid: str):
        self.uid = uid
        super().__init__(f"work item already exists: {uid}")


class InvalidPath(WorkyError, ValueError):
    """Raised for malformed dot-paths or traversal through a non-object."""


class InvalidIdentifier(WorkyError, ValueError):
    """Raised for malformed UIDs or titles that produce no slug."""


class SerializationError(WorkyError, ValueError):
    """Raised when a document cannot be encoded or decoded."""


class ValidationError(WorkyError, ValueError):
    """Raised when a mutation violates a field-level constraint."""


class LockTimeout(WorkyError):
    """Raised when an item lock cannot be acquired in time."""
