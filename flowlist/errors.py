"""Error types raised by the Flowlist core.

None of these are fatal: callers catch them at the call site and report
back to the user.
"""

from __future__ import annotations


class FlowlistError(Exception):
    """Base class for all Flowlist errors."""


class TaskNotFoundError(FlowlistError):
    """No task with the given id exists in the collection."""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task not found: {task_id}")
        self.task_id = task_id


class ValidationError(FlowlistError):
    """Task data was rejected before any mutation happened."""

    def __init__(self, errors: list[str]) -> None:
        super().__init__("; ".join(errors))
        self.errors = list(errors)


class StorageReadError(FlowlistError):
    """A persisted payload exists but cannot be parsed.

    Distinct from "no data yet": the payload is kept as-is and the store
    refuses to overwrite it.
    """

    def __init__(self, message: str, key: str = "") -> None:
        super().__init__(message)
        self.key = key


class StorageWriteError(FlowlistError):
    """The durable write failed; in-memory changes may not survive a restart."""

    def __init__(self, message: str, key: str = "") -> None:
        super().__init__(message)
        self.key = key
