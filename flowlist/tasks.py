"""Task store: validation, CRUD, completion toggling, and persistence for Flowlist."""

from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Callable, Iterable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from flowlist.errors import (
    StorageReadError,
    TaskNotFoundError,
    ValidationError,
)
from flowlist.models import Priority, Task, parse_date, parse_datetime
from flowlist.storage import FileStorage, KeyValueStorage
from flowlist.workspace import data_dir, get_user_timezone, load_settings

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

DEFAULT_STORAGE_KEY = "flowlist-tasks"


# ── Validation ────────────────────────────────────────────────


VALID_PRIORITIES = {p.value for p in Priority}
EDITABLE_FIELDS = {"title", "description", "priority", "tags", "dueDate", "completed"}
STORE_ASSIGNED_FIELDS = {"id", "createdAt", "completedAt"}
# A patch may clear description, tags or dueDate, but not these.
NON_NULLABLE_FIELDS = {"title", "priority", "completed"}

# Python-side spellings accepted alongside the stored camelCase keys.
_FIELD_ALIASES = {
    "due_date": "dueDate",
    "created_at": "createdAt",
    "completed_at": "completedAt",
}


def _normalize_keys(data: dict[str, Any]) -> dict[str, Any]:
    return {_FIELD_ALIASES.get(k, k): v for k, v in data.items()}


def validate_task(task: dict[str, Any], require_id: bool = False) -> list[str]:
    """Validate a task record and return list of errors (empty if valid)."""
    errors = []
    if require_id and not task.get("id"):
        errors.append("Missing required field: id")

    title = task.get("title")
    if title is None:
        errors.append("Missing required field: title")
    elif not isinstance(title, str) or not title.strip():
        errors.append("title must be a non-empty string")

    description = task.get("description")
    if description is not None and not isinstance(description, str):
        errors.append("description must be a string")

    priority = task.get("priority")
    if priority is not None and str(priority) not in VALID_PRIORITIES:
        errors.append(f"Invalid priority: {priority}")

    tags = task.get("tags")
    if tags is not None:
        if not isinstance(tags, (list, tuple, set, frozenset)):
            errors.append("tags must be a list of strings")
        elif not all(isinstance(t, str) for t in tags):
            errors.append("tags must be a list of strings")

    if "completed" in task and not isinstance(task["completed"], bool):
        errors.append("completed must be a boolean")

    try:
        parse_date(task.get("dueDate"))
    except ValueError:
        errors.append(f"Invalid dueDate: {task.get('dueDate')}")

    for key in ("createdAt", "completedAt"):
        try:
            parse_datetime(task.get(key))
        except ValueError:
            errors.append(f"Invalid {key}: {task.get(key)}")

    return errors


# ── Serialization ─────────────────────────────────────────────


def serialize_tasks(tasks: Iterable[Task], indent: int | None = None) -> str:
    """Serialize a collection as a JSON array of task records."""
    return json.dumps([t.to_dict() for t in tasks], indent=indent, ensure_ascii=False)


def deserialize_tasks(payload: str) -> list[Task]:
    """Parse a JSON array of task records. Raises ValidationError on any bad record."""
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        raise ValidationError([f"Invalid JSON: {e}"]) from e
    if not isinstance(data, list):
        raise ValidationError(["Expected a list of tasks"])

    errors = []
    seen: set[str] = set()
    for i, record in enumerate(data):
        if not isinstance(record, dict):
            errors.append(f"Task #{i}: expected an object")
            continue
        errors.extend(f"Task #{i}: {e}" for e in validate_task(record, require_id=True))
        task_id = str(record.get("id", ""))
        if task_id in seen:
            errors.append(f"Task #{i}: duplicate id {task_id}")
        seen.add(task_id)
    if errors:
        raise ValidationError(errors)
    return [Task.from_dict(record) for record in data]


# ── Store ─────────────────────────────────────────────────────


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TaskStore:
    """The canonical task collection, written through to key-value storage.

    Every successful mutation updates the in-memory list first and then
    persists the whole collection. ``dirty`` is True while the in-memory
    list has not been durably written.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        clock: Clock | None = None,
        key: str = DEFAULT_STORAGE_KEY,
    ) -> None:
        self._storage = storage
        self._clock = clock or _utc_now
        self._key = key
        self._tasks: list[Task] = []
        self._unreadable: str | None = None
        self.dirty = False

    @property
    def key(self) -> str:
        return self._key

    @property
    def readable(self) -> bool:
        return self._unreadable is None

    def now(self) -> datetime:
        return self._clock()

    # ── Loading & persistence ─────────────────────────────────

    def load(self) -> list[Task]:
        """Replace the in-memory collection with the persisted one."""
        try:
            raw = self._storage.get(self._key)
        except StorageReadError as e:
            self._unreadable = str(e)
            raise
        if raw is None or not raw.strip():
            self._tasks = []
        else:
            try:
                self._tasks = deserialize_tasks(raw)
            except ValidationError as e:
                self._unreadable = str(e)
                logger.error("Stored tasks unreadable key=%s: %s", self._key, e)
                raise StorageReadError(
                    f"Stored tasks under {self._key!r} are corrupt: {e}", key=self._key
                ) from e
        self._unreadable = None
        self.dirty = False
        logger.info("Loaded %d tasks key=%s", len(self._tasks), self._key)
        return self.list()

    def save(self) -> None:
        """Write the full collection to storage."""
        self._ensure_writable()
        self.dirty = True
        self._storage.set(self._key, serialize_tasks(self._tasks))
        self.dirty = False

    def discard_unreadable(self) -> bool:
        """Back up an unreadable payload to ``<key>.corrupt`` and start empty.

        Only acts after a failed ``load()``; returns False when there was
        nothing to discard.
        """
        if self._unreadable is None:
            return False
        raw = self._storage.get(self._key)
        if raw is not None:
            self._storage.set(f"{self._key}.corrupt", raw)
            logger.warning("Backed up unreadable tasks to %s.corrupt", self._key)
        self._unreadable = None
        self._tasks = []
        self.save()
        return True

    def _ensure_writable(self) -> None:
        if self._unreadable is not None:
            raise StorageReadError(
                f"Refusing to overwrite unreadable data under {self._key!r}; "
                "reload, import, or discard it first",
                key=self._key,
            )

    # ── CRUD ──────────────────────────────────────────────────

    def list(self) -> list[Task]:
        return list(self._tasks)

    def get(self, task_id: str) -> Task:
        task = find_task(self._tasks, task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    def add(self, data: dict[str, Any]) -> Task:
        """Create and append a new task. Raises ValidationError."""
        self._ensure_writable()
        record = _normalize_keys(data)
        errors = [f"Field is assigned by the store: {k}" for k in STORE_ASSIGNED_FIELDS if k in record]
        errors.extend(validate_task(record))
        if errors:
            raise ValidationError(errors)

        now = self._clock()
        task = Task.from_dict(record)
        task.id = str(uuid.uuid4())
        task.created_at = now
        task.completed_at = now if task.completed else None
        self._tasks.append(task)
        logger.info("Task added id=%s title=%r", task.id, task.title)
        self.save()
        return task

    def update(self, task_id: str, updates: dict[str, Any]) -> Task:
        """Apply a partial patch to a task. Raises TaskNotFoundError, ValidationError."""
        self._ensure_writable()
        task = self.get(task_id)
        patch = _normalize_keys(updates)

        errors = []
        for k in patch:
            if k in STORE_ASSIGNED_FIELDS:
                errors.append(f"Field cannot be updated: {k}")
            elif k not in EDITABLE_FIELDS:
                errors.append(f"Unknown field: {k}")
            elif k in NON_NULLABLE_FIELDS and patch[k] is None:
                errors.append(f"{k} cannot be null")
        if errors:
            raise ValidationError(errors)

        # Apply updates
        task_dict = task.to_dict()
        task_dict.update(patch)
        errors = validate_task(task_dict)
        if errors:
            raise ValidationError(errors)

        if "completed" in patch and patch["completed"] != task.completed:
            task_dict["completedAt"] = self._clock().isoformat() if patch["completed"] else None

        updated = Task.from_dict(task_dict)
        for i, t in enumerate(self._tasks):
            if t.id == task_id:
                self._tasks[i] = updated
                break
        logger.info("Task updated id=%s fields=%s", task_id, sorted(patch))
        self.save()
        return updated

    def toggle(self, task_id: str) -> Task:
        """Flip completion, stamping or clearing completed_at."""
        self._ensure_writable()
        task = self.get(task_id)
        task.completed = not task.completed
        task.completed_at = self._clock() if task.completed else None
        logger.info("Task toggled id=%s completed=%s", task_id, task.completed)
        self.save()
        return task

    def delete(self, task_id: str) -> Task:
        """Remove a task. Raises TaskNotFoundError if absent."""
        self._ensure_writable()
        for i, t in enumerate(self._tasks):
            if t.id == task_id:
                task = self._tasks.pop(i)
                logger.info("Task deleted id=%s", task_id)
                self.save()
                return task
        raise TaskNotFoundError(task_id)

    def completed_tasks(self) -> list[Task]:
        return [t for t in self._tasks if t.completed]

    def pending_tasks(self) -> list[Task]:
        return [t for t in self._tasks if not t.completed]

    # ── Bulk operations ───────────────────────────────────────

    def replace_all(self, tasks: Iterable[Task]) -> None:
        """Replace the whole collection and persist it."""
        tasks = list(tasks)
        ids = [t.id for t in tasks]
        if len(set(ids)) != len(ids):
            raise ValidationError(["Duplicate task ids"])
        self._tasks = tasks
        self._unreadable = None
        logger.info("Task collection replaced count=%d", len(tasks))
        self.save()

    def clear(self) -> None:
        self._ensure_writable()
        self._tasks = []
        logger.info("Task collection cleared")
        self.save()

    def export_json(self) -> str:
        return serialize_tasks(self._tasks, indent=2)

    def import_json(self, payload: str) -> list[Task]:
        """Replace the collection with a previously exported payload."""
        tasks = deserialize_tasks(payload)
        self.replace_all(tasks)
        return self.list()

    def storage_usage_bytes(self) -> int:
        return len(serialize_tasks(self._tasks).encode("utf-8"))


def find_task(tasks: Iterable[Task], task_id: str) -> Task | None:
    """Find a task by ID."""
    for t in tasks:
        if t.id == task_id:
            return t
    return None


# ── Workspace wiring ──────────────────────────────────────────


def create_store(root: Path | None = None) -> TaskStore:
    """Build a file-backed store for a workspace, with a clock in the user's timezone."""
    settings = load_settings(root)
    tz = get_user_timezone(root)
    return TaskStore(
        FileStorage(data_dir(root)),
        clock=lambda: datetime.now(tz),
        key=settings.storage_key,
    )


def load_store(root: Path | None = None) -> TaskStore:
    """Create the workspace store and load it. Raises StorageReadError."""
    store = create_store(root)
    store.load()
    return store
