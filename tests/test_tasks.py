"""Tests for flowlist/tasks.py — validation, CRUD, toggling, persistence."""

import json
from datetime import date, timedelta

import pytest

from flowlist.errors import StorageReadError, StorageWriteError, TaskNotFoundError, ValidationError
from flowlist.models import Priority
from flowlist.storage import MemoryStorage
from flowlist.tasks import (
    DEFAULT_STORAGE_KEY,
    TaskStore,
    deserialize_tasks,
    find_task,
    load_store,
    serialize_tasks,
    validate_task,
)

from .fakes import NOW, FakeClock, make_task


class FailingStorage(MemoryStorage):
    def set(self, key: str, value: str) -> None:
        raise StorageWriteError("disk full", key=key)


def _assert_completion_invariant(store: TaskStore) -> None:
    for t in store.list():
        assert t.completed == (t.completed_at is not None)


# ── Validation ────────────────────────────────────────────────


def test_validate_task_valid():
    assert validate_task({"title": "Task", "priority": "high", "tags": ["a"], "dueDate": "2026-02-12"}) == []


def test_validate_task_missing_title():
    errors = validate_task({"priority": "low"})
    assert any("title" in e for e in errors)


def test_validate_task_blank_title():
    errors = validate_task({"title": "   "})
    assert any("title" in e for e in errors)


def test_validate_task_invalid_priority():
    errors = validate_task({"title": "Task", "priority": "urgent"})
    assert any("priority" in e for e in errors)


def test_validate_task_invalid_due_date():
    errors = validate_task({"title": "Task", "dueDate": "next week"})
    assert any("dueDate" in e for e in errors)


def test_validate_task_tags_must_be_strings():
    errors = validate_task({"title": "Task", "tags": ["a", 3]})
    assert any("tags" in e for e in errors)


def test_validate_task_requires_id_for_stored_records():
    errors = validate_task({"title": "Task"}, require_id=True)
    assert any("id" in e for e in errors)


# ── Add ───────────────────────────────────────────────────────


def test_add_assigns_id_and_created_at(store):
    task = store.add({"title": "Ship report", "priority": "high", "tags": ["work", "work"]})
    assert task.id
    assert task.created_at == NOW
    assert task.completed is False
    assert task.completed_at is None
    assert task.priority is Priority.HIGH
    assert task.tags == ["work"]
    assert store.list() == [task]


def test_add_generates_unique_ids(store):
    ids = {store.add({"title": f"Task {i}"}).id for i in range(20)}
    assert len(ids) == 20


def test_add_preserves_insertion_order(store):
    titles = ["first", "second", "third"]
    for title in titles:
        store.add({"title": title})
    assert [t.title for t in store.list()] == titles


def test_add_empty_title_rejected_before_mutation(store, storage):
    with pytest.raises(ValidationError) as exc:
        store.add({"title": ""})
    assert any("title" in e for e in exc.value.errors)
    assert store.list() == []
    assert storage.get(DEFAULT_STORAGE_KEY) is None


def test_add_rejects_store_assigned_fields(store):
    with pytest.raises(ValidationError, match="id"):
        store.add({"title": "Task", "id": "mine"})


def test_add_accepts_python_field_names(store):
    task = store.add({"title": "Task", "due_date": date(2026, 2, 20)})
    assert task.due_date == date(2026, 2, 20)


def test_add_completed_task_gets_timestamp(store):
    task = store.add({"title": "Already done", "completed": True})
    assert task.completed_at == NOW
    _assert_completion_invariant(store)


def test_add_persists_full_collection(store, storage):
    store.add({"title": "A"})
    store.add({"title": "B"})
    stored = json.loads(storage.get(DEFAULT_STORAGE_KEY))
    assert [r["title"] for r in stored] == ["A", "B"]


# ── Update ────────────────────────────────────────────────────


def test_update_task(store):
    task = store.add({"title": "Draft", "priority": "low"})
    updated = store.update(task.id, {"title": "Final", "priority": "high", "tags": ["x"]})
    assert updated.title == "Final"
    assert updated.priority is Priority.HIGH
    assert updated.tags == ["x"]
    assert updated.created_at == task.created_at
    assert store.get(task.id).title == "Final"


def test_update_task_not_found(store):
    store.add({"title": "A"})
    before = store.list()
    with pytest.raises(TaskNotFoundError):
        store.update("missing", {"title": "B"})
    assert store.list() == before


def test_update_rejects_immutable_fields(store):
    task = store.add({"title": "A"})
    with pytest.raises(ValidationError, match="createdAt"):
        store.update(task.id, {"created_at": "2020-01-01T00:00:00+00:00"})


def test_update_rejects_unknown_fields(store):
    task = store.add({"title": "A"})
    with pytest.raises(ValidationError, match="Unknown field"):
        store.update(task.id, {"colour": "red"})


def test_update_rejects_blank_title(store):
    task = store.add({"title": "A"})
    with pytest.raises(ValidationError):
        store.update(task.id, {"title": ""})
    assert store.get(task.id).title == "A"


def test_update_rejects_null_priority(store):
    task = store.add({"title": "A", "priority": "high"})
    with pytest.raises(ValidationError, match="priority cannot be null"):
        store.update(task.id, {"priority": None})
    assert store.get(task.id).priority == Priority.HIGH


def test_update_completed_keeps_invariant(store, clock):
    task = store.add({"title": "A"})
    clock.advance(hours=2)
    done = store.update(task.id, {"completed": True})
    assert done.completed_at == NOW + timedelta(hours=2)
    reopened = store.update(task.id, {"completed": False})
    assert reopened.completed_at is None
    _assert_completion_invariant(store)


def test_update_clears_due_date(store):
    task = store.add({"title": "A", "dueDate": "2026-02-12"})
    assert store.update(task.id, {"dueDate": None}).due_date is None


# ── Toggle ────────────────────────────────────────────────────


def test_toggle_sets_and_clears_completed_at(store, clock):
    task = store.add({"title": "A"})
    clock.advance(minutes=30)
    toggled = store.toggle(task.id)
    assert toggled.completed is True
    assert toggled.completed_at == NOW + timedelta(minutes=30)
    toggled = store.toggle(task.id)
    assert toggled.completed is False
    assert toggled.completed_at is None


def test_toggle_twice_restores_state(store):
    task = store.add({"title": "A"})
    done = store.add({"title": "B", "completed": True})
    for t in (task, done):
        before = (t.completed, t.completed_at is None)
        store.toggle(t.id)
        store.toggle(t.id)
        after = store.get(t.id)
        assert (after.completed, after.completed_at is None) == before
    _assert_completion_invariant(store)


def test_toggle_not_found(store):
    with pytest.raises(TaskNotFoundError):
        store.toggle("missing")


# ── Delete ────────────────────────────────────────────────────


def test_delete_task(store, storage):
    a = store.add({"title": "A"})
    b = store.add({"title": "B"})
    store.delete(a.id)
    assert store.list() == [b]
    assert [r["id"] for r in json.loads(storage.get(DEFAULT_STORAGE_KEY))] == [b.id]


def test_delete_not_found_leaves_collection(store):
    store.add({"title": "A"})
    with pytest.raises(TaskNotFoundError):
        store.delete("missing")
    assert len(store.list()) == 1


def test_completed_and_pending_subsets(store):
    a = store.add({"title": "A"})
    b = store.add({"title": "B"})
    store.toggle(b.id)
    assert store.pending_tasks() == [a]
    assert [t.id for t in store.completed_tasks()] == [b.id]


def test_find_task():
    tasks = [make_task("a", "A"), make_task("b", "B")]
    assert find_task(tasks, "a").title == "A"
    assert find_task(tasks, "c") is None


# ── Load ──────────────────────────────────────────────────────


def test_load_absent_payload_is_empty(store):
    assert store.load() == []
    assert store.readable


def test_load_round_trips_dates(storage, clock):
    first = TaskStore(storage, clock=clock)
    task = first.add({"title": "A", "dueDate": "2026-02-14"})
    first.toggle(task.id)

    second = TaskStore(storage, clock=clock)
    loaded = second.load()
    assert loaded[0].due_date == date(2026, 2, 14)
    assert loaded[0].created_at == NOW
    assert loaded[0].completed_at == NOW


def test_load_malformed_payload_raises_and_keeps_data(clock):
    storage = MemoryStorage({DEFAULT_STORAGE_KEY: "{not json"})
    store = TaskStore(storage, clock=clock)
    with pytest.raises(StorageReadError):
        store.load()
    assert not store.readable
    with pytest.raises(StorageReadError):
        store.add({"title": "would overwrite"})
    assert storage.get(DEFAULT_STORAGE_KEY) == "{not json"


def test_load_invalid_record_raises(clock):
    payload = json.dumps([{"id": "a", "title": ""}])
    store = TaskStore(MemoryStorage({DEFAULT_STORAGE_KEY: payload}), clock=clock)
    with pytest.raises(StorageReadError, match="title"):
        store.load()


def test_discard_unreadable_backs_up_payload(clock):
    storage = MemoryStorage({DEFAULT_STORAGE_KEY: "[oops"})
    store = TaskStore(storage, clock=clock)
    with pytest.raises(StorageReadError):
        store.load()
    assert store.discard_unreadable() is True
    assert storage.get(f"{DEFAULT_STORAGE_KEY}.corrupt") == "[oops"
    assert json.loads(storage.get(DEFAULT_STORAGE_KEY)) == []
    store.add({"title": "fresh start"})
    assert len(store.list()) == 1


def test_discard_unreadable_noop_when_readable(store):
    store.add({"title": "keep me"})
    assert store.discard_unreadable() is False
    assert len(store.list()) == 1


def test_load_store_from_workspace(workspace):
    store = load_store(workspace)
    assert [t.id for t in store.list()] == ["report", "groceries"]
    assert store.get("groceries").completed_at is not None


# ── Write failures ────────────────────────────────────────────


def test_write_failure_marks_store_dirty(clock):
    store = TaskStore(FailingStorage(), clock=clock)
    with pytest.raises(StorageWriteError):
        store.add({"title": "A"})
    assert store.dirty is True
    assert len(store.list()) == 1


def test_save_after_failure_clears_dirty(clock):
    storage = FailingStorage()
    store = TaskStore(storage, clock=clock)
    with pytest.raises(StorageWriteError):
        store.add({"title": "A"})
    store._storage = MemoryStorage()
    store.save()
    assert store.dirty is False


# ── Import / export ───────────────────────────────────────────


def test_export_import_round_trip(store, clock):
    store.add({"title": "A", "description": "alpha", "priority": "high", "tags": ["x", "y"], "dueDate": "2026-02-12"})
    done = store.add({"title": "B"})
    store.toggle(done.id)
    exported = store.export_json()

    other = TaskStore(MemoryStorage(), clock=clock)
    other.import_json(exported)
    assert [t.to_dict() for t in other.list()] == [t.to_dict() for t in store.list()]


def test_import_invalid_payload_leaves_collection(store):
    store.add({"title": "A"})
    with pytest.raises(ValidationError):
        store.import_json('{"not": "a list"}')
    with pytest.raises(ValidationError, match="duplicate"):
        store.import_json(json.dumps([
            {"id": "same", "title": "A"},
            {"id": "same", "title": "B"},
        ]))
    assert [t.title for t in store.list()] == ["A"]


def test_import_web_export_format(store):
    payload = json.dumps([{
        "id": "0b5e",
        "title": "Legacy",
        "priority": "medium",
        "tags": [],
        "dueDate": "2026-02-20T00:00:00.000Z",
        "createdAt": "2026-02-01T08:00:00.000Z",
        "completed": True,
    }])
    tasks = store.import_json(payload)
    assert tasks[0].due_date == date(2026, 2, 20)
    # a done task without a timestamp falls back to its creation time
    assert tasks[0].completed_at == tasks[0].created_at


def test_import_recovers_unreadable_store(clock):
    storage = MemoryStorage({DEFAULT_STORAGE_KEY: "garbage"})
    store = TaskStore(storage, clock=clock)
    with pytest.raises(StorageReadError):
        store.load()
    store.import_json(serialize_tasks([make_task("a", "A")]))
    assert store.readable
    assert [t.id for t in deserialize_tasks(storage.get(DEFAULT_STORAGE_KEY))] == ["a"]


def test_clear_and_storage_usage(store):
    store.add({"title": "A"})
    assert store.storage_usage_bytes() > 2
    store.clear()
    assert store.list() == []
    assert store.storage_usage_bytes() == 2  # "[]"


def test_scenario_overdue_then_toggle(store, clock):
    from flowlist.analytics import compute_rates

    due = NOW.date()
    task = store.add({"title": "Ship report", "priority": "high", "dueDate": due})
    clock.advance(days=1)
    assert compute_rates(store.list(), clock()).overdue == 1
    store.toggle(task.id)
    assert compute_rates(store.list(), clock()).overdue == 0
    assert store.get(task.id).completed_at == clock()


def test_fake_clock_is_injected():
    clock = FakeClock()
    store = TaskStore(MemoryStorage(), clock=clock)
    assert store.now() == NOW
