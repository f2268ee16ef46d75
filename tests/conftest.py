"""Shared test fixtures for Flowlist tests."""

from __future__ import annotations

import json
import os
from pathlib import Path

import pytest
import yaml

from flowlist.storage import MemoryStorage
from flowlist.tasks import TaskStore

from .fakes import FakeClock


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def store(storage: MemoryStorage, clock: FakeClock) -> TaskStore:
    return TaskStore(storage, clock=clock)


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Create a temporary workspace with settings and a stored task list."""
    root = tmp_path / "workspace"
    (root / "data").mkdir(parents=True)

    settings = {"timezone": "UTC", "log_level": "DEBUG"}
    (root / "settings.yaml").write_text(
        yaml.dump(settings, default_flow_style=False), encoding="utf-8"
    )

    tasks = [
        {
            "id": "report",
            "title": "Ship report",
            "description": "Quarterly numbers",
            "priority": "high",
            "tags": ["work"],
            "dueDate": "2026-02-10",
            "createdAt": "2026-02-01T09:00:00+00:00",
            "completed": False,
            "completedAt": None,
        },
        {
            "id": "groceries",
            "title": "Buy groceries",
            "description": None,
            "priority": "low",
            "tags": ["home", "errand"],
            "dueDate": "2026-02-13",
            "createdAt": "2026-02-05T18:30:00+00:00",
            "completed": True,
            "completedAt": "2026-02-09T12:00:00+00:00",
        },
    ]
    (root / "data" / "flowlist-tasks.json").write_text(
        json.dumps(tasks, indent=2), encoding="utf-8"
    )

    # Set env var
    os.environ["FLOWLIST_ROOT"] = str(root)
    yield root
    # Cleanup
    if "FLOWLIST_ROOT" in os.environ:
        del os.environ["FLOWLIST_ROOT"]
