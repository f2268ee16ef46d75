"""Typed dataclasses for the Flowlist data model.

All persisted models use from_dict/to_dict for JSON/YAML serialization.
camelCase in JSON is mapped to snake_case in Python.
Unknown keys are ignored; missing keys use defaults.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone, tzinfo
from enum import StrEnum
from typing import Any


# ── Primitives ────────────────────────────────────────────────


class Priority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class PriorityFilter(StrEnum):
    """Priority selector for the task list; ``all`` disables the predicate."""

    ALL = "all"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    def matches(self, priority: Priority) -> bool:
        return self is PriorityFilter.ALL or self.value == priority.value


def parse_date(value: Any) -> date | None:
    """Parse a due date.

    Accepts ``date`` objects, ``YYYY-MM-DD`` text, or a full ISO timestamp
    (the web export writes due dates that way), which is reduced to its day.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValueError(f"Invalid date: {value!r}")
    text = value.strip()
    if len(text) == 10:
        return date.fromisoformat(text)
    return parse_datetime(text).date()


def parse_datetime(value: Any) -> datetime | None:
    """Parse an ISO-8601 timestamp into an aware datetime (naive means UTC)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)
    else:
        raise ValueError(f"Invalid timestamp: {value!r}")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def normalize_tags(tags: Any) -> list[str]:
    """Collapse duplicates and blanks, keeping first-seen order."""
    out: list[str] = []
    for t in tags or []:
        t = str(t).strip()
        if t and t not in out:
            out.append(t)
    return out


# ── Tasks ─────────────────────────────────────────────────────


@dataclass
class Task:
    id: str = ""
    title: str = ""
    description: str | None = None
    priority: Priority = Priority.MEDIUM
    tags: list[str] = field(default_factory=list)
    due_date: date | None = None
    created_at: datetime | None = None
    completed: bool = False
    completed_at: datetime | None = None

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Task:
        created_at = parse_datetime(d.get("createdAt"))
        completed = bool(d.get("completed", False))
        completed_at = parse_datetime(d.get("completedAt")) if completed else None
        if completed and completed_at is None:
            # Older exports could mark a task done without a timestamp.
            completed_at = created_at
        description = d.get("description")
        return cls(
            id=str(d.get("id", "")),
            title=str(d.get("title", "")),
            description=str(description) if description else None,
            priority=Priority(d.get("priority") or Priority.MEDIUM),
            tags=normalize_tags(d.get("tags")),
            due_date=parse_date(d.get("dueDate")),
            created_at=created_at,
            completed=completed,
            completed_at=completed_at,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "priority": self.priority.value,
            "tags": list(self.tags),
            "dueDate": self.due_date.isoformat() if self.due_date else None,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "completed": self.completed,
            "completedAt": self.completed_at.isoformat() if self.completed_at else None,
        }

    def due_at(self, tz: tzinfo | None) -> datetime | None:
        """The due date as the instant its day starts in ``tz``."""
        if self.due_date is None:
            return None
        return datetime.combine(self.due_date, time.min, tzinfo=tz)

    def is_overdue(self, now: datetime) -> bool:
        """Incomplete and due before ``now``; a task due today is already overdue."""
        due = self.due_at(now.tzinfo)
        return not self.completed and due is not None and due < now


# ── Filters ───────────────────────────────────────────────────


@dataclass(frozen=True)
class FilterState:
    search: str = ""
    priority: PriorityFilter = PriorityFilter.ALL
    tags: frozenset[str] = frozenset()

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> FilterState:
        if not d or not isinstance(d, dict):
            return cls()
        return cls(
            search=str(d.get("search", "") or ""),
            priority=PriorityFilter(d.get("priority") or PriorityFilter.ALL),
            tags=frozenset(normalize_tags(d.get("tags"))),
        )


# ── Settings ──────────────────────────────────────────────────


@dataclass
class Settings:
    timezone: str = "UTC"
    log_level: str = "INFO"
    storage_key: str = "flowlist-tasks"

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Settings:
        if not d or not isinstance(d, dict):
            return cls()
        return cls(
            timezone=str(d.get("timezone", "UTC")),
            log_level=str(d.get("log_level", "INFO")).upper(),
            storage_key=str(d.get("storage_key", "flowlist-tasks")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "timezone": self.timezone,
            "log_level": self.log_level,
            "storage_key": self.storage_key,
        }


# ── Analytics ─────────────────────────────────────────────────


@dataclass
class TaskStats:
    total: int = 0
    completed: int = 0
    pending: int = 0
    completion_rate: float = 0.0
    overdue: int = 0
    upcoming: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "completed": self.completed,
            "pending": self.pending,
            "completionRate": round(self.completion_rate, 1),
            "overdue": self.overdue,
            "upcoming": self.upcoming,
        }


@dataclass
class TrendPoint:
    date: date
    completed: int = 0
    active: int = 0

    @property
    def label(self) -> str:
        return self.date.strftime("%b %d")

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "label": self.label,
            "completed": self.completed,
            "active": self.active,
        }


@dataclass
class DashboardSummary:
    generated_at: datetime | None = None
    stats: TaskStats = field(default_factory=TaskStats)
    priority_histogram: dict[Priority, int] = field(default_factory=dict)
    trend: list[TrendPoint] = field(default_factory=list)
    recently_completed: list[Task] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "generatedAt": self.generated_at.isoformat() if self.generated_at else None,
            "stats": self.stats.to_dict(),
            "priorityHistogram": {p.value: n for p, n in self.priority_histogram.items()},
            "trend": [p.to_dict() for p in self.trend],
            "recentlyCompleted": [t.to_dict() for t in self.recently_completed],
        }


# ── Calendar ──────────────────────────────────────────────────


@dataclass
class CalendarDay:
    date: date
    is_current_month: bool = False
    is_today: bool = False
    tasks: list[Task] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "isCurrentMonth": self.is_current_month,
            "isToday": self.is_today,
            "tasks": [t.to_dict() for t in self.tasks],
        }
