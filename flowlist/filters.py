"""Search, priority and tag filtering over the task collection."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace

from flowlist.models import FilterState, PriorityFilter, Task


def matches_search(task: Task, search: str) -> bool:
    """Case-insensitive substring match on title or description."""
    if not search:
        return True
    needle = search.lower()
    if needle in task.title.lower():
        return True
    return task.description is not None and needle in task.description.lower()


def matches_tags(task: Task, required: Iterable[str]) -> bool:
    """A task matches only if it carries every required tag."""
    return all(tag in task.tags for tag in required)


def filter_tasks(tasks: Iterable[Task], state: FilterState | None = None) -> list[Task]:
    """Return the visible subset, in collection order."""
    if state is None:
        state = FilterState()
    return [
        t for t in tasks
        if matches_search(t, state.search)
        and state.priority.matches(t.priority)
        and matches_tags(t, state.tags)
    ]


def all_tags(tasks: Iterable[Task]) -> list[str]:
    """Every tag in use, in order of first appearance."""
    seen: dict[str, None] = {}
    for task in tasks:
        for tag in task.tags:
            seen.setdefault(tag, None)
    return list(seen)


def toggle_tag(state: FilterState, tag: str) -> FilterState:
    """Add the tag to the required set, or remove it if already selected."""
    tags = state.tags - {tag} if tag in state.tags else state.tags | {tag}
    return replace(state, tags=frozenset(tags))


def build_filter_state(
    search: str | None = None,
    priority: str | None = None,
    tags: Iterable[str] | None = None,
) -> FilterState:
    """Build a FilterState from loose query values. Raises ValueError on bad priority."""
    return FilterState(
        search=search or "",
        priority=PriorityFilter((priority or PriorityFilter.ALL).lower()),
        tags=frozenset(t.strip() for t in (tags or []) if t and t.strip()),
    )
