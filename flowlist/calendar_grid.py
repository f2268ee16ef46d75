"""Month calendar grid: six Sunday-first weeks with tasks bucketed by due date."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, timedelta

from flowlist.models import CalendarDay, Task

GRID_DAYS = 42  # 6 weeks covers any month


def grid_start(year: int, month: int) -> date:
    """The Sunday on or before the first day of the month."""
    first = date(year, month, 1)
    # date.weekday(): Monday=0 .. Sunday=6
    return first - timedelta(days=(first.weekday() + 1) % 7)


def build_month_grid(
    year: int,
    month: int,
    tasks: Iterable[Task],
    today: date | None = None,
) -> list[CalendarDay]:
    """Build the 42-day grid for a month.

    Raises ValueError for an invalid month, or one whose grid spills past
    the supported date range (January 1 / December 9999).
    """
    try:
        start = grid_start(year, month)
        start + timedelta(days=GRID_DAYS - 1)  # last cell must be representable too
    except OverflowError as e:
        raise ValueError(f"Calendar grid for {year}-{month:02d} is out of range") from e
    days = [
        CalendarDay(
            date=start + timedelta(days=i),
            is_current_month=(start + timedelta(days=i)).month == month,
            is_today=today is not None and start + timedelta(days=i) == today,
        )
        for i in range(GRID_DAYS)
    ]
    by_date = {d.date: d for d in days}
    for task in tasks:
        if task.due_date is not None and task.due_date in by_date:
            by_date[task.due_date].tasks.append(task)
    return days


def tasks_for_date(tasks: Iterable[Task], day: date) -> list[Task]:
    """Tasks due on the given day, in collection order."""
    return [t for t in tasks if t.due_date == day]


def next_month(year: int, month: int) -> tuple[int, int]:
    if month == 12:
        return year + 1, 1
    return year, month + 1


def previous_month(year: int, month: int) -> tuple[int, int]:
    if month == 1:
        return year - 1, 12
    return year, month - 1
