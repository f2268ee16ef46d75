"""Completion analytics for Flowlist.

All figures are recomputed from the current task collection and an
explicit reference instant ``now``. There is no stored history: the
per-day "active" count is reconstructed from ``created_at`` and
``completed_at``, which never change after they are set.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, time, timedelta

from flowlist.models import DashboardSummary, Priority, Task, TaskStats, TrendPoint

TREND_DAYS = 7
UPCOMING_DAYS = 7
RECENT_LIMIT = 5

# Chart order used by the dashboard.
HISTOGRAM_ORDER = (Priority.HIGH, Priority.MEDIUM, Priority.LOW)


def _start_of_day(moment: datetime) -> datetime:
    return datetime.combine(moment.date(), time.min, tzinfo=moment.tzinfo)


# ── Rates ─────────────────────────────────────────────────────


def compute_rates(tasks: Iterable[Task], now: datetime) -> TaskStats:
    """Totals, completion rate (percent), overdue and upcoming counts."""
    tasks = list(tasks)
    stats = TaskStats(total=len(tasks))
    stats.completed = sum(1 for t in tasks if t.completed)
    stats.pending = stats.total - stats.completed
    if stats.total:
        stats.completion_rate = stats.completed / stats.total * 100

    # Due dates count from the start of their day in now's timezone.
    horizon = now + timedelta(days=UPCOMING_DAYS)
    for t in tasks:
        due = t.due_at(now.tzinfo)
        if t.completed or due is None:
            continue
        if due < now:
            stats.overdue += 1
        elif due <= horizon:
            stats.upcoming += 1
    return stats


# ── Priority histogram ────────────────────────────────────────


def compute_histogram(tasks: Iterable[Task]) -> dict[Priority, int]:
    """Task count per priority; every bucket is present, even when zero."""
    histogram = {p: 0 for p in HISTOGRAM_ORDER}
    for t in tasks:
        histogram[t.priority] += 1
    return histogram


# ── Trend ─────────────────────────────────────────────────────


def compute_trend(
    tasks: Iterable[Task],
    now: datetime,
    days: int = TREND_DAYS,
) -> list[TrendPoint]:
    """Completed and active counts for each of the last ``days`` days, oldest first.

    A task is active on a day if it had been created by that moment and was
    either still open or completed no earlier than that day's start.
    """
    tasks = list(tasks)
    points = []
    for offset in range(days - 1, -1, -1):
        moment = now - timedelta(days=offset)
        start = _start_of_day(moment)
        end = start + timedelta(days=1)

        point = TrendPoint(date=moment.date())
        for t in tasks:
            if t.completed_at is not None and start <= t.completed_at < end:
                point.completed += 1
            if t.created_at is None or t.created_at > moment:
                continue
            if not t.completed or (t.completed_at is not None and t.completed_at >= start):
                point.active += 1
        points.append(point)
    return points


# ── Recently completed ────────────────────────────────────────


def recently_completed(tasks: Iterable[Task], limit: int = RECENT_LIMIT) -> list[Task]:
    """Completed tasks, most recently completed first."""
    done = [t for t in tasks if t.completed and t.completed_at is not None]
    done.sort(key=lambda t: t.completed_at, reverse=True)
    return done[:limit]


# ── Dashboard ─────────────────────────────────────────────────


def compute_dashboard(tasks: Iterable[Task], now: datetime) -> DashboardSummary:
    """Rates, histogram, trend and latest completions in one summary."""
    tasks = list(tasks)
    return DashboardSummary(
        generated_at=now,
        stats=compute_rates(tasks, now),
        priority_histogram=compute_histogram(tasks),
        trend=compute_trend(tasks, now),
        recently_completed=recently_completed(tasks),
    )
