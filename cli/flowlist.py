#!/usr/bin/env python3
"""Flowlist TUI: task list, calendar and dashboard in the terminal, powered by Textual."""

from __future__ import annotations

import logging
import sys

from rich.text import Text
from textual import on
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Vertical
from textual.reactive import reactive
from textual.widgets import ContentSwitcher, DataTable, Footer, Header, Input, Label, Static

from flowlist import (
    FilterState,
    FlowlistError,
    PriorityFilter,
    StorageReadError,
    TaskStore,
    all_tags,
    build_month_grid,
    compute_dashboard,
    create_store,
    filter_tasks,
    init_workspace,
    load_settings,
    logs_dir,
    next_month,
    previous_month,
    workspace_root,
)
from flowlist.logging_setup import setup_logging

logger = logging.getLogger(__name__)


CSS = """
#search, #new-task {
    margin: 0 1;
}

#tasks-table {
    height: 1fr;
}

.section-title {
    text-style: bold;
    padding: 0 1;
}

#calendar-grid, #dashboard-info {
    padding: 1 2;
}
"""

PRIORITY_CYCLE = [PriorityFilter.ALL, PriorityFilter.HIGH, PriorityFilter.MEDIUM, PriorityFilter.LOW]
WEEKDAY_HEADER = "  Sun   Mon   Tue   Wed   Thu   Fri   Sat"


def parse_search(text: str, priority: PriorityFilter) -> FilterState:
    """Split the search box into free text and ``#tag`` tokens."""
    words, tags = [], set()
    for token in text.split():
        if token.startswith("#") and len(token) > 1:
            tags.add(token[1:])
        else:
            words.append(token)
    return FilterState(search=" ".join(words), priority=priority, tags=frozenset(tags))


# ── Views ──────────────────────────────────────────────────────


class TasksView(Vertical):
    """Search box, task table and quick-add input."""

    def compose(self) -> ComposeResult:
        yield Input(placeholder="search… (#tag to require a tag)", id="search")
        yield DataTable(id="tasks-table", cursor_type="row")
        yield Input(placeholder="new task title, Enter to add", id="new-task")

    def on_mount(self) -> None:
        table: DataTable = self.query_one("#tasks-table", DataTable)
        table.add_columns("", "Title", "Priority", "Tags", "Due")


class CalendarView(Vertical):
    def compose(self) -> ComposeResult:
        yield Label("Calendar", classes="section-title", id="calendar-title")
        yield Static(id="calendar-grid")


class DashboardView(Vertical):
    def compose(self) -> ComposeResult:
        yield Label("Dashboard", classes="section-title")
        yield Static(id="dashboard-info")


# ── Main app ───────────────────────────────────────────────────


class FlowlistApp(App):
    """Flowlist: personal task tracker."""

    TITLE = "Flowlist"
    CSS = CSS

    BINDINGS = [
        Binding("t", "show('tasks')", "Tasks"),
        Binding("c", "show('calendar')", "Calendar"),
        Binding("d", "show('dashboard')", "Dashboard"),
        Binding("space", "toggle_task", "Done"),
        Binding("x", "delete_task", "Delete"),
        Binding("p", "cycle_priority", "Priority"),
        Binding("[", "previous_month", "Prev month"),
        Binding("]", "next_month", "Next month"),
        Binding("/", "focus_search", "Search"),
        Binding("a", "focus_add", "Add"),
        Binding("escape", "blur_focus", "Back"),
        Binding("q", "quit", "Quit"),
    ]

    current_view: reactive[str] = reactive("tasks")

    def __init__(self, store: TaskStore) -> None:
        super().__init__()
        self.store = store
        today = store.now().date()
        self._year, self._month = today.year, today.month
        self._priority = PriorityFilter.ALL

    def compose(self) -> ComposeResult:
        yield Header()
        with ContentSwitcher(initial="tasks"):
            yield TasksView(id="tasks")
            yield CalendarView(id="calendar")
            yield DashboardView(id="dashboard")
        yield Footer()

    def on_mount(self) -> None:
        self.refresh_views()

    # ── Rendering ──────────────────────────────────────────────

    def refresh_views(self) -> None:
        self._render_tasks()
        self._render_calendar()
        self._render_dashboard()

    def _filter_state(self) -> FilterState:
        text = self.query_one("#search", Input).value
        return parse_search(text, self._priority)

    def _render_tasks(self) -> None:
        table = self.query_one("#tasks-table", DataTable)
        table.clear()
        tasks = self.store.list()
        now = self.store.now()
        for t in filter_tasks(tasks, self._filter_state()):
            due = t.due_date.isoformat() if t.due_date else ""
            table.add_row(
                "✔" if t.completed else " ",
                Text(t.title, style="strike" if t.completed else ""),
                t.priority.value,
                Text(", ".join(t.tags)),
                Text(due, style="red" if t.is_overdue(now) else ""),
                key=t.id,
            )
        tags = all_tags(tasks)
        self.sub_title = f"priority: {self._priority.value}" + (
            f"  tags: {' '.join('#' + tag for tag in tags)}" if tags else ""
        )

    def _render_calendar(self) -> None:
        today = self.store.now().date()
        grid = build_month_grid(self._year, self._month, self.store.list(), today=today)
        lines = [WEEKDAY_HEADER]
        for week in range(6):
            cells = []
            for day in grid[week * 7:(week + 1) * 7]:
                count = f"·{len(day.tasks)}" if day.tasks else "  "
                cell = f"{day.date.day:>3}{count}"
                if day.is_today:
                    cell = f"[reverse]{cell}[/reverse]"
                elif not day.is_current_month:
                    cell = f"[dim]{cell}[/dim]"
                cells.append(cell)
            lines.append(" ".join(cells))
        self.query_one("#calendar-title", Label).update(
            f"Calendar: {grid[7].date.strftime('%B %Y')}"
        )
        self.query_one("#calendar-grid", Static).update("\n".join(lines))

    def _render_dashboard(self) -> None:
        summary = compute_dashboard(self.store.list(), self.store.now())
        stats = summary.stats
        lines = [
            f"Total: {stats.total}   Completed: {stats.completed}   Pending: {stats.pending}",
            f"Completion rate: {stats.completion_rate:.1f}%",
            f"Overdue: {stats.overdue}   Due in next 7 days: {stats.upcoming}",
            "",
            "By priority",
        ]
        for priority, n in summary.priority_histogram.items():
            lines.append(f"  {priority.value:<7} {'█' * n} {n}")
        lines += ["", "Last 7 days (done / active)"]
        for point in summary.trend:
            lines.append(f"  {point.label}  {point.completed:>3} / {point.active:<3}")
        lines += ["", "Recently completed"]
        if not summary.recently_completed:
            lines.append("  nothing completed yet")
        for t in summary.recently_completed:
            lines.append(f"  ✔ {t.title}  ({t.completed_at:%b %d %H:%M})")
        # Plain Text: task titles are user input, not markup.
        self.query_one("#dashboard-info", Static).update(Text("\n".join(lines)))

    # ── Events ─────────────────────────────────────────────────

    @on(Input.Changed, "#search")
    def _on_search(self, event: Input.Changed) -> None:
        self._render_tasks()

    @on(Input.Submitted, "#new-task")
    def _on_add(self, event: Input.Submitted) -> None:
        title = event.value.strip()
        if not title:
            return
        if self._run(lambda: self.store.add({"title": title})):
            event.input.value = ""

    def _selected_task_id(self) -> str | None:
        table = self.query_one("#tasks-table", DataTable)
        if self.current_view != "tasks" or table.row_count == 0:
            return None
        return table.coordinate_to_cell_key(table.cursor_coordinate).row_key.value

    def _run(self, operation) -> bool:
        """Run a store mutation, report failures, and redraw."""
        try:
            operation()
        except FlowlistError as e:
            logger.warning("Operation failed: %s", e)
            self.notify(str(e), title="Error", severity="error")
            return False
        finally:
            self.refresh_views()
        return True

    # ── Actions ────────────────────────────────────────────────

    def action_show(self, view: str) -> None:
        self.query_one(ContentSwitcher).current = view
        self.current_view = view

    def action_toggle_task(self) -> None:
        task_id = self._selected_task_id()
        if task_id:
            self._run(lambda: self.store.toggle(task_id))

    def action_delete_task(self) -> None:
        task_id = self._selected_task_id()
        if task_id:
            self._run(lambda: self.store.delete(task_id))

    def action_cycle_priority(self) -> None:
        i = PRIORITY_CYCLE.index(self._priority)
        self._priority = PRIORITY_CYCLE[(i + 1) % len(PRIORITY_CYCLE)]
        self._render_tasks()

    def action_previous_month(self) -> None:
        self._year, self._month = previous_month(self._year, self._month)
        self._render_calendar()

    def action_next_month(self) -> None:
        self._year, self._month = next_month(self._year, self._month)
        self._render_calendar()

    def action_focus_search(self) -> None:
        self.action_show("tasks")
        self.query_one("#search", Input).focus()

    def action_focus_add(self) -> None:
        self.action_show("tasks")
        self.query_one("#new-task", Input).focus()

    def action_blur_focus(self) -> None:
        self.set_focus(None)


# ── Entry point ────────────────────────────────────────────────


def main() -> None:
    root = init_workspace(workspace_root())
    settings = load_settings(root)
    setup_logging(log_dir=logs_dir(root), console=False, file_level=settings.log_level)

    store = create_store(root)
    try:
        store.load()
    except StorageReadError as e:
        print(f"Cannot read tasks: {e}")
        print("Your data was left untouched. Fix or import it, or use the API's /api/storage/discard.")
        sys.exit(1)

    app = FlowlistApp(store)
    app.run()


if __name__ == "__main__":
    main()
