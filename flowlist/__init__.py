"""Flowlist core library: task store and derived views.

Public API re-exports for convenient imports:
    from flowlist import TaskStore, filter_tasks, compute_trend, ...
"""

# Errors
from flowlist.errors import (
    FlowlistError,
    TaskNotFoundError,
    ValidationError,
    StorageReadError,
    StorageWriteError,
)

# Workspace & settings
from flowlist.workspace import (
    workspace_root,
    init_workspace,
    load_settings,
    save_settings,
    get_user_timezone,
    now_local,
    today_str,
    settings_path,
    data_dir,
    logs_dir,
)

# Storage
from flowlist.storage import (
    KeyValueStorage,
    FileStorage,
    MemoryStorage,
)

# Tasks
from flowlist.tasks import (
    TaskStore,
    validate_task,
    find_task,
    serialize_tasks,
    deserialize_tasks,
    create_store,
    load_store,
)

# Filtering
from flowlist.filters import (
    filter_tasks,
    all_tags,
    toggle_tag,
    build_filter_state,
)

# Analytics
from flowlist.analytics import (
    compute_rates,
    compute_histogram,
    compute_trend,
    recently_completed,
    compute_dashboard,
)

# Calendar
from flowlist.calendar_grid import (
    build_month_grid,
    tasks_for_date,
    next_month,
    previous_month,
)

# Models
from flowlist.models import (
    Priority,
    PriorityFilter,
    Task,
    FilterState,
    Settings,
    TaskStats,
    TrendPoint,
    DashboardSummary,
    CalendarDay,
)
