from __future__ import annotations

import json
import logging
import os
import secrets
from datetime import date
from typing import Any

from fastapi import Body, Depends, FastAPI, HTTPException, Path as PathParam, Query, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from flowlist import (
    FlowlistError,
    StorageReadError,
    StorageWriteError,
    TaskNotFoundError,
    TaskStore,
    ValidationError,
    all_tags,
    build_filter_state,
    build_month_grid,
    compute_dashboard,
    create_store,
    filter_tasks,
    next_month,
    previous_month,
    tasks_for_date,
    workspace_root,
)

logger = logging.getLogger(__name__)

app = FastAPI(title="Flowlist API", version="0.1.0")


# ── Error mapping ─────────────────────────────────────────────

_ERROR_STATUS: dict[type[FlowlistError], int] = {
    TaskNotFoundError: status.HTTP_404_NOT_FOUND,
    ValidationError: status.HTTP_400_BAD_REQUEST,
    StorageReadError: status.HTTP_409_CONFLICT,
    StorageWriteError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


@app.exception_handler(FlowlistError)
def _flowlist_error(request: Request, exc: FlowlistError) -> JSONResponse:
    code = _ERROR_STATUS.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
    body: dict[str, Any] = {"ok": False, "error": str(exc)}
    if isinstance(exc, ValidationError):
        body["errors"] = exc.errors
    if code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=code, content=body)


# ── Auth ──────────────────────────────────────────────────────

security = HTTPBasic(auto_error=False)


def get_current_user(credentials: HTTPBasicCredentials | None = Depends(security)) -> str:
    expected_username = os.environ.get("FLOWLIST_USERNAME", "")
    expected_password = os.environ.get("FLOWLIST_PASSWORD", "")

    if not expected_username or not expected_password:
        return "guest"

    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Basic"},
        )

    correct_username = secrets.compare_digest(credentials.username.encode("utf-8"), expected_username.encode("utf-8"))
    correct_password = secrets.compare_digest(credentials.password.encode("utf-8"), expected_password.encode("utf-8"))

    if not (correct_username and correct_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Basic"},
        )

    return credentials.username


# ── Store dependencies ────────────────────────────────────────

def get_unloaded_store() -> TaskStore:
    """Workspace store without reading storage (import/discard work on corrupt data)."""
    return create_store(workspace_root())


def get_store(store: TaskStore = Depends(get_unloaded_store)) -> TaskStore:
    store.load()
    return store


# ── Endpoints ─────────────────────────────────────────────────

@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"ok": "true"}


@app.get("/api/tasks")
def api_list_tasks(
    search: str = "",
    priority: str = "all",
    tags: list[str] = Query(default=[]),
    username: str = Depends(get_current_user),
    store: TaskStore = Depends(get_store),
) -> dict[str, Any]:
    """Filtered task list plus the tag inventory."""
    try:
        state = build_filter_state(search, priority, tags)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid priority: {priority}")
    tasks = store.list()
    visible = filter_tasks(tasks, state)
    return {
        "tasks": [t.to_dict() for t in visible],
        "tags": all_tags(tasks),
        "total": len(tasks),
    }


@app.post("/api/tasks")
def api_create_task(
    payload: dict[str, Any] = Body(...),
    username: str = Depends(get_current_user),
    store: TaskStore = Depends(get_store),
) -> dict[str, Any]:
    """Create a new task."""
    task = store.add(payload)
    return {"ok": True, "task": task.to_dict()}


@app.delete("/api/tasks")
def api_clear_tasks(
    username: str = Depends(get_current_user),
    store: TaskStore = Depends(get_store),
) -> dict[str, Any]:
    """Delete every task."""
    store.clear()
    return {"ok": True}


@app.get("/api/tasks/{task_id}")
def api_get_task(
    task_id: str,
    username: str = Depends(get_current_user),
    store: TaskStore = Depends(get_store),
) -> dict[str, Any]:
    return {"task": store.get(task_id).to_dict()}


@app.patch("/api/tasks/{task_id}")
def api_update_task(
    task_id: str,
    payload: dict[str, Any] = Body(...),
    username: str = Depends(get_current_user),
    store: TaskStore = Depends(get_store),
) -> dict[str, Any]:
    """Apply a partial update."""
    task = store.update(task_id, payload)
    return {"ok": True, "task": task.to_dict()}


@app.post("/api/tasks/{task_id}/toggle")
def api_toggle_task(
    task_id: str,
    username: str = Depends(get_current_user),
    store: TaskStore = Depends(get_store),
) -> dict[str, Any]:
    task = store.toggle(task_id)
    return {"ok": True, "task": task.to_dict()}


@app.delete("/api/tasks/{task_id}")
def api_delete_task(
    task_id: str,
    username: str = Depends(get_current_user),
    store: TaskStore = Depends(get_store),
) -> dict[str, Any]:
    store.delete(task_id)
    return {"ok": True, "task_id": task_id}


@app.get("/api/tags")
def api_tags(
    username: str = Depends(get_current_user),
    store: TaskStore = Depends(get_store),
) -> dict[str, Any]:
    return {"tags": all_tags(store.list())}


@app.get("/api/analytics")
def api_analytics(
    username: str = Depends(get_current_user),
    store: TaskStore = Depends(get_store),
) -> dict[str, Any]:
    """Dashboard summary: rates, priority histogram, 7-day trend, recent completions."""
    return compute_dashboard(store.list(), store.now()).to_dict()


# Registered before /api/calendar/{year}/{month}, which would otherwise match "date".
@app.get("/api/calendar/date/{day}")
def api_calendar_day(
    day: date,
    username: str = Depends(get_current_user),
    store: TaskStore = Depends(get_store),
) -> dict[str, Any]:
    return {
        "date": day.isoformat(),
        "tasks": [t.to_dict() for t in tasks_for_date(store.list(), day)],
    }


@app.get("/api/calendar/{year}/{month}")
def api_calendar(
    year: int = PathParam(..., ge=1, le=9999),
    month: int = PathParam(..., ge=1, le=12),
    username: str = Depends(get_current_user),
    store: TaskStore = Depends(get_store),
) -> dict[str, Any]:
    """42-day grid for a month, with links to the neighbouring months."""
    try:
        grid = build_month_grid(year, month, store.list(), today=store.now().date())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    prev = previous_month(year, month)
    nxt = next_month(year, month)
    return {
        "year": year,
        "month": month,
        "days": [d.to_dict() for d in grid],
        "previous": {"year": prev[0], "month": prev[1]},
        "next": {"year": nxt[0], "month": nxt[1]},
    }


# ── Import / export ───────────────────────────────────────────

@app.get("/api/export")
def api_export(
    username: str = Depends(get_current_user),
    store: TaskStore = Depends(get_store),
) -> PlainTextResponse:
    filename = f"flowlist-tasks-{store.now().date().isoformat()}.json"
    return PlainTextResponse(
        store.export_json(),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.post("/api/import")
def api_import(
    payload: list[Any] = Body(...),
    username: str = Depends(get_current_user),
    store: TaskStore = Depends(get_unloaded_store),
) -> dict[str, Any]:
    """Replace all tasks with an exported payload."""
    tasks = store.import_json(json.dumps(payload))
    return {"ok": True, "count": len(tasks)}


@app.get("/api/storage")
def api_storage(
    username: str = Depends(get_current_user),
    store: TaskStore = Depends(get_unloaded_store),
) -> dict[str, Any]:
    """Storage usage, or the reason the stored data cannot be read."""
    try:
        store.load()
    except StorageReadError as e:
        return {"readable": False, "error": str(e)}
    size = store.storage_usage_bytes()
    return {"readable": True, "bytes": size, "kb": round(size / 1024, 2), "count": len(store.list())}


@app.post("/api/storage/discard")
def api_storage_discard(
    username: str = Depends(get_current_user),
    store: TaskStore = Depends(get_unloaded_store),
) -> dict[str, Any]:
    """Back up unreadable stored data and start from an empty list."""
    try:
        store.load()
    except StorageReadError as e:
        logger.warning("Discarding unreadable tasks: %s", e)
        store.discard_unreadable()
        return {"ok": True, "discarded": True, "backup_key": f"{store.key}.corrupt"}
    return {"ok": True, "discarded": False, "backup_key": None}
