from __future__ import annotations

import logging
from datetime import date as Date
from datetime import timedelta

import httpx
from fastapi import APIRouter, HTTPException, Query, Response, status

from habit_tracker.core.clock import TodayDep
from habit_tracker.core.config import settings
from habit_tracker.core.ids import require_uuid
from habit_tracker.routes.users import fetch_user
from habit_tracker.schemas.tasks import (
    CreateTaskRequest,
    DeleteFrozenResponse,
    FreezeDayRequest,
    StreakResponse,
    TaskKind,
    TaskRow,
    UpdateTaskRequest,
)
from habit_tracker.services.error_log import log_system_error
from habit_tracker.services.streaks import (
    classify_task_name,
    compute_streak,
    extract_task_records,
)
from habit_tracker.services.supabase_rest import StoreDep, SupabaseRestError

logger = logging.getLogger(__name__)

router = APIRouter()

TASK_FIELDS = "id,user_id,name,completed,date,kind,created_at"
FREEZE_TASK_NAME = "Frozen"
# Untyped legacy rows fall back to the name marker; a stored kind always wins.
_FREEZE_FILTER = (
    f"(kind.eq.{TaskKind.FREEZE.value},and(kind.is.null,name.ilike.*frozen*))"
)


@router.get("/tasks", response_model=list[TaskRow])
async def list_tasks(
    store: StoreDep,
    date: Date | None = Query(default=None, description="YYYY-MM-DD"),
    user_id: str | None = Query(default=None),
) -> list[TaskRow]:
    params: dict[str, str | int] = {"select": TASK_FIELDS, "order": "date.asc"}
    if date is not None:
        params["date"] = f"eq.{date.isoformat()}"
    if user_id is not None:
        uid = require_uuid(user_id, detail="Invalid user ID")
        params["user_id"] = f"eq.{uid}"
    rows = await store.select("tasks", params=params)
    return [TaskRow.model_validate(r) for r in rows]


@router.get("/tasks/user/{user_id}", response_model=list[TaskRow])
async def list_user_tasks(user_id: str, store: StoreDep) -> list[TaskRow]:
    uid = require_uuid(user_id, detail="Invalid user ID")
    rows = await store.select(
        "tasks",
        params={"select": TASK_FIELDS, "user_id": f"eq.{uid}", "order": "date.asc"},
    )
    return [TaskRow.model_validate(r) for r in rows]


@router.get("/tasks/streak/{user_id}", response_model=StreakResponse)
async def get_user_streak(user_id: str, store: StoreDep, today: TodayDep) -> StreakResponse:
    uid = require_uuid(user_id, detail="Invalid user ID")
    rows = await store.select(
        "tasks",
        params={
            "select": "id,name,completed,date,kind",
            "user_id": f"eq.{uid}",
            # Text-typed legacy timestamps sort after the bare date, so bound
            # by the next day rather than lte today.
            "date": f"lt.{(today + timedelta(days=1)).isoformat()}",
            # Newest first so the fetch limit only drops the oldest history.
            "order": "date.desc",
            "limit": settings.tasks_fetch_limit,
        },
    )
    streak = compute_streak(records=extract_task_records(rows), today=today)

    # Keep the stored streak fresh for list views.
    # This must be best-effort: never fail the read on auxiliary errors.
    try:
        await store.patch("users", params={"id": f"eq.{uid}"}, payload={"streak": streak})
    except (SupabaseRestError, httpx.HTTPError) as exc:
        meta: dict[str, str | int | None] = {"error_type": type(exc).__name__}
        if isinstance(exc, SupabaseRestError):
            meta.update(code=exc.code, status_code=exc.status_code)
        await log_system_error(
            store,
            route="/api/tasks/streak",
            message="user streak update failed (non-blocking)",
            user_id=uid,
            err=exc,
            meta=meta,
        )

    return StreakResponse(streak=streak, user_id=uid)


@router.post("/tasks", response_model=TaskRow, status_code=status.HTTP_201_CREATED)
async def create_task(body: CreateTaskRequest, store: StoreDep, today: TodayDep) -> TaskRow:
    uid = require_uuid(body.user_id, detail="Invalid user ID")
    if await fetch_user(store, uid) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    kind = body.kind or classify_task_name(body.name)
    row = {
        "user_id": uid,
        "name": body.name,
        "completed": body.completed,
        "date": (body.date or today).isoformat(),
        "kind": kind.value,
    }
    created = await store.insert_one("tasks", row=row)
    if not created:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create task",
        )
    return TaskRow.model_validate(created)


@router.post("/tasks/freeze", response_model=TaskRow)
async def freeze_day(
    body: FreezeDayRequest, response: Response, store: StoreDep, today: TodayDep
) -> TaskRow:
    uid = require_uuid(body.user_id, detail="Invalid user ID")
    date_iso = (body.date or today).isoformat()

    existing = await store.select(
        "tasks",
        params={
            "select": TASK_FIELDS,
            "user_id": f"eq.{uid}",
            "date": f"eq.{date_iso}",
            "or": _FREEZE_FILTER,
            "limit": 1,
        },
    )
    if existing:
        return TaskRow.model_validate(existing[0])

    if await fetch_user(store, uid) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    created = await store.insert_one(
        "tasks",
        row={
            "user_id": uid,
            "name": FREEZE_TASK_NAME,
            "completed": False,
            "date": date_iso,
            "kind": TaskKind.FREEZE.value,
        },
    )
    if not created:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to freeze day",
        )
    response.status_code = status.HTTP_201_CREATED
    return TaskRow.model_validate(created)


@router.patch("/tasks/{task_id}", response_model=TaskRow)
async def update_task(task_id: str, body: UpdateTaskRequest, store: StoreDep) -> TaskRow:
    tid = require_uuid(task_id, detail="Invalid task ID")
    fields = body.model_dump(exclude_unset=True, exclude_none=True, mode="json")
    if not fields:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No valid fields to update",
        )
    # A rename without an explicit kind re-tags the task from its new name.
    if "name" in fields and "kind" not in fields:
        fields["kind"] = classify_task_name(fields["name"]).value

    updated = await store.patch("tasks", params={"id": f"eq.{tid}"}, payload=fields)
    if not updated:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
    return TaskRow.model_validate(updated[0])


@router.delete("/tasks/frozen", response_model=DeleteFrozenResponse)
async def delete_frozen_tasks(
    store: StoreDep,
    date: Date | None = Query(default=None, description="YYYY-MM-DD"),
    user_id: str | None = Query(default=None),
) -> DeleteFrozenResponse:
    if date is None or not user_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Date and user_id are required",
        )
    uid = require_uuid(user_id, detail="Invalid user ID")
    deleted = await store.delete(
        "tasks",
        params={
            "user_id": f"eq.{uid}",
            "date": f"eq.{date.isoformat()}",
            "or": _FREEZE_FILTER,
        },
    )
    logger.info("Deleted %s freeze entries for user %s on %s", len(deleted), uid, date)
    return DeleteFrozenResponse(
        message="Frozen tasks deleted successfully", count=len(deleted)
    )


@router.delete("/tasks/{task_id}")
async def delete_task(task_id: str, store: StoreDep) -> dict[str, str]:
    tid = require_uuid(task_id, detail="Invalid task ID")
    deleted = await store.delete("tasks", params={"id": f"eq.{tid}"})
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
    return {"message": "Task deleted successfully"}
