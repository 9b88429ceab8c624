from __future__ import annotations

from fastapi import APIRouter, HTTPException, status

from habit_tracker.core.ids import require_uuid
from habit_tracker.schemas.users import CreateUserRequest, UpdateUserRequest, UserRow
from habit_tracker.services.supabase_rest import StoreDep, SupabaseRest

router = APIRouter()

USER_FIELDS = "id,name,email,avatar_url,streak,created_at"


async def fetch_user(store: SupabaseRest, user_id: str) -> dict | None:
    rows = await store.select(
        "users",
        params={"select": USER_FIELDS, "id": f"eq.{user_id}", "limit": 1},
    )
    return rows[0] if rows else None


@router.get("/users", response_model=list[UserRow])
async def list_users(store: StoreDep) -> list[UserRow]:
    rows = await store.select(
        "users", params={"select": USER_FIELDS, "order": "created_at.asc"}
    )
    return [UserRow.model_validate(r) for r in rows]


@router.get("/users/{user_id}", response_model=UserRow)
async def get_user(user_id: str, store: StoreDep) -> UserRow:
    uid = require_uuid(user_id, detail="Invalid user ID")
    row = await fetch_user(store, uid)
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return UserRow.model_validate(row)


@router.post("/users", response_model=UserRow, status_code=status.HTTP_201_CREATED)
async def create_user(body: CreateUserRequest, store: StoreDep) -> UserRow:
    row = {**body.model_dump(exclude_none=True), "streak": 0}
    created = await store.insert_one("users", row=row)
    if not created:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create user",
        )
    return UserRow.model_validate(created)


@router.patch("/users/{user_id}", response_model=UserRow)
async def update_user(user_id: str, body: UpdateUserRequest, store: StoreDep) -> UserRow:
    uid = require_uuid(user_id, detail="Invalid user ID")
    fields = body.model_dump(exclude_unset=True, exclude_none=True)
    if not fields:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No valid fields to update",
        )
    updated = await store.patch("users", params={"id": f"eq.{uid}"}, payload=fields)
    if not updated:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return UserRow.model_validate(updated[0])
