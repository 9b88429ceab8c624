from __future__ import annotations

from datetime import date as Date
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TaskKind(str, Enum):
    HABIT = "habit"
    FREEZE = "freeze"


def _strip_name(value: str) -> str:
    normalized = value.strip()
    if not normalized:
        raise ValueError("name is required")
    return normalized


class CreateTaskRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    user_id: str = Field(min_length=1, max_length=64)
    name: str = Field(min_length=1, max_length=120)
    completed: bool = False
    date: Date | None = Field(default=None, description="YYYY-MM-DD; defaults to today")
    # None means "derive from name" for clients that still tag freezes by text.
    kind: TaskKind | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        return _strip_name(value)


class UpdateTaskRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, min_length=1, max_length=120)
    completed: bool | None = None
    date: Date | None = None
    kind: TaskKind | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str | None) -> str | None:
        return None if value is None else _strip_name(value)


class FreezeDayRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    user_id: str = Field(min_length=1, max_length=64)
    date: Date | None = Field(default=None, description="YYYY-MM-DD; defaults to today")


class TaskRow(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    user_id: str
    name: str
    completed: bool = False
    # Legacy rows may hold a full timestamp here.
    date: str
    kind: TaskKind | None = None
    created_at: str | None = None


class DeleteFrozenResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    message: str
    count: int


class StreakResponse(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    streak: int = Field(ge=0)
    user_id: str = Field(alias="userId")
