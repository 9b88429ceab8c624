from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CreateUserRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1, max_length=120)
    email: str | None = Field(default=None, max_length=254)
    avatar_url: str | None = Field(default=None, max_length=2048)

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("name is required")
        return normalized

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip().lower()
        if not normalized:
            return None
        if "@" not in normalized or normalized.startswith("@") or normalized.endswith("@"):
            raise ValueError("email is invalid")
        return normalized


class UpdateUserRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, min_length=1, max_length=120)
    email: str | None = Field(default=None, max_length=254)
    avatar_url: str | None = Field(default=None, max_length=2048)
    streak: int | None = Field(default=None, ge=0)


class UserRow(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    name: str
    email: str | None = None
    avatar_url: str | None = None
    streak: int = 0
    created_at: str | None = None
