from __future__ import annotations

from uuid import UUID

from fastapi import HTTPException, status


def require_uuid(value: str | None, *, detail: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)
    try:
        return str(UUID(value.strip()))
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)
