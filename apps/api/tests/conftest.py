from __future__ import annotations

import os
from datetime import date as Date
from typing import Any
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

# Ensure CI can import app settings without a local .env file.
_ENV_DEFAULTS = {
    "APP_ENV": "test",
    "FRONTEND_URL": "http://localhost:3000",
    "SUPABASE_URL": "https://example.supabase.co",
    "SUPABASE_SERVICE_ROLE_KEY": "test-service-role-key",
    "APP_TIMEZONE": "UTC",
}
for _key, _value in _ENV_DEFAULTS.items():
    os.environ.setdefault(_key, _value)

from habit_tracker.core.clock import get_today
from habit_tracker.main import app
from habit_tracker.services.supabase_rest import SupabaseRest
from tests.factories import TODAY


@pytest.fixture(autouse=True)
def reset_test_state() -> None:
    app.dependency_overrides.clear()


@pytest.fixture
def client() -> TestClient:
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def fixed_today(client: TestClient) -> Date:
    app.dependency_overrides[get_today] = lambda: TODAY
    return TODAY


@pytest.fixture
def supabase_mock(monkeypatch: pytest.MonkeyPatch) -> dict[str, AsyncMock]:
    mocks = {
        "select": AsyncMock(return_value=[]),
        "insert_one": AsyncMock(return_value={}),
        "patch": AsyncMock(return_value=[]),
        "delete": AsyncMock(return_value=[]),
    }

    async def _select(self: SupabaseRest, table: str, *, params: dict[str, Any]) -> list[dict[str, Any]]:
        return await mocks["select"](table=table, params=params)

    async def _insert_one(self: SupabaseRest, table: str, *, row: dict[str, Any]) -> dict[str, Any]:
        return await mocks["insert_one"](table=table, row=row)

    async def _patch(
        self: SupabaseRest,
        table: str,
        *,
        params: dict[str, Any],
        payload: dict[str, Any],
    ) -> list[dict[str, Any]]:
        return await mocks["patch"](table=table, params=params, payload=payload)

    async def _delete(self: SupabaseRest, table: str, *, params: dict[str, Any]) -> list[dict[str, Any]]:
        return await mocks["delete"](table=table, params=params)

    monkeypatch.setattr(SupabaseRest, "select", _select)
    monkeypatch.setattr(SupabaseRest, "insert_one", _insert_one)
    monkeypatch.setattr(SupabaseRest, "patch", _patch)
    monkeypatch.setattr(SupabaseRest, "delete", _delete)
    return mocks

