from __future__ import annotations

from fastapi.testclient import TestClient

from tests.factories import TEST_TASK_ID, TEST_USER_ID, TODAY, task_row, user_row


# ── Listing ───────────────────────────────────────────────────────────────────

def test_list_tasks_applies_optional_filters(client: TestClient, supabase_mock) -> None:
    supabase_mock["select"].return_value = [task_row()]

    response = client.get(
        "/api/tasks", params={"date": "2026-02-15", "user_id": TEST_USER_ID}
    )

    assert response.status_code == 200
    assert response.json()[0]["id"] == TEST_TASK_ID
    params = supabase_mock["select"].await_args.kwargs["params"]
    assert params["date"] == "eq.2026-02-15"
    assert params["user_id"] == f"eq.{TEST_USER_ID}"


def test_list_tasks_without_filters(client: TestClient, supabase_mock) -> None:
    response = client.get("/api/tasks")

    assert response.status_code == 200
    assert response.json() == []
    params = supabase_mock["select"].await_args.kwargs["params"]
    assert "date" not in params
    assert "user_id" not in params


def test_list_tasks_rejects_invalid_date(client: TestClient, supabase_mock) -> None:
    response = client.get("/api/tasks", params={"date": "2026-13-01"})
    assert response.status_code == 422


def test_list_user_tasks(client: TestClient, supabase_mock) -> None:
    supabase_mock["select"].return_value = [
        task_row(),
        task_row(id="t2", date="2026-02-14T10:00:00Z"),
    ]

    response = client.get(f"/api/tasks/user/{TEST_USER_ID}")

    assert response.status_code == 200
    assert [t["id"] for t in response.json()] == [TEST_TASK_ID, "t2"]


def test_list_user_tasks_rejects_invalid_id(client: TestClient, supabase_mock) -> None:
    response = client.get("/api/tasks/user/12345")

    assert response.status_code == 400
    assert response.json() == {"detail": "Invalid user ID"}


# ── Creation ──────────────────────────────────────────────────────────────────

def test_create_task_defaults_date_to_today(
    client: TestClient, supabase_mock, fixed_today
) -> None:
    supabase_mock["select"].return_value = [user_row()]
    supabase_mock["insert_one"].return_value = task_row()

    response = client.post("/api/tasks", json={"user_id": TEST_USER_ID, "name": " Read "})

    assert response.status_code == 201
    row = supabase_mock["insert_one"].await_args.kwargs["row"]
    assert row == {
        "user_id": TEST_USER_ID,
        "name": "Read",
        "completed": False,
        "date": TODAY.isoformat(),
        "kind": "habit",
    }


def test_create_task_classifies_legacy_frozen_name(
    client: TestClient, supabase_mock, fixed_today
) -> None:
    supabase_mock["select"].return_value = [user_row()]
    supabase_mock["insert_one"].return_value = task_row(name="Day Frozen", kind="freeze")

    response = client.post(
        "/api/tasks",
        json={"user_id": TEST_USER_ID, "name": "Day Frozen", "date": "2026-02-10"},
    )

    assert response.status_code == 201
    row = supabase_mock["insert_one"].await_args.kwargs["row"]
    assert row["kind"] == "freeze"
    assert row["date"] == "2026-02-10"


def test_create_task_explicit_kind_wins(
    client: TestClient, supabase_mock, fixed_today
) -> None:
    supabase_mock["select"].return_value = [user_row()]
    supabase_mock["insert_one"].return_value = task_row(name="Frozen peas", kind="habit")

    client.post(
        "/api/tasks",
        json={"user_id": TEST_USER_ID, "name": "Frozen peas", "kind": "habit"},
    )

    assert supabase_mock["insert_one"].await_args.kwargs["row"]["kind"] == "habit"


def test_create_task_for_unknown_user_returns_404(
    client: TestClient, supabase_mock, fixed_today
) -> None:
    supabase_mock["select"].return_value = []

    response = client.post("/api/tasks", json={"user_id": TEST_USER_ID, "name": "Read"})

    assert response.status_code == 404
    assert response.json() == {"detail": "User not found"}
    supabase_mock["insert_one"].assert_not_awaited()


def test_create_task_rejects_blank_name(client: TestClient, supabase_mock) -> None:
    response = client.post("/api/tasks", json={"user_id": TEST_USER_ID, "name": "   "})
    assert response.status_code == 422


# ── Update / delete ───────────────────────────────────────────────────────────

def test_update_task_marks_completed(client: TestClient, supabase_mock) -> None:
    supabase_mock["patch"].return_value = [task_row(completed=True)]

    response = client.patch(f"/api/tasks/{TEST_TASK_ID}", json={"completed": True})

    assert response.status_code == 200
    assert response.json()["completed"] is True
    called = supabase_mock["patch"].await_args.kwargs
    assert called["params"] == {"id": f"eq.{TEST_TASK_ID}"}
    assert called["payload"] == {"completed": True}


def test_update_task_rename_reclassifies(client: TestClient, supabase_mock) -> None:
    supabase_mock["patch"].return_value = [task_row(name="Frozen", kind="freeze")]

    client.patch(f"/api/tasks/{TEST_TASK_ID}", json={"name": "Frozen", "date": "2026-02-12"})

    payload = supabase_mock["patch"].await_args.kwargs["payload"]
    assert payload == {"name": "Frozen", "date": "2026-02-12", "kind": "freeze"}


def test_update_task_requires_fields(client: TestClient, supabase_mock) -> None:
    response = client.patch(f"/api/tasks/{TEST_TASK_ID}", json={})

    assert response.status_code == 400
    assert response.json() == {"detail": "No valid fields to update"}


def test_update_missing_task_returns_404(client: TestClient, supabase_mock) -> None:
    supabase_mock["patch"].return_value = []

    response = client.patch(f"/api/tasks/{TEST_TASK_ID}", json={"completed": True})

    assert response.status_code == 404
    assert response.json() == {"detail": "Task not found"}


def test_update_task_rejects_invalid_id(client: TestClient, supabase_mock) -> None:
    response = client.patch("/api/tasks/abc", json={"completed": True})

    assert response.status_code == 400
    assert response.json() == {"detail": "Invalid task ID"}


def test_delete_task(client: TestClient, supabase_mock) -> None:
    supabase_mock["delete"].return_value = [task_row()]

    response = client.delete(f"/api/tasks/{TEST_TASK_ID}")

    assert response.status_code == 200
    assert response.json() == {"message": "Task deleted successfully"}


def test_delete_missing_task_returns_404(client: TestClient, supabase_mock) -> None:
    response = client.delete(f"/api/tasks/{TEST_TASK_ID}")
    assert response.status_code == 404


# ── Freeze entries ────────────────────────────────────────────────────────────

def test_freeze_day_creates_marker(client: TestClient, supabase_mock, fixed_today) -> None:
    async def _select(*, table, params):
        if table == "users":
            return [user_row()]
        return []

    supabase_mock["select"].side_effect = _select
    supabase_mock["insert_one"].return_value = task_row(name="Frozen", kind="freeze")

    response = client.post("/api/tasks/freeze", json={"user_id": TEST_USER_ID})

    assert response.status_code == 201
    row = supabase_mock["insert_one"].await_args.kwargs["row"]
    assert row["name"] == "Frozen"
    assert row["kind"] == "freeze"
    assert row["date"] == TODAY.isoformat()
    lookup = supabase_mock["select"].await_args_list[0].kwargs
    assert lookup["table"] == "tasks"
    assert lookup["params"]["or"] == "(kind.eq.freeze,and(kind.is.null,name.ilike.*frozen*))"


def test_freeze_day_is_idempotent(client: TestClient, supabase_mock, fixed_today) -> None:
    existing = task_row(name="Frozen", kind="freeze", date="2026-02-14")
    supabase_mock["select"].return_value = [existing]

    response = client.post(
        "/api/tasks/freeze", json={"user_id": TEST_USER_ID, "date": "2026-02-14"}
    )

    assert response.status_code == 200
    assert response.json()["kind"] == "freeze"
    supabase_mock["insert_one"].assert_not_awaited()


def test_delete_frozen_tasks_reports_count(client: TestClient, supabase_mock) -> None:
    supabase_mock["delete"].return_value = [
        task_row(name="Frozen", kind="freeze"),
        task_row(id="t2", name="frozen", kind=None),
    ]

    response = client.delete(
        "/api/tasks/frozen", params={"date": "2026-02-15", "user_id": TEST_USER_ID}
    )

    assert response.status_code == 200
    assert response.json() == {"message": "Frozen tasks deleted successfully", "count": 2}
    params = supabase_mock["delete"].await_args.kwargs["params"]
    assert params["user_id"] == f"eq.{TEST_USER_ID}"
    assert params["date"] == "eq.2026-02-15"
    assert params["or"] == "(kind.eq.freeze,and(kind.is.null,name.ilike.*frozen*))"


def test_delete_frozen_tasks_requires_date_and_user(client: TestClient, supabase_mock) -> None:
    response = client.delete("/api/tasks/frozen", params={"date": "2026-02-15"})

    assert response.status_code == 400
    assert response.json() == {"detail": "Date and user_id are required"}
    supabase_mock["delete"].assert_not_awaited()


def test_freeze_day_ignores_habits_named_frozen(
    client: TestClient, supabase_mock, fixed_today
) -> None:
    # The store applies the filter, so emulate it: only typed freezes or
    # untyped rows with the legacy marker qualify as an existing freeze.
    habit = task_row(name="Frozen peas", kind="habit")

    async def _select(*, table, params):
        if table == "users":
            return [user_row()]
        freeze_filter = params.get("or", "")
        if "kind.eq.freeze" in freeze_filter and "kind.is.null" in freeze_filter:
            return []
        return [habit]

    supabase_mock["select"].side_effect = _select
    supabase_mock["insert_one"].return_value = task_row(id="t-freeze", name="Frozen", kind="freeze")

    response = client.post("/api/tasks/freeze", json={"user_id": TEST_USER_ID})

    assert response.status_code == 201
    assert response.json()["id"] == "t-freeze"
    assert supabase_mock["insert_one"].await_args.kwargs["row"]["kind"] == "freeze"
