import pytest

from app.api.routes import todos as todo_routes
from app.services.todo_service import TodoService, todo_service


def _create(client, headers, **fields):
    payload = {"title": "Buy milk", "description": "", "due_date": "2026-11-01T09:00:00Z"}
    payload.update(fields)
    response = client.post("/v1/todos", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["todo"]


@pytest.fixture()
def alice(make_user, auth_headers):
    return auth_headers(make_user(name="Alice"))


@pytest.fixture()
def bob(make_user, auth_headers):
    return auth_headers(make_user(name="Bob"))


def test_create_returns_envelope_and_location(client, alice):
    response = client.post(
        "/v1/todos",
        json={
            "title": "Buy milk",
            "description": "two litres",
            "due_date": "2026-11-01T09:00:00Z",
            "is_completed": False,
        },
        headers=alice,
    )

    assert response.status_code == 201
    todo = response.json()["todo"]
    assert response.headers["Location"] == f"/v1/todos/{todo['id']}"
    assert todo["title"] == "Buy milk"
    assert todo["description"] == "two litres"
    assert todo["due_date"].startswith("2026-11-01T09:00:00")
    assert todo["is_completed"] is False


def test_create_then_get_round_trip(client, alice):
    created = _create(client, alice, title="Water plants", description="balcony", is_completed=True)

    response = client.get(f"/v1/todos/{created['id']}", headers=alice)
    assert response.status_code == 200
    assert response.json()["todo"] == created


def test_create_reports_every_invalid_field(client, alice):
    response = client.post("/v1/todos", json={"title": ""}, headers=alice)
    assert response.status_code == 422
    assert response.json()["error"] == {"title": "must be provided", "due_date": "must be provided"}


def test_create_rejects_long_title(client, alice):
    response = client.post(
        "/v1/todos",
        json={"title": "x" * 501, "due_date": "2026-11-01T09:00:00Z"},
        headers=alice,
    )
    assert response.status_code == 422
    assert "title" in response.json()["error"]


def test_create_rejects_wrong_json_types(client, alice):
    response = client.post(
        "/v1/todos",
        json={"title": "ok", "due_date": "next tuesday", "is_completed": "maybe"},
        headers=alice,
    )
    assert response.status_code == 422
    assert set(response.json()["error"]) == {"due_date", "is_completed"}


def test_list_envelope_and_defaults(client, alice):
    for i in range(12):
        _create(client, alice, title=f"todo {i}")

    response = client.get("/v1/todos", headers=alice)
    assert response.status_code == 200
    body = response.json()
    assert len(body["todos"]) == 10
    assert body["metadata"] == {
        "current_page": 1,
        "page_size": 10,
        "first_page": 1,
        "last_page": 2,
        "total_records": 12,
    }


def test_list_empty(client, alice):
    body = client.get("/v1/todos", headers=alice).json()
    assert body["todos"] == []
    assert body["metadata"]["total_records"] == 0
    assert body["metadata"]["last_page"] == 0


def test_list_reports_every_invalid_parameter(client, alice):
    response = client.get(
        "/v1/todos",
        params={"page": "0", "page_size": "101", "sort": "drop table", "order": "sideways"},
        headers=alice,
    )
    assert response.status_code == 422
    assert set(response.json()["error"]) == {"page", "page_size", "sort", "order"}


def test_list_rejects_non_integer_paging(client, alice):
    response = client.get("/v1/todos", params={"page": "two", "page_size": "ten"}, headers=alice)
    assert response.status_code == 422
    assert response.json()["error"] == {
        "page": "must be an integer value",
        "page_size": "must be an integer value",
    }


def test_list_search_sort_and_paginate(client, alice):
    for title in ("walk dog", "feed dog", "wash car", "dog food shopping"):
        _create(client, alice, title=title)

    response = client.get(
        "/v1/todos",
        params={"search": "dog", "sort": "title", "order": "asc", "page": "2", "page_size": "2"},
        headers=alice,
    )
    assert response.status_code == 200
    body = response.json()
    assert [todo["title"] for todo in body["todos"]] == ["walk dog"]
    assert body["metadata"]["total_records"] == 3
    assert body["metadata"]["last_page"] == 2


def test_list_is_owner_scoped(client, alice, bob):
    _create(client, alice, title="alice secret plan")
    _create(client, bob, title="bob secret plan")

    for params in ({}, {"search": "secret"}, {"sort": "title", "order": "asc"}):
        body = client.get("/v1/todos", params=params, headers=alice).json()
        assert [todo["title"] for todo in body["todos"]] == ["alice secret plan"]
        assert body["metadata"]["total_records"] == 1


def test_get_other_users_todo_is_not_found(client, alice, bob):
    todo = _create(client, alice)

    response = client.get(f"/v1/todos/{todo['id']}", headers=bob)
    assert response.status_code == 404
    assert response.json() == {"error": "the requested resource could not be found"}


@pytest.mark.parametrize("todo_id", ["abc", "0", "-3"])
def test_bad_id_is_not_found(client, alice, todo_id):
    assert client.get(f"/v1/todos/{todo_id}", headers=alice).status_code == 404


def test_partial_update_keeps_omitted_fields(client, alice):
    todo = _create(client, alice, title="Buy milk", description="two litres")

    response = client.put(f"/v1/todos/{todo['id']}", json={"is_completed": True}, headers=alice)
    assert response.status_code == 200
    updated = response.json()["todo"]
    assert updated["is_completed"] is True
    assert updated["title"] == "Buy milk"
    assert updated["description"] == "two litres"


def test_update_with_null_leaves_value(client, alice):
    todo = _create(client, alice, title="Buy milk")

    response = client.put(f"/v1/todos/{todo['id']}", json={"title": None, "description": "oat"}, headers=alice)
    assert response.status_code == 200
    assert response.json()["todo"]["title"] == "Buy milk"
    assert response.json()["todo"]["description"] == "oat"


def test_update_validates_resulting_record(client, alice):
    todo = _create(client, alice)

    response = client.put(f"/v1/todos/{todo['id']}", json={"title": ""}, headers=alice)
    assert response.status_code == 422
    assert response.json()["error"] == {"title": "must be provided"}


def test_update_other_users_todo_is_not_found(client, alice, bob):
    todo = _create(client, alice, title="mine")

    response = client.put(f"/v1/todos/{todo['id']}", json={"title": "yours"}, headers=bob)
    assert response.status_code == 404
    assert client.get(f"/v1/todos/{todo['id']}", headers=alice).json()["todo"]["title"] == "mine"


def test_delete(client, alice, bob):
    todo = _create(client, alice)

    assert client.delete(f"/v1/todos/{todo['id']}", headers=bob).status_code == 404

    response = client.delete(f"/v1/todos/{todo['id']}", headers=alice)
    assert response.status_code == 200
    assert response.json() == {"message": "todo successfully deleted"}

    assert client.get(f"/v1/todos/{todo['id']}", headers=alice).status_code == 404
    assert client.delete(f"/v1/todos/{todo['id']}", headers=alice).status_code == 404


def test_every_todo_route_requires_a_token(client):
    assert client.post("/v1/todos", json={"title": "x"}).status_code == 401
    assert client.get("/v1/todos").status_code == 401
    assert client.get("/v1/todos/1").status_code == 401
    assert client.put("/v1/todos/1", json={"title": "x"}).status_code == 401
    assert client.delete("/v1/todos/1").status_code == 401


def test_error_responses_still_vary_on_authorization(client, alice):
    for response in (
        client.get("/v1/todos", params={"page": "0"}, headers=alice),
        client.get("/v1/todos/999", headers=alice),
        client.put("/v1/todos/999", json={"title": "x"}, headers=alice),
    ):
        assert response.status_code in (404, 422)
        assert "Authorization" in response.headers["Vary"]


def test_todo_deleted_between_read_and_write_is_edit_conflict(client, alice, monkeypatch):
    todo = _create(client, alice, title="racy")

    def get_then_lose_race(db, todo_id, user_id):
        found = TodoService.get_todo(db, todo_id, user_id)
        # Keep the loaded copy, then let a concurrent request delete the row
        db.expunge(found)
        TodoService.delete_todo(db, todo_id, user_id)
        return found

    monkeypatch.setattr(todo_service, "get_todo", get_then_lose_race)

    response = client.put(f"/v1/todos/{todo['id']}", json={"title": "too late"}, headers=alice)
    assert response.status_code == 409
    assert response.json() == {
        "error": "unable to update the record due to an edit conflict, please try again"
    }
    assert "Authorization" in response.headers["Vary"]


def test_unchecked_sort_reaching_the_query_is_logged_server_error(client, alice, monkeypatch, caplog):
    monkeypatch.setattr(todo_routes, "validate_filters", lambda v, filters: None)

    response = client.get("/v1/todos", params={"sort": "hashed_password", "page": "1"}, headers=alice)

    assert response.status_code == 500
    assert response.json() == {"error": "the server encountered a problem and could not process your request"}
    assert "Authorization" in response.headers["Vary"]
    messages = [record.getMessage() for record in caplog.records]
    assert any("GET /v1/todos?sort=hashed_password&page=1" in message for message in messages)
    assert any("UnsafeSortError" in message for message in messages)
