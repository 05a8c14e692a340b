import json

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import text

from app.main import create_app


@pytest.fixture
def client(store):
    with TestClient(create_app(store)) as test_client:
        yield test_client


def test_root(client):
    body = client.get("/").json()
    assert body["service"] == "agentmem"
    assert body["store_kinds"] == ["event", "entity", "lesson", "principle", "summary"]


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["database"]["schema_up_to_date"] is True
    assert body["search_index"] == {"event": "ok", "entity": "ok", "lesson": "ok"}


def test_store_recall_and_search(client):
    response = client.post(
        "/agents/myagent/memories/event",
        json={"type": "work_session", "title": "HTTP event", "content": "Stored through the API"},
    )
    assert response.status_code == 200
    assert response.json() == {
        "status": "stored",
        "id": "2026-01-29-001",
        "timestamp": "2026-01-29T12:00:00.000000Z",
    }

    recalled = client.get(
        "/agents/myagent/memories/events",
        params={"filters": json.dumps({"tier": "hot"}), "limit": 5},
    ).json()
    assert recalled["count"] == 1
    assert recalled["results"][0]["title"] == "HTTP event"

    found = client.get("/agents/myagent/search", params={"q": "API", "types": "events,lessons"}).json()
    assert found["count"] == 1
    assert found["results"][0]["id"] == "2026-01-29-001"


def test_state_and_session(client):
    assert client.get("/agents/myagent/state").json() == {"content": "", "updated_at": None}

    response = client.put("/agents/myagent/state", json={"content": "Reviewing PRs"})
    assert response.json() == {"updated_at": "2026-01-29T12:00:00.000000Z"}

    session = client.get("/agents/myagent/session").json()
    assert session["state"]["content"] == "Reviewing PRs"
    assert session["counts"] == {"hot_events": 0, "principles": 0, "recent_lessons": 0}


def test_unknown_kind_is_a_client_error(client):
    response = client.post("/agents/myagent/memories/bogus", json={"type": "x"})
    assert response.status_code == 400
    assert response.json() == {
        "status": "error",
        "error_type": "unknown_kind",
        "tool": "store_memory",
        "field": "type",
        "message": "Unknown store type: bogus",
    }


def test_validation_errors_are_client_errors(client):
    missing = client.post("/agents/myagent/memories/entity", json={"type": "tool", "content": "no name"})
    assert missing.status_code == 400
    assert missing.json()["field"] == "name"

    malformed = client.get("/agents/myagent/memories/events", params={"filters": "{oops"})
    assert malformed.status_code == 400
    assert malformed.json()["error_type"] == "malformed_json"
    assert malformed.json()["tool"] == "recall_memories"

    no_content = client.put("/agents/myagent/state", json={})
    assert no_content.status_code == 400
    assert no_content.json()["field"] == "content"


def test_index_failure_is_a_server_error(client, store):
    with store.engine.begin() as conn:
        conn.execute(text("DROP TABLE events_fts"))

    response = client.post(
        "/agents/myagent/memories/event",
        json={"type": "work_session", "title": "Lost", "content": "never indexed"},
    )

    assert response.status_code == 500
    body = response.json()
    assert body["status"] == "error"
    assert body["error_type"] == "consistency_failure"
    assert body["tool"] == "store_memory"
    assert client.get("/agents/myagent/memories/events").json()["count"] == 0
