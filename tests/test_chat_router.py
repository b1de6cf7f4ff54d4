import logging

import pytest
from fastapi.testclient import TestClient
from google.auth.exceptions import DefaultCredentialsError

from doubt_solver.core.errors import CompletionTimeout, RateLimited, SafetyBlocked, UpstreamError
from doubt_solver.services.cache import ResponseCache
from doubt_solver.services.solver import DoubtSolver
from fakes import FakeCompletion, FakeHistory

BODY = {"userId": "u1", "query": "A 2 kg mass accelerates at 5 m/s². What force acts on it?", "subject": "physics"}


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


def test_solve_returns_camel_case_payload(client, history):
    r = client.post("/api/chat", json=BODY)

    assert r.status_code == 200
    data = r.json()
    assert data["success"] is True
    assert data["cached"] is False
    assert data["finalAnswer"] == "10 N"
    assert [s["step"] for s in data["steps"]] == [1, 2, 3]
    assert data["steps"][0]["concept"] == "Identify the given values"
    assert data["metadata"]["subject"] == "physics"
    assert data["metadata"]["stepCount"] == 3
    assert isinstance(data["metadata"]["responseTimeMs"], int)

    # background task has run by the time TestClient returns
    assert len(history.records) == 1


def test_repeat_request_is_cached(client):
    client.post("/api/chat", json=BODY)
    r = client.post("/api/chat", json={**BODY, "subject": "PHYSICS"})
    assert r.json()["cached"] is True


@pytest.mark.parametrize("body, message", [
    ({**BODY, "userId": None}, "User ID required"),
    ({**BODY, "query": "hey"}, "Question too short (min 5 chars)"),
    ({**BODY, "query": "x" * 1501}, "Question too long (max 1500 chars)"),
    ({**BODY, "subject": "history"}, "Invalid subject"),
    ({}, "User ID required"),
])
def test_invalid_input(client, completion, body, message):
    r = client.post("/api/chat", json=body)

    assert r.status_code == 400
    assert r.json() == {"success": False, "errorKind": "InvalidInput", "message": message, "category": "bad-input"}
    assert completion.prompts == []


def test_malformed_body_is_invalid_input(client):
    r = client.post("/api/chat", content=b"not json", headers={"Content-Type": "application/json"})
    assert r.status_code == 400
    assert r.json()["errorKind"] == "InvalidInput"


@pytest.mark.parametrize("error, status, kind", [
    (CompletionTimeout(), 408, "Timeout"),
    (RateLimited(), 429, "RateLimited"),
    (SafetyBlocked(), 400, "SafetyBlocked"),
    (UpstreamError(), 502, "UpstreamError"),
])
def test_completion_failures(client, completion, history, error, status, kind):
    completion.error = error
    r = client.post("/api/chat", json=BODY)

    assert r.status_code == status
    data = r.json()
    assert data["success"] is False
    assert data["errorKind"] == kind
    assert data["message"] == error.message
    assert history.records == []


def test_history_newest_first_and_filtered(client):
    client.post("/api/chat", json=BODY)
    client.post("/api/chat", json={**BODY, "query": "Why do enzymes speed up reactions?", "subject": "biology"})
    client.post("/api/chat", json={**BODY, "userId": "someone-else"})

    r = client.get("/api/chat/history/u1")
    assert r.status_code == 200
    doubts = r.json()["doubts"]
    assert [d["subject"] for d in doubts] == ["biology", "physics"]
    assert set(doubts[0]) == {"queryText", "subject", "finalAnswer", "createdAt"}

    r = client.get("/api/chat/history/u1", params={"subject": "Physics", "limit": 5})
    assert [d["queryText"] for d in r.json()["doubts"]] == [BODY["query"]]


def test_history_limit_bounds(client):
    assert client.get("/api/chat/history/u1", params={"limit": 0}).status_code == 400


def test_history_failure(client):
    from doubt_solver.main import app
    from doubt_solver.routers.chat import get_history_repo

    app.dependency_overrides[get_history_repo] = lambda: FakeHistory(fail=True)
    r = client.get("/api/chat/history/u1")

    assert r.status_code == 500
    assert r.json()["message"] == "Failed to fetch history"


# =============================================================================
# Firestore unavailable
# =============================================================================

@pytest.fixture
def no_firestore_client(monkeypatch):
    from doubt_solver.main import app
    from doubt_solver.repositories import history_repo
    from doubt_solver.routers.chat import get_history_repo, get_solver

    def missing_credentials():
        raise DefaultCredentialsError("Could not automatically determine credentials.")

    monkeypatch.setattr(history_repo, "get_db", missing_credentials)
    get_solver.cache_clear()
    get_history_repo.cache_clear()
    app.dependency_overrides.clear()
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
    get_solver.cache_clear()
    get_history_repo.cache_clear()


def test_validation_still_runs_without_firestore(no_firestore_client):
    r = no_firestore_client.post("/api/chat", json={"userId": "u1", "query": "hello there", "subject": "foo"})

    assert r.status_code == 400
    assert r.json()["message"] == "Invalid subject"


def test_solve_succeeds_when_history_cannot_connect(no_firestore_client, caplog):
    from doubt_solver.main import app
    from doubt_solver.routers.chat import get_history_repo, get_solver

    solver = DoubtSolver(completion=FakeCompletion(), cache=ResponseCache(), history=get_history_repo())
    app.dependency_overrides[get_solver] = lambda: solver

    with caplog.at_level(logging.WARNING, logger="doubts.solver"):
        r = no_firestore_client.post("/api/chat", json=BODY)

    assert r.status_code == 200
    assert r.json()["finalAnswer"] == "10 N"
    assert "DB save failed" in caplog.text


def test_history_read_without_firestore_uses_error_envelope(no_firestore_client):
    r = no_firestore_client.get("/api/chat/history/u1")

    assert r.status_code == 500
    assert r.json() == {
        "success": False,
        "errorKind": "InternalError",
        "message": "Failed to fetch history",
        "category": "internal",
    }
