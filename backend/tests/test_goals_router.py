from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

import savebot.goals as goals_router
from savebot.services.goal_errors import PersistenceFailure
from savebot.services.goal_storage import InMemoryGoalStorage
from savebot.services.goals_service import GoalStore
from savebot.storage import get_goal_store


@pytest.fixture
def store() -> GoalStore:
    return GoalStore.open(InMemoryGoalStorage())


@pytest.fixture
def client(store) -> TestClient:
    app = FastAPI()
    app.include_router(goals_router.router)
    app.dependency_overrides[get_goal_store] = lambda: store
    return TestClient(app)


def test_store_not_initialized_returns_500() -> None:
    app = FastAPI()
    app.include_router(goals_router.router)

    response = TestClient(app).get("/users/1/goals")

    assert response.status_code == 500


def test_create_and_list_goals(client) -> None:
    created = client.post("/users/9/goals", json={"name": "Japan Trip", "target_amount": "1200"})
    listed = client.get("/users/9/goals")

    assert created.status_code == 201
    assert created.json() == {
        "name": "Japan Trip",
        "target_amount": "1200.00",
        "saved_amount": "0.00",
        "remaining_amount": "1200.00",
        "progress_pct": 0,
        "reached": False,
    }
    assert [item["name"] for item in listed.json()] == ["Japan Trip"]


def test_list_unknown_user_is_empty(client) -> None:
    response = client.get("/users/unknown/goals")

    assert response.status_code == 200
    assert response.json() == []


def test_create_errors(client) -> None:
    client.post("/users/9/goals", json={"name": "book", "target_amount": "20"})

    duplicate = client.post("/users/9/goals", json={"name": "Book", "target_amount": "30"})
    bad_target = client.post("/users/9/goals", json={"name": "Trip", "target_amount": "0"})

    assert duplicate.status_code == 409
    assert duplicate.json()["detail"]["code"] == "duplicate_name"
    assert bad_target.status_code == 422
    assert bad_target.json()["detail"]["code"] == "invalid_target"


def test_contribution_flow(client) -> None:
    client.post("/users/9/goals", json={"name": "Trip", "target_amount": "100"})

    first = client.post("/users/9/goals/contributions", json={"amount": "40"})
    second = client.post("/users/9/goals/contributions", json={"amount": "60", "goal_name": "trip"})

    assert first.status_code == 200
    assert first.json()["goal"]["saved_amount"] == "40.00"
    assert first.json()["reached_target"] is False
    assert second.json()["reached_target"] is True
    assert second.json()["newly_reached"] is True
    assert second.json()["goal"]["progress_pct"] == 100


def test_contribution_errors(client) -> None:
    no_goals = client.post("/users/9/goals/contributions", json={"amount": "10"})
    client.post("/users/9/goals", json={"name": "Trip", "target_amount": "100"})
    missing = client.post("/users/9/goals/contributions", json={"amount": "10", "goal_name": "Car"})
    zero = client.post("/users/9/goals/contributions", json={"amount": "0"})

    assert no_goals.status_code == 404
    assert no_goals.json()["detail"]["code"] == "no_goals"
    assert missing.status_code == 404
    assert missing.json()["detail"]["code"] == "goal_not_found"
    assert zero.status_code == 422


def test_contribution_after_delete_needs_name(client) -> None:
    client.post("/users/9/goals", json={"name": "Bike", "target_amount": "300"})
    client.post("/users/9/goals", json={"name": "Trip", "target_amount": "100"})
    client.delete("/users/9/goals/Trip")

    response = client.post("/users/9/goals/contributions", json={"amount": "10"})

    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "no_goal_specified"


def test_get_and_delete_goal(client, store) -> None:
    client.post("/users/9/goals", json={"name": "Trip", "target_amount": "100"})
    client.post("/users/9/goals", json={"name": "Bike", "target_amount": "300"})

    progress = client.get("/users/9/goals/trip")
    assert progress.status_code == 200
    assert progress.json()["name"] == "Trip"
    assert store.last_goal("9") == "Trip"

    deleted = client.delete("/users/9/goals/TRIP")
    assert deleted.status_code == 200
    assert deleted.json()["name"] == "Trip"
    assert client.get("/users/9/goals/Trip").status_code == 404


def test_persistence_failure_maps_to_503(client, store, monkeypatch) -> None:
    def failing_save(users):
        raise PersistenceFailure("disk full")

    monkeypatch.setattr(store._storage, "save", failing_save)

    response = client.post("/users/9/goals", json={"name": "Trip", "target_amount": "100"})

    assert response.status_code == 503
    assert response.json()["detail"]["code"] == "persistence_failure"
