import pytest
from fastapi.testclient import TestClient

from restmap import Configuration
from restmap.mock import MockSession
from restmap_example import create_app
from restmap_example.entity import example_repository


ENTITIES = {"results": [
    {"uniqueValue": "u1", "username": "bob"},
    {"uniqueValue": "u2", "username": "carol"},
]}


@pytest.fixture
def sessions():
    return []


@pytest.fixture
def client(configuration, sessions):
    def session_factory():
        session = MockSession()
        session.stub("GET", "CoreDataEntity", json=ENTITIES)
        sessions.append(session)
        return session

    app = create_app(
        repository=example_repository(":memory:"),
        session_factory=session_factory,
        configuration=configuration,
    )
    return TestClient(app)


def test_sync_stores_entities(client, sessions):
    response = client.post("/sync")

    assert response.status_code == 200
    assert response.json() == {"synced": 2, "failed": 0, "errors": []}
    assert sessions[0].invalidated == "graceful"

    listed = client.get("/entities").json()
    assert listed == ENTITIES["results"]


def test_sync_twice_does_not_duplicate(client):
    client.post("/sync")
    client.post("/sync")

    assert len(client.get("/entities").json()) == 2


def test_get_and_delete_entity(client):
    client.post("/sync")

    assert client.get("/entities/u1").json() == {"uniqueValue": "u1", "username": "bob"}
    assert client.delete("/entities/u1").status_code == 204
    assert client.get("/entities/u1").status_code == 404
    assert client.delete("/entities/u1").status_code == 404


def test_sync_reports_failures(configuration):
    def session_factory():
        session = MockSession()
        session.stub("GET", "CoreDataEntity", status=500)
        return session

    app = create_app(
        repository=example_repository(":memory:"),
        session_factory=session_factory,
        configuration=configuration,
    )
    response = TestClient(app).post("/sync")

    assert response.json() == {"synced": 0, "failed": 1, "errors": ["HTTP 500"]}


def test_sync_timeout_cancels_batch(configuration):
    session = MockSession(auto_complete=False)
    app = create_app(
        repository=example_repository(":memory:"),
        session_factory=lambda: session,
        configuration=Configuration(configuration.base_url, timeout=0.05),
    )
    response = TestClient(app).post("/sync")

    assert response.status_code == 504
    assert session.invalidated == "cancel"
