"""
API tests for the execute endpoint and global error handling.

Runs the full pipeline behind FastAPI: SQLite-backed variable scopes,
the JavaScript sandbox and an ``httpx.MockTransport`` standing in for the
network.
"""

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from ..config import Settings
from ..database import Base
from ..main import app
from ..models import Collection, Environment, KIND_COLLECTION, KIND_FOLDER
from ..routers.execute import get_executor
from ..services.http_executor import HttpTransport
from ..services.orchestrator import RequestExecutor
from ..services.script_sandbox import JavaScriptSandbox
from ..services.variable_store import SqlVariableStore


# Test database setup
SQLALCHEMY_DATABASE_URL = "sqlite:///./test_execute_api.db"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False}
)


@event.listens_for(engine, "connect")
def set_sqlite_pragma(dbapi_connection, connection_record):
    """Enable foreign key constraints for SQLite connections."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def echo_handler(request: httpx.Request) -> httpx.Response:
    """Reply with a JSON description of the request that was received."""
    if request.url.host == "down.test":
        raise httpx.ConnectError("[Errno 111] Connection refused")
    return httpx.Response(
        200,
        headers={"Set-Cookie": "session=s1; Path=/"},
        json={
            "method": request.method,
            "path": request.url.path,
            "authorization": request.headers.get("authorization"),
        },
    )


@pytest.fixture
def client():
    """Test client whose executor uses the test database and a mock network."""
    Base.metadata.create_all(bind=engine)
    executor = RequestExecutor(
        store=SqlVariableStore(TestingSessionLocal, max_depth=8),
        script_runner=JavaScriptSandbox(timeout_ms=2000),
        transport=HttpTransport(settings=Settings(), transport=httpx.MockTransport(echo_handler)),
    )
    app.dependency_overrides[get_executor] = lambda: executor
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def scopes(client):
    """An environment plus a collection with one nested folder."""
    db = TestingSessionLocal()
    try:
        env = Environment(name="dev", variables=[
            {"key": "host", "value": "http://api.test", "enabled": True, "type": "default"},
            {"key": "token", "value": "stale", "enabled": True, "type": "secret"},
        ])
        root = Collection(name="Users API", kind=KIND_COLLECTION, variables=[
            {"key": "id", "value": "42", "enabled": True, "type": "default"},
        ])
        db.add_all([env, root])
        db.commit()
        folder = Collection(name="users", kind=KIND_FOLDER, parent_id=root.id)
        db.add(folder)
        db.commit()
        yield {"environment_id": env.id, "collection_id": root.id, "folder_id": folder.id}
    finally:
        db.close()


def read_variables(model, scope_id) -> dict[str, str]:
    db = TestingSessionLocal()
    try:
        return {v["key"]: v["value"] for v in db.get(model, scope_id).variables}
    finally:
        db.close()


class TestExecuteEndpoint:
    """``POST /api/execute`` always answers 200 with an ExecutionResult."""

    def test_resolves_variables_from_both_scopes(self, client, scopes):
        response = client.post("/api/execute", json={
            "request": {"method": "GET", "url": "{{host}}/users/{{id}}"},
            "environment_id": scopes["environment_id"],
            "collection_id": scopes["folder_id"],
        })

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["request"]["url"] == "http://api.test/users/42"
        assert data["response"]["status"] == 200
        assert data["response"]["body_json"]["path"] == "/users/42"
        assert data["response"]["cookies"][0]["name"] == "session"
        assert data["response"]["size"]["total"] > 0

    def test_pre_request_token_is_sent_and_persisted(self, client, scopes):
        response = client.post("/api/execute", json={
            "request": {
                "method": "POST",
                "url": "{{host}}/login",
                "auth": {"type": "bearer", "token": "{{token}}"},
                "body": {"type": "json", "content": "{\"user\": \"alice\"}"},
                "pre_request_script": "pm.environment.set('token', 'fresh');",
                "test_script": (
                    "pm.test('authorized', function () {"
                    "  pm.expect(pm.response.json().authorization).to.equal('Bearer fresh');"
                    "});"
                    "pm.collectionVariables.set('last_status', pm.response.code);"
                ),
            },
            "environment_id": scopes["environment_id"],
            "collection_id": scopes["folder_id"],
        })

        data = response.json()
        assert data["success"] is True
        assert data["test_results"]["passed"] == 1
        assert data["test_results"]["failed"] == 0
        assert read_variables(Environment, scopes["environment_id"])["token"] == "fresh"
        assert read_variables(Collection, scopes["collection_id"])["last_status"] == "200"

    def test_connection_failure_still_runs_tests(self, client, scopes):
        response = client.post("/api/execute", json={
            "request": {
                "url": "http://down.test/",
                "test_script": (
                    "pm.test('no response', function () { pm.expect(pm.response.code).to.equal(undefined); });"
                    "pm.environment.unset('token');"
                ),
            },
            "environment_id": scopes["environment_id"],
        })

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is False
        assert data["error"]["code"] == "ECONNREFUSED"
        assert data["response"] is None
        assert data["test_results"]["passed"] == 1
        assert "token" not in read_variables(Environment, scopes["environment_id"])

    def test_invalid_json_body_is_reported_in_result(self, client):
        response = client.post("/api/execute", json={
            "request": {"method": "POST", "url": "http://api.test", "body": {"type": "json", "content": "{oops"}},
        })

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is False
        assert data["error"]["code"] == "INVALID_JSON_BODY"

    def test_unsendable_header_is_reported_in_result(self, client):
        response = client.post("/api/execute", json={
            "request": {"url": "http://api.test", "headers": [{"key": "X-Name", "value": "José"}]},
        })

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is False
        assert data["error"]["code"] == "INVALID_HEADER"

    def test_unknown_scope_ids_are_ignored(self, client):
        response = client.post("/api/execute", json={
            "request": {"url": "http://api.test/{{missing}}"},
            "environment_id": 9999,
            "collection_id": 9999,
        })

        data = response.json()
        assert data["success"] is True
        assert data["request"]["url"] == "http://api.test/{{missing}}"


class TestErrorResponseFormat:
    """Malformed commands are rejected with the standard error body."""

    def test_missing_request_is_a_validation_error(self, client):
        response = client.post("/api/execute", json={})

        assert response.status_code == 422
        data = response.json()
        assert data["error_code"] == "VALIDATION_ERROR"
        assert "request" in data["detail"]

    def test_invalid_method(self, client):
        response = client.post("/api/execute", json={"request": {"method": "FETCH", "url": "http://x"}})

        assert response.status_code == 422
        assert response.json()["error_code"] == "VALIDATION_ERROR"

    def test_unknown_body_type(self, client):
        response = client.post("/api/execute", json={
            "request": {"url": "http://x", "body": {"type": "protobuf"}},
        })

        assert response.status_code == 422

    def test_non_positive_timeout(self, client):
        response = client.post("/api/execute", json={"request": {"url": "http://x", "timeout_ms": 0}})

        assert response.status_code == 422


class TestServiceEndpoints:
    def test_health(self, client):
        assert client.get("/health").json() == {"status": "healthy"}

    def test_root(self, client):
        assert client.get("/").json()["name"] == "API Client Engine"
