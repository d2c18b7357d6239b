import pytest
from fastapi.testclient import TestClient

from api.main import create_app
from conftest import tool_call_response


@pytest.fixture
def client(app_config, orchestrator):
    app = create_app(config=app_config, orchestrator=orchestrator)
    with TestClient(app) as test_client:
        yield test_client


def start_suspended(client, llm, thread_id="api-thread"):
    llm.queue("DELEGATE: research_worker; TASK: capital of France", tool_call_response("capital of France"))
    return client.post("/orchestrate", json={"query": "capital of France", "thread_id": thread_id})


class TestInfoEndpoints:
    """Tests for informational endpoints"""

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "running"

    def test_api_info(self, client):
        response = client.get("/api")
        assert "POST /orchestrate" in response.json()["endpoints"]

    def test_health(self, client):
        response = client.get("/health")
        data = response.json()
        assert response.status_code == 200
        assert data["status"] == "healthy"
        assert data["thread_store"] == "memory"


class TestOrchestrateEndpoint:
    """Tests for POST /orchestrate"""

    def test_start_then_resume(self, client, llm, web_backend):
        response = start_suspended(client, llm)

        assert response.status_code == 200
        body = response.json()
        assert body["type"] == "interrupted"
        assert body["thread_id"] == "api-thread"
        assert body["interrupt_data"] == {
            "type": "tool_confirmation",
            "tool_name": "web_search",
            "proposed_query": "capital of France",
        }

        llm.queue("Paris is the capital.", "FINALIZE: Paris")
        response = client.post(
            "/orchestrate",
            json={"thread_id": "api-thread", "resume_payload": "Paris, France - capital"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["text"] == "Paris"
        assert body["thread_id"] == "api-thread"
        assert body["degraded"] is False
        assert body["messages"][-1]["origin"] == "supervisor-decision"
        assert web_backend.queries == ["Paris, France - capital"]

    def test_null_payload_resumes_as_rejection(self, client, llm, web_backend):
        start_suspended(client, llm)
        llm.queue("No search, answering from memory.", "FINALIZE: Paris")

        response = client.post("/orchestrate", json={"thread_id": "api-thread", "resume_payload": None})

        assert response.status_code == 200
        assert response.json()["text"] == "Paris"
        assert web_backend.queries == []

    def test_payload_without_thread_starts(self, client, llm):
        llm.queue("FINALIZE: fresh start")

        response = client.post("/orchestrate", json={"query": "hello", "resume_payload": "ignored"})

        assert response.status_code == 200
        assert response.json()["text"] == "fresh start"

    def test_history_is_seeded(self, client, llm):
        llm.queue("FINALIZE: ok")

        response = client.post("/orchestrate", json={
            "query": "and its population?",
            "messages": [
                {"role": "user", "content": "capital of France?"},
                {"role": "assistant", "content": "Paris."},
            ],
        })

        origins = [m["origin"] for m in response.json()["messages"]]
        assert origins[:3] == ["user-input", "prior-turn", "user-input"]

    @pytest.mark.parametrize(
        "entry",
        [
            {"role": "system", "content": "You are helpful."},
            {"role": "user", "content": "hi", "origin": "made-up"},
        ],
    )
    def test_invalid_history_entry(self, client, llm, entry):
        """Test that unknown roles or origins in history are a bad request"""
        response = client.post("/orchestrate", json={
            "query": "capital of France",
            "thread_id": "bad-history",
            "messages": [{"role": "user", "content": "earlier"}, entry],
        })

        assert response.status_code == 400
        body = response.json()
        assert body["error_code"] == "INVALID_REQUEST"
        assert body["thread_id"] == "bad-history"
        assert body["error"].startswith("messages[1] is invalid")
        assert llm.calls == []
        assert client.get("/threads/bad-history").status_code == 404

    def test_missing_query(self, client):
        response = client.post("/orchestrate", json={})

        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_REQUEST"
        assert "thread_id" not in response.json()

    def test_resume_unknown_thread(self, client):
        response = client.post("/orchestrate", json={"thread_id": "missing", "resume_payload": "q"})

        assert response.status_code == 400
        assert response.json() == {
            "error": "Thread 'missing' not found",
            "error_code": "NOT_FOUND",
            "thread_id": "missing",
        }

    def test_resume_completed_thread(self, client, llm):
        llm.queue("FINALIZE: done")
        client.post("/orchestrate", json={"query": "q", "thread_id": "done-thread"})

        response = client.post("/orchestrate", json={"thread_id": "done-thread", "resume_payload": "q"})

        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_STATE"

    def test_model_failure_reports_thread(self, client, llm):
        llm.queue(RuntimeError("model down"))

        response = client.post("/orchestrate", json={"query": "q", "thread_id": "broken"})

        assert response.status_code == 500
        body = response.json()
        assert body["thread_id"] == "broken"
        assert body["error_code"] == "MODEL_CALL_FAILURE"
        assert "model down" in body["error"]


class TestThreadEndpoint:
    """Tests for GET /threads/{thread_id}"""

    def test_suspended_thread(self, client, llm):
        start_suspended(client, llm)

        response = client.get("/threads/api-thread")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "suspended"
        assert body["pending_interrupt"]["proposed_query"] == "capital of France"

    def test_unknown_thread(self, client):
        response = client.get("/threads/missing")
        assert response.status_code == 404
