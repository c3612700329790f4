"""Tests for the HTTP API."""

from __future__ import annotations

from unittest.mock import AsyncMock

import httpx
import pytest
from fastapi.testclient import TestClient

from fliza.api import create_app
from fliza.chat.service import DESIGN_ACK
from fliza.config import Settings
from fliza.errors import DesignFailed, VisionFailed
from fliza.persistence import MemoryMessageStore
from fliza.sessions import MemorySessionStore
from fliza.vision import DesignResult, VisionAnalysis


class AgentStub:
    """Remote agent answering every send with a fixed reply or error."""

    def __init__(self):
        self.message_status = 200
        self.message_body: dict | str = {"agentResponse": {"text": "hi there"}}
        self.paths: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.paths.append(request.url.path)
        if request.url.path == "/api/messaging/sessions":
            return httpx.Response(200, json={"sessionId": "sess-1"})
        if isinstance(self.message_body, str):
            return httpx.Response(self.message_status, text=self.message_body)
        return httpx.Response(self.message_status, json=self.message_body)


@pytest.fixture
def settings():
    return Settings(
        eliza_url="https://agent.example.com",
        google_api_key=None,
        supabase_url=None,
        supabase_anon_key=None,
        log_level="WARNING",
    )


@pytest.fixture
def agent():
    return AgentStub()


@pytest.fixture
def vision():
    client = AsyncMock()
    client.analyze.return_value = VisionAnalysis(analysis="A desk with a lamp.")
    return client


@pytest.fixture
def design():
    client = AsyncMock()
    client.generate.return_value = DesignResult(image="data:image/png;base64,QUJD", text="Done")
    return client


@pytest.fixture
def store():
    return MemoryMessageStore()


@pytest.fixture
def client(settings, agent, store, vision, design):
    app = create_app(
        settings,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(agent)),
        message_store=store,
        vision_client=vision,
        design_client=design,
    )
    with TestClient(app) as test_client:
        yield test_client


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["persistence"] is True
        assert data["vision"] is True

    def test_request_id_header(self, client):
        response = client.get("/health")
        assert len(response.headers["X-Request-ID"]) == 8


class TestChatEndpoint:
    """Tests for POST /api/chat."""

    def test_reply(self, client):
        response = client.post("/api/chat", json={"message": "hello", "userId": "u1"})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["response"] == "hi there"
        assert data["sessionId"] == "sess-1"
        assert data["messageId"]
        assert "action" not in data

    @pytest.mark.parametrize(
        "body",
        [{}, {"message": "hello"}, {"userId": "u1"}, {"message": "", "userId": "u1"}],
    )
    def test_missing_fields(self, client, body):
        response = client.post("/api/chat", json=body)
        assert response.status_code == 400
        assert response.json() == {"error": "Missing fields"}

    def test_agent_404(self, client, agent):
        agent.message_status = 404
        agent.message_body = "not found"

        response = client.post("/api/chat", json={"message": "hello", "userId": "u1"})

        assert response.status_code == 500
        assert response.json() == {"error": "Eliza failed: 404", "details": "not found"}

    def test_session_cache_down(self, settings, agent, store):
        sessions = MemorySessionStore()
        sessions.get = AsyncMock(side_effect=ConnectionError("redis down"))
        app = create_app(
            settings,
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(agent)),
            session_store=sessions,
            message_store=store,
        )
        with TestClient(app) as test_client:
            response = test_client.post("/api/chat", json={"message": "hello", "userId": "u1"})

        assert response.status_code == 500
        assert response.json() == {"error": "Session cache unavailable", "details": "redis down"}
        assert agent.paths == []

    def test_design_request(self, client, agent):
        response = client.post(
            "/api/chat",
            json={
                "message": "can you design a poster of this",
                "userId": "u1",
                "attachedImage": "data:image/jpeg;base64,AAAA",
            },
        )

        data = response.json()
        assert data["action"] == "TRIGGER_DESIGN"
        assert data["response"] == DESIGN_ACK
        assert data["designPrompt"] == "can you design a poster of this"
        assert data["attachedImage"] == "data:image/jpeg;base64,AAAA"
        assert agent.paths == []

    def test_vision_context_forwarded(self, client, agent):
        client.post(
            "/api/chat",
            json={"message": "what is it?", "userId": "u1", "visionContext": "a red mug"},
        )
        assert agent.paths[-1] == "/api/messaging/sessions/sess-1/messages"


class TestHistoryEndpoint:
    """Tests for GET /api/messages/{user_id}."""

    def test_history_contains_reply(self, client):
        client.post("/api/chat", json={"message": "hello", "userId": "u1"})

        response = client.get("/api/messages/u1")

        assert response.status_code == 200
        rows = response.json()
        assert [r["content"] for r in rows] == ["hi there"]
        assert rows[0]["role"] == "assistant"

    def test_guest_history_empty(self, client):
        client.post("/api/chat", json={"message": "hello", "userId": "guest-abc123def"})
        assert client.get("/api/messages/guest-abc123def").json() == []


class TestVisionEndpoint:
    """Tests for POST /api/vision."""

    def test_analyze(self, client):
        response = client.post("/api/vision", json={"image": "data:image/jpeg;base64,AAAA"})
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["analysis"] == "A desk with a lamp."
        assert "timestamp" in data

    def test_missing_image(self, client):
        response = client.post("/api/vision", json={})
        assert response.status_code == 400

    def test_failure(self, client, vision):
        vision.analyze.side_effect = VisionFailed("Vision analysis failed", details="quota")
        response = client.post("/api/vision", json={"image": "AAAA"})
        assert response.status_code == 500
        assert response.json() == {"error": "Vision analysis failed", "details": "quota"}

    def test_not_configured(self, settings, agent, store):
        app = create_app(
            settings,
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(agent)),
            message_store=store,
        )
        with TestClient(app) as test_client:
            response = test_client.post("/api/vision", json={"image": "AAAA"})
        assert response.status_code == 503


class TestDesignEndpoint:
    """Tests for POST /api/design."""

    def test_generate(self, client, design):
        response = client.post("/api/design", json={"image": "AAAA", "prompt": "neon"})
        assert response.json() == {
            "success": True,
            "image": "data:image/png;base64,QUJD",
            "text": "Done",
        }
        design.generate.assert_awaited_once_with("AAAA", "neon")

    def test_missing_image(self, client):
        assert client.post("/api/design", json={"prompt": "neon"}).status_code == 400

    def test_failure(self, client, design):
        design.generate.side_effect = DesignFailed("No image generated")
        response = client.post("/api/design", json={"image": "AAAA"})
        assert response.status_code == 500
        assert response.json() == {"error": "No image generated"}
