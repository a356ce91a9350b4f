"""HTTP contract of the webhook and Telegram agent endpoints."""

import json
from typing import (
    Iterator,
    List,
)

import httpx
import pytest
from fastapi.testclient import TestClient

from agora.api.app import (
    app,
    get_embedder,
    get_gateway,
    get_http_client,
    get_store,
)
from agora.core.errors import GatewayError
from agora.memory.memory_store import Community
from fakes import (
    FakeEmbedder,
    FakeStore,
    ScriptedGateway,
    final_reply,
    tool_reply,
)

API_KEY = "wh_test_key"


class Harness:
    def __init__(self) -> None:
        self.store = FakeStore()
        self.store.add_community(
            API_KEY,
            Community(id="c-1", name="Frog Club", agent_name="Toad"),
            agent_tools={"save_memory": True, "search_memory": True},
        )
        self.gateway = ScriptedGateway([final_reply("Hello from Toad")])
        self.outbound: List[httpx.Request] = []

        def record(request: httpx.Request) -> httpx.Response:
            self.outbound.append(request)
            return httpx.Response(200, json={"ok": True})

        self.http = httpx.Client(transport=httpx.MockTransport(record))
        app.dependency_overrides[get_store] = lambda: self.store
        app.dependency_overrides[get_gateway] = lambda: self.gateway
        app.dependency_overrides[get_embedder] = lambda: FakeEmbedder()
        app.dependency_overrides[get_http_client] = lambda: self.http
        self.client = TestClient(app)


@pytest.fixture
def harness() -> Iterator[Harness]:
    h = Harness()
    yield h
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# /webhook-agent
# ---------------------------------------------------------------------------
def test_health(harness: Harness) -> None:
    assert harness.client.get("/health").json() == {"status": "ok"}


def test_missing_message_is_400(harness: Harness) -> None:
    resp = harness.client.post("/webhook-agent", json={"api_key": API_KEY})

    assert resp.status_code == 400
    assert resp.json() == {"error": 'Missing "message" field'}


def test_missing_api_key_is_401(harness: Harness) -> None:
    resp = harness.client.post("/webhook-agent", json={"message": "hi"})

    assert resp.status_code == 401
    assert resp.json() == {"error": 'Missing "api_key" field'}


def test_invalid_api_key_is_401(harness: Harness) -> None:
    resp = harness.client.post("/webhook-agent", json={"message": "hi", "api_key": "nope"})

    assert resp.status_code == 401
    assert resp.json() == {"error": "Invalid API key"}
    assert harness.gateway.calls == 0


def test_disabled_workflow_is_403(harness: Harness) -> None:
    harness.store.add_community("other", Community(id="c-2", name="Quiet"), enabled=False)

    resp = harness.client.post("/webhook-agent", json={"message": "hi", "api_key": "other"})

    assert resp.status_code == 403
    assert resp.json() == {"error": "Webhook agent not enabled for this community"}


def test_malformed_body_is_400(harness: Harness) -> None:
    resp = harness.client.post(
        "/webhook-agent",
        json={"message": "hi", "api_key": API_KEY, "conversation_history": "not a list"},
    )

    assert resp.status_code == 400
    assert resp.json()["error"] == "Invalid request body"


def test_success_response_shape_and_usage_log(harness: Harness) -> None:
    harness.gateway.replies = [
        tool_reply(("call_1", "save_memory", {"content": "Toad likes flies", "tags": ["lore"]})),
        final_reply("Noted!", tokens=55),
    ]

    resp = harness.client.post(
        "/webhook-agent",
        json={
            "message": "Remember that Toad likes flies",
            "api_key": API_KEY,
            "conversation_history": [{"role": "user", "content": "hi"}],
        },
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body == {
        "success": True,
        "response": "Noted!",
        "tool_calls": [
            {
                "tool": "save_memory",
                "arguments": {"content": "Toad likes flies", "tags": ["lore"]},
                "result": "✅ Memory saved successfully!",
            }
        ],
        "metadata": {
            "community": "Frog Club",
            "model": "scripted/test-model",
            "tokens_used": 55,
            "tools_used": 1,
        },
    }
    assert len(harness.store.inserted_memories) == 1
    assert harness.store.inserted_memories[0]["metadata"]["source"] == "webhook_agent"

    sent, tools = harness.gateway.requests[0]
    assert sent[0].content.startswith("You are Toad, a helpful AI assistant for Frog Club.")
    assert [m.role for m in sent] == ["system", "user", "user"]
    assert {t["function"]["name"] for t in tools} == {"save_memory", "search_memory"}

    assert len(harness.store.sessions) == 1
    session = harness.store.sessions[0]
    assert session.chat_type == "webhook_agent"
    assert session.tokens_used == 55
    assert session.metadata["tool_calls"][0]["tool"] == "save_memory"


def test_usage_log_failure_does_not_fail_request(harness: Harness) -> None:
    harness.store.fail_log = True

    resp = harness.client.post("/webhook-agent", json={"message": "hi", "api_key": API_KEY})

    assert resp.status_code == 200
    assert resp.json()["response"] == "Hello from Toad"


def test_gateway_failure_is_500(harness: Harness) -> None:
    harness.gateway.replies = [GatewayError(status_code=502)]

    resp = harness.client.post("/webhook-agent", json={"message": "hi", "api_key": API_KEY})

    assert resp.status_code == 500
    assert resp.json() == {"error": "Internal server error", "message": "AI service unavailable"}
    assert harness.store.sessions == []


def test_iteration_cap_is_500(harness: Harness) -> None:
    harness.gateway.replies = [tool_reply(("again", "search_memory", {}))]

    resp = harness.client.post("/webhook-agent", json={"message": "hi", "api_key": API_KEY})

    assert resp.status_code == 500
    assert resp.json()["message"] == "Max iterations reached"
    assert harness.gateway.calls == 5


# ---------------------------------------------------------------------------
# /telegram-agent
# ---------------------------------------------------------------------------
def _telegram_body(**overrides):
    body = {
        "userMessage": "who likes design?",
        "communityId": "c-1",
        "userId": "u-9",
        "systemPrompt": "You are Toad.",
        "telegramChatId": 12345,
        "botToken": "bot-token",
        "enabledTools": {"search_memory": True, "save_memory": True},
        "conversationHistory": [{"role": "assistant", "content": "ribbit"}],
    }
    body.update(overrides)
    return body


def test_telegram_agent_notifies_each_tool(harness: Harness) -> None:
    harness.gateway.replies = [
        tool_reply(("t1", "search_memory", {})),
        final_reply("Nobody yet.", tokens=9),
    ]

    resp = harness.client.post("/telegram-agent", json=_telegram_body())

    assert resp.status_code == 200
    assert resp.json() == {
        "response": "Nobody yet.",
        "toolsUsed": ["🧠 Let me check what I remember..."],
        "iterations": 2,
        "usage": {"total_tokens": 9},
    }
    assert len(harness.outbound) == 1
    notice = harness.outbound[0]
    assert notice.url.path == "/botbot-token/sendMessage"
    assert json.loads(notice.content) == {
        "chat_id": 12345,
        "text": "🧠 Let me check what I remember...",
    }
    sent = harness.gateway.requests[0][0]
    assert sent[0].content == "You are Toad."
    assert [m.role for m in sent] == ["system", "assistant", "user"]


def test_telegram_agent_tags_saved_memories(harness: Harness) -> None:
    harness.gateway.replies = [
        tool_reply(("t1", "save_memory", {"content": "Ana designs"})),
        final_reply("Saved."),
    ]

    harness.client.post("/telegram-agent", json=_telegram_body())

    row = harness.store.inserted_memories[0]
    assert row["created_by"] == "u-9"
    assert row["metadata"]["source"] == "telegram_agent"


def test_telegram_agent_max_iterations_is_polite(harness: Harness) -> None:
    harness.gateway.replies = [tool_reply(("t", "search_memory", {}))]

    resp = harness.client.post("/telegram-agent", json=_telegram_body(botToken=None))

    assert resp.status_code == 200
    body = resp.json()
    assert body["maxReached"] is True
    assert body["iterations"] == 5
    assert len(body["toolsUsed"]) == 5
    assert body["response"].startswith("I tried to help but needed too many steps.")
    assert harness.outbound == []


def test_telegram_agent_empty_reply_uses_fallback(harness: Harness) -> None:
    harness.gateway.replies = [final_reply("")]

    resp = harness.client.post("/telegram-agent", json=_telegram_body())

    assert resp.json()["response"] == "I apologize, but I could not generate a response."


def test_telegram_agent_gateway_failure_is_500(harness: Harness) -> None:
    harness.gateway.replies = [GatewayError()]

    resp = harness.client.post("/telegram-agent", json=_telegram_body())

    assert resp.status_code == 500
    assert resp.json() == {"error": "AI service unavailable"}


def test_history_with_null_content_is_accepted(harness: Harness) -> None:
    resp = harness.client.post(
        "/webhook-agent",
        json={
            "message": "and now?",
            "api_key": API_KEY,
            "conversation_history": [
                {"role": "user", "content": "hi"},
                {"role": "assistant", "content": None},
            ],
        },
    )

    assert resp.status_code == 200
    sent = harness.gateway.requests[0][0]
    assert [m.role for m in sent] == ["system", "user", "assistant", "user"]
    assert sent[2].content == ""


def test_history_with_tool_turn_is_rejected(harness: Harness) -> None:
    resp = harness.client.post(
        "/webhook-agent",
        json={
            "message": "hi",
            "api_key": API_KEY,
            "conversation_history": [{"role": "tool", "content": "orphan result"}],
        },
    )

    assert resp.status_code == 400
    assert resp.json()["error"] == "Invalid request body"
    assert harness.gateway.calls == 0
