"""Integration tests for REST API endpoints.

Uses httpx AsyncClient with ASGITransport for async HTTP testing. A real
AgentRunner runs against a ScriptedModelClient, so status codes and
bodies are checked end to end without touching the network.
"""

import pytest
import pytest_asyncio
from conftest import ScriptedModelClient, make_api_response
from httpx import ASGITransport, AsyncClient
from starlette.routing import Route

from agentchat.api.rest import create_app
from agentchat.api.runner import AgentRunner
from agentchat.errors import SessionNotFound, UpstreamError

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def model_client():
    return ScriptedModelClient()


@pytest.fixture
def app(model_client, registry, store, settings):
    runner = AgentRunner(model_client, registry, store, settings)
    return create_app(runner, store)


@pytest_asyncio.fixture
async def client(app):
    """Async HTTP client using httpx ASGITransport."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


# ---------------------------------------------------------------------------
# Static endpoints
# ---------------------------------------------------------------------------


async def test_index(client):
    resp = await client.get("/")
    assert resp.status_code == 200
    assert "message" in resp.json()


async def test_health(client, store):
    store.get_or_create("warm")
    resp = await client.get("/health")

    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    assert "timestamp" in data
    assert data["sessions"] == 1


async def test_unknown_route_404(client):
    resp = await client.get("/nope")
    assert resp.status_code == 404
    assert resp.json() == {"error": "Not Found"}


@pytest.mark.parametrize(
    ("method", "path"),
    [("GET", "/chat"), ("PUT", "/chat"), ("PUT", "/chat/abc"), ("POST", "/health")],
)
async def test_unrouted_method_is_404(client, method, path):
    resp = await client.request(method, path)
    assert resp.status_code == 404
    assert resp.json() == {"error": "Not Found"}


# ---------------------------------------------------------------------------
# POST /chat
# ---------------------------------------------------------------------------


async def test_chat_basic(client, model_client):
    model_client.responses.append(make_api_response(text="Hello", input_tokens=9, output_tokens=2))

    resp = await client.post("/chat", json={"message": "Hi"})

    assert resp.status_code == 200
    assert resp.json() == {
        "response": "Hello",
        "session_id": "default",
        "usage": {"input_tokens": 9, "output_tokens": 2},
        "iterations": 1,
    }


async def test_chat_with_session(client, model_client, store):
    model_client.responses.append(make_api_response(text="Hello"))

    resp = await client.post("/chat", json={"message": "Hi", "session_id": "abc"})

    assert resp.status_code == 200
    assert resp.json()["session_id"] == "abc"
    assert "abc" in store
    assert "default" not in store


async def test_chat_with_tool_round(client, model_client):
    model_client.responses.extend([
        make_api_response(stop_reason="tool_use", tool_uses=[{"id": "t1", "name": "get_current_time"}]),
        make_api_response(text="It is now noon"),
    ])

    resp = await client.post("/chat", json={"message": "Time?"})

    assert resp.status_code == 200
    data = resp.json()
    assert data["response"] == "It is now noon"
    assert data["iterations"] == 2
    assert data["usage"] == {"input_tokens": 20, "output_tokens": 10}


@pytest.mark.parametrize("body", [{}, {"message": ""}, {"message": None}, {"session_id": "x"}, ["Hi"]])
async def test_chat_missing_message(client, model_client, body):
    resp = await client.post("/chat", json=body)

    assert resp.status_code == 400
    assert resp.json() == {"error": "Message is required"}
    assert model_client.calls == []


async def test_chat_invalid_json(client):
    resp = await client.post("/chat", content=b"{not json", headers={"content-type": "application/json"})
    assert resp.status_code == 400
    assert resp.json() == {"error": "Message is required"}


async def test_chat_iteration_limit(client, model_client, settings, store):
    model_client.responses.append(
        make_api_response(stop_reason="tool_use", tool_uses=[{"name": "get_current_time"}])
    )
    model_client.repeat_last = True

    resp = await client.post("/chat", json={"message": "Loop"})

    assert resp.status_code == 500
    assert resp.json() == {"error": "Agent loop exceeded maximum iterations"}
    assert len(store.get("default")) == 1 + 2 * settings.max_turns


async def test_chat_upstream_error(client, model_client):
    model_client.responses.append(UpstreamError("Anthropic API error (401): authentication_error"))

    resp = await client.post("/chat", json={"message": "Hi"})

    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to get response from LLM"}


async def test_chat_unexpected_model_failure(client, model_client):
    model_client.responses.append(RuntimeError("socket exploded"))

    resp = await client.post("/chat", json={"message": "Hi"})

    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to get response from LLM"}


# ---------------------------------------------------------------------------
# GET / DELETE /chat/{session_id}
# ---------------------------------------------------------------------------


async def test_get_session(client, model_client):
    model_client.responses.append(make_api_response(text="Hello"))
    await client.post("/chat", json={"message": "Hi", "session_id": "s1"})

    resp = await client.get("/chat/s1")

    assert resp.status_code == 200
    assert resp.json() == {
        "session_id": "s1",
        "messages": [
            {"role": "user", "content": "Hi"},
            {"role": "assistant", "content": [{"type": "text", "text": "Hello"}]},
        ],
    }


async def test_get_session_not_found(client):
    resp = await client.get("/chat/missing")
    assert resp.status_code == 404
    assert resp.json() == {"error": "Session not found"}


async def test_delete_session(client, model_client):
    model_client.responses.append(make_api_response(text="Hello"))
    await client.post("/chat", json={"message": "Hi", "session_id": "s1"})

    resp = await client.delete("/chat/s1")
    assert resp.status_code == 200
    assert resp.json() == {"message": "Session s1 cleared"}

    resp = await client.get("/chat/s1")
    assert resp.status_code == 404


async def test_delete_session_not_found(client):
    resp = await client.delete("/chat/missing")
    assert resp.status_code == 404
    assert resp.json() == {"error": "Session not found"}


# ---------------------------------------------------------------------------
# Uncaught errors
# ---------------------------------------------------------------------------


async def test_uncaught_error_is_500_json(app):
    async def explode(request):
        raise RuntimeError("unexpected")

    app.router.routes.append(Route("/explode", explode))
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        resp = await c.get("/explode")

    assert resp.status_code == 500
    assert resp.json() == {"error": "Internal Server Error"}


async def test_agent_errors_map_to_their_status(app):
    async def lookup(request):
        raise SessionNotFound(request.path_params["session_id"])

    app.router.routes.append(Route("/lookup/{session_id}", lookup))
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        resp = await c.get("/lookup/gone")

    assert resp.status_code == 404
    assert resp.json() == {"error": "Session not found"}
