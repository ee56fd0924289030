"""REST API for the agentchat service.

Endpoints:
  GET    /                    - Welcome message
  GET    /health              - Liveness check
  POST   /chat                - Send message, run the agent loop, get response
  GET    /chat/{session_id}   - Session transcript
  DELETE /chat/{session_id}   - Clear a session

Errors are JSON bodies of the form {"error": "..."}. AgentChatError
subclasses map through their status_code; an unmatched path or method
is a 404.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

from starlette.applications import Starlette
from starlette.exceptions import HTTPException
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from agentchat.api.runner import AgentRunner
from agentchat.errors import (
    AgentChatError,
    IterationLimitExceeded,
    SessionNotFound,
    ValidationError,
)
from agentchat.sessions import SessionStore

logger = logging.getLogger(__name__)

DEFAULT_SESSION_ID = "default"


async def _parse_chat_body(request: Request) -> tuple[str, str]:
    """Return (message, session_id) or raise ValidationError."""
    try:
        body = await request.json()
    except ValueError:
        body = None
    if not isinstance(body, dict):
        raise ValidationError("Message is required")

    message = body.get("message")
    if not isinstance(message, str) or not message:
        raise ValidationError("Message is required")

    session_id = body.get("session_id", DEFAULT_SESSION_ID)
    if session_id is None:
        session_id = DEFAULT_SESSION_ID
    return message, str(session_id)


def create_app(
    runner: AgentRunner,
    store: SessionStore,
    lifespan: Any | None = None,
) -> Starlette:
    """Create the Starlette ASGI app with all routes."""

    async def index(request: Request) -> JSONResponse:
        """GET / - Welcome message."""
        return JSONResponse({"message": "Welcome to the agentchat API"})

    async def health(request: Request) -> JSONResponse:
        """GET /health - Liveness check."""
        return JSONResponse(
            {
                "status": "ok",
                "timestamp": datetime.now(UTC).isoformat(),
                "sessions": len(store),
            }
        )

    async def chat(request: Request) -> JSONResponse:
        """POST /chat - Send a message, get a response."""
        message, session_id = await _parse_chat_body(request)

        try:
            outcome = await runner.run_turn(session_id, message)
        except IterationLimitExceeded as e:
            logger.error("Chat error (session=%s): %s", session_id, e)
            return JSONResponse({"error": "Agent loop exceeded maximum iterations"}, status_code=500)
        except Exception as e:
            logger.error("LLM error (session=%s): %s", session_id, e)
            return JSONResponse({"error": "Failed to get response from LLM"}, status_code=500)

        return JSONResponse(
            {
                "response": outcome.response,
                "session_id": session_id,
                "usage": outcome.usage.to_dict(),
                "iterations": outcome.iterations,
            }
        )

    async def get_chat(request: Request) -> JSONResponse:
        """GET /chat/{session_id} - Session transcript."""
        session_id = request.path_params["session_id"]
        messages = store.get(session_id)
        if messages is None:
            raise SessionNotFound(session_id)
        return JSONResponse(
            {
                "session_id": session_id,
                "messages": [m.to_dict() for m in messages],
            }
        )

    async def delete_chat(request: Request) -> JSONResponse:
        """DELETE /chat/{session_id} - Clear a session."""
        session_id = request.path_params["session_id"]
        if not store.delete(session_id):
            raise SessionNotFound(session_id)
        logger.info("Session cleared: %s", session_id)
        return JSONResponse({"message": f"Session {session_id} cleared"})

    async def agent_error(request: Request, exc: AgentChatError) -> JSONResponse:
        return JSONResponse({"error": str(exc)}, status_code=exc.status_code)

    async def http_error(request: Request, exc: HTTPException) -> JSONResponse:
        # Any unmatched route is a 404, whatever the method
        if exc.status_code == 405:
            return JSONResponse({"error": "Not Found"}, status_code=404)
        return JSONResponse(
            {"error": exc.detail},
            status_code=exc.status_code,
            headers=exc.headers,
        )

    async def server_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse({"error": "Internal Server Error"}, status_code=500)

    routes = [
        Route("/", index),
        Route("/health", health),
        Route("/chat", chat, methods=["POST"]),
        Route("/chat/{session_id}", get_chat, methods=["GET"]),
        Route("/chat/{session_id}", delete_chat, methods=["DELETE"]),
    ]

    kwargs: dict[str, Any] = {
        "routes": routes,
        "exception_handlers": {
            AgentChatError: agent_error,
            HTTPException: http_error,
            Exception: server_error,
        },
    }
    if lifespan is not None:
        kwargs["lifespan"] = lifespan
    return Starlette(**kwargs)
