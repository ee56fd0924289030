"""agentchat entry point.

Initializes all components and starts the server:
  Settings -> SessionStore -> ToolRegistry -> AnthropicClient -> AgentRunner -> App -> Uvicorn

Uses Starlette lifespan so the httpx client is opened and closed on the
same event loop as uvicorn.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from starlette.applications import Starlette

from agentchat.api.builtin_tools import register_builtin_tools
from agentchat.api.client import AnthropicClient
from agentchat.api.rest import create_app
from agentchat.api.runner import AgentRunner
from agentchat.api.tools import ToolRegistry
from agentchat.config import Settings
from agentchat.sessions import SessionLocks, create_session_store

logger = logging.getLogger(__name__)


def create_components(settings: Settings, client: Any | None = None) -> dict[str, Any]:
    """Build all components in dependency order.

    Pass client to substitute the model provider (tests use a scripted fake).
    """
    store = create_session_store(settings)

    registry = ToolRegistry()
    register_builtin_tools(registry)

    if client is None:
        client = AnthropicClient(settings)

    runner = AgentRunner(
        client,
        registry,
        store,
        settings,
        locks=SessionLocks(enabled=settings.session_locking),
    )
    return {
        "store": store,
        "registry": registry,
        "client": client,
        "runner": runner,
    }


def build_app(settings: Settings, client: Any | None = None) -> Starlette:
    """Build the Starlette app with component lifecycle in the lifespan."""
    components = create_components(settings, client)

    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        model_client = components["client"]
        if hasattr(model_client, "start"):
            await model_client.start()

        # Store on app.state for access in tests
        app.state.components = components

        logger.info(
            "agentchat started: model=%s max_turns=%d tools=%d",
            settings.model,
            settings.max_turns,
            len(components["registry"]),
        )
        yield

        logger.info("Shutting down agentchat...")
        if hasattr(model_client, "close"):
            await model_client.close()
        logger.info("agentchat shutdown complete.")

    return create_app(
        runner=components["runner"],
        store=components["store"],
        lifespan=lifespan,
    )


def main() -> None:
    """Entry point -- parse settings, build app, run server."""
    settings = Settings()

    # Configure logging
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    logger.info("Starting agentchat on %s:%d", settings.host, settings.port)
    logger.info("Model: %s", settings.model)
    logger.info("Session backend: %s (locking %s)", settings.session_backend,
                "on" if settings.session_locking else "off")

    if not settings.anthropic_api_key and not settings.anthropic_auth_token:
        logger.warning(
            "Neither ANTHROPIC_API_KEY nor ANTHROPIC_AUTH_TOKEN is set -- "
            "/chat requests will fail"
        )

    app = build_app(settings)

    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
    )


if __name__ == "__main__":
    main()
