"""Shared fixtures: settings, a scripted model client, and response builders."""

import uuid
from datetime import UTC, datetime

import pytest

from agentchat.api.builtin_tools import register_builtin_tools
from agentchat.api.models import ApiResponse, Usage
from agentchat.api.tools import ToolRegistry
from agentchat.config import Settings
from agentchat.sessions import InMemorySessionStore

FIXED_NOW = datetime(2026, 10, 19, 15, 4, 5, 123000, tzinfo=UTC)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def text_block(text: str) -> dict:
    return {"type": "text", "text": text}


def tool_use_block(tool_use_id: str, name: str, tool_input: dict) -> dict:
    return {"type": "tool_use", "id": tool_use_id, "name": name, "input": tool_input}


def make_api_response(
    text: str = "",
    stop_reason: str = "end_turn",
    tool_uses: list[dict] | None = None,
    input_tokens: int = 10,
    output_tokens: int = 5,
) -> ApiResponse:
    """Build an ApiResponse with text and/or tool_use blocks."""
    content = []
    if text:
        content.append(text_block(text))
    for tu in tool_uses or []:
        tool_use_id = tu.get("id", f"toolu_{uuid.uuid4().hex[:12]}")
        content.append(tool_use_block(tool_use_id, tu["name"], tu.get("input", {})))
    return ApiResponse(
        content=content,
        stop_reason=stop_reason,
        usage=Usage(input_tokens=input_tokens, output_tokens=output_tokens),
    )


class ScriptedModelClient:
    """Returns queued responses in order and records every call.

    A queued exception is raised instead of returned. When repeat_last is
    set, the final response is replayed forever.
    """

    def __init__(self, responses=None, repeat_last: bool = False) -> None:
        self.responses = list(responses or [])
        self.repeat_last = repeat_last
        self.calls: list[dict] = []
        self.started = False
        self.closed = False

    async def start(self) -> None:
        self.started = True

    async def close(self) -> None:
        self.closed = True

    async def create_message(self, system_prompt, messages, tools=None):
        self.calls.append({"system_prompt": system_prompt, "messages": messages, "tools": tools})
        if len(self.responses) > 1 or not self.repeat_last:
            item = self.responses.pop(0)
        else:
            item = self.responses[0]
        if isinstance(item, Exception):
            raise item
        return item


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    """Settings with a fake API key and a small iteration cap."""
    return Settings(
        ANTHROPIC_API_KEY="test-key",
        ANTHROPIC_AUTH_TOKEN="",
        max_turns=3,
        max_tokens=1024,
    )


@pytest.fixture
def registry() -> ToolRegistry:
    """ToolRegistry with built-in tools on a pinned clock."""
    r = ToolRegistry()
    register_builtin_tools(r, clock=lambda: FIXED_NOW)
    return r


@pytest.fixture
def store() -> InMemorySessionStore:
    return InMemorySessionStore()
