"""Shared data models for the API layer.

Content blocks stay as plain dicts in Anthropic wire format so the
transcript can be sent back to the Messages API and returned from
GET /chat/{session_id} without conversion.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

ContentBlock = dict[str, Any]


@dataclass
class Message:
    """A single turn in a transcript."""

    role: str  # "user" or "assistant"
    content: str | list[ContentBlock]

    def to_dict(self) -> dict[str, Any]:
        return {"role": self.role, "content": self.content}


@dataclass
class Conversation:
    """Tracks a multi-turn conversation."""

    session_id: str
    messages: list[Message] = field(default_factory=list)


@dataclass
class Usage:
    """Token counters, summed across model calls."""

    input_tokens: int = 0
    output_tokens: int = 0

    def add(self, other: Usage | None) -> None:
        if other is None:
            return
        self.input_tokens += other.input_tokens
        self.output_tokens += other.output_tokens

    @classmethod
    def from_api(cls, data: dict[str, Any] | None) -> Usage:
        data = data or {}
        return cls(
            input_tokens=int(data.get("input_tokens") or 0),
            output_tokens=int(data.get("output_tokens") or 0),
        )

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass
class ApiResponse:
    """Parsed response from Anthropic Messages API."""

    content: list[ContentBlock]  # Raw content blocks from API
    stop_reason: str  # end_turn, max_tokens, tool_use, stop_sequence
    usage: Usage = field(default_factory=Usage)


@dataclass
class TurnOutcome:
    """Result of one /chat turn through the agent loop."""

    response: str
    usage: Usage
    iterations: int


def tool_result_block(tool_use_id: str, content: str) -> ContentBlock:
    return {"type": "tool_result", "tool_use_id": tool_use_id, "content": content}


def first_text(content: list[ContentBlock]) -> str:
    """Return the text of the first text block, or "" when there is none."""
    for block in content:
        if block.get("type") == "text":
            return block.get("text", "")
    return ""
