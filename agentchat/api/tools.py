"""Tool registry for direct Anthropic API integration.

ToolRegistry maps a tool name to its JSON schema and a synchronous
handler. execute() never raises: unknown names, input that fails the
schema, and handler exceptions all come back as {"error": ...} so the
agent loop always has a tool_result to send to the model.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from datetime import date, datetime
from typing import Any

from jsonschema import Draft7Validator

logger = logging.getLogger(__name__)

ToolHandler = Callable[..., Any]


def _json_default(obj: Any) -> Any:
    """Convert non-JSON-serializable values in tool results."""
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    raise TypeError(f"Object of type {type(obj).__name__!r} is not JSON serializable")


def serialize_result(result: Any) -> str:
    """Serialize a tool result (or error payload) for a tool_result block."""
    try:
        return json.dumps(result, default=_json_default)
    except (TypeError, ValueError) as e:
        logger.warning("Tool result not serializable: %s", e)
        return json.dumps({"error": f"Tool result not serializable: {e}"})


class ToolRegistry:
    """Registers tool handlers and dispatches tool calls from the API.

    Each handler accepts the tool input as keyword arguments (only the
    keys the schema declares under "properties") and returns a
    JSON-serializable value. Registration order is preserved in
    describe(), which is what the model sees on every call.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, ToolHandler] = {}
        self._schemas: dict[str, dict[str, Any]] = {}
        self._validators: dict[str, Draft7Validator] = {}

    def register(self, name: str, handler: ToolHandler, schema: dict[str, Any]) -> None:
        """Register a tool handler with its JSON schema.

        The schema's "description" key becomes the tool description.
        """
        Draft7Validator.check_schema(schema)
        self._handlers[name] = handler
        self._schemas[name] = schema
        self._validators[name] = Draft7Validator(schema)

    def __contains__(self, name: object) -> bool:
        return name in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)

    def describe(self) -> list[dict[str, Any]]:
        """Return all tool definitions in Anthropic API format."""
        return [
            {
                "name": name,
                "description": schema.get("description", ""),
                "input_schema": {k: v for k, v in schema.items() if k != "description"},
            }
            for name, schema in self._schemas.items()
        ]

    def execute(self, name: str, tool_input: Any) -> Any:
        """Run a tool and return its result, or {"error": reason}."""
        handler = self._handlers.get(name)
        if handler is None:
            logger.warning("Model requested unknown tool: %s", name)
            return {"error": f"Unknown tool: {name}"}

        if tool_input is None:
            tool_input = {}
        if not isinstance(tool_input, dict):
            return {"error": f"Invalid input for {name}: expected an object"}

        errors = list(self._validators[name].iter_errors(tool_input))
        if errors:
            reason = "; ".join(e.message for e in errors)
            return {"error": f"Invalid input for {name}: {reason}"}

        # Keys outside the declared properties are ignored, not passed on
        properties = self._schemas[name].get("properties")
        if properties is not None:
            tool_input = {k: v for k, v in tool_input.items() if k in properties}

        try:
            return handler(**tool_input)
        except Exception as e:
            logger.exception("Tool execution error for %s", name)
            return {"error": f"Tool {name} failed: {e}"}
