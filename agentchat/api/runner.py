"""Agent runner -- executes conversational turns via the Anthropic Messages API.

Owns the tool use loop: call the model, dispatch any requested tools,
feed the results back, and stop on the first response that does not
ask for a tool. The loop is bounded by settings.max_turns.
"""

from __future__ import annotations

import logging
from typing import Any

from agentchat.api.client import ModelClient
from agentchat.api.models import (
    ApiResponse,
    Message,
    TurnOutcome,
    Usage,
    first_text,
    tool_result_block,
)
from agentchat.api.tools import ToolRegistry, serialize_result
from agentchat.config import Settings
from agentchat.errors import IterationLimitExceeded
from agentchat.sessions import SessionLocks, SessionStore

logger = logging.getLogger(__name__)


class AgentRunner:
    """Runs conversational turns against a session transcript.

    The transcript is mutated in place: each turn appends the user
    message, every tool round (assistant tool calls + user tool results),
    and the final assistant response. Nothing is rolled back on failure.
    The session is held in the store for the whole turn, so a bounded
    store cannot evict it while the model call is in flight.
    """

    def __init__(
        self,
        client: ModelClient,
        registry: ToolRegistry,
        store: SessionStore,
        settings: Settings,
        locks: SessionLocks | None = None,
    ) -> None:
        self._client = client
        self._registry = registry
        self._store = store
        self._settings = settings
        self._locks = locks or SessionLocks(enabled=settings.session_locking)

    @property
    def store(self) -> SessionStore:
        return self._store

    async def run_turn(self, session_id: str, user_message: str) -> TurnOutcome:
        """Execute a single conversational turn.

        Steps:
        1. Get or create the transcript for session_id
        2. Append the user message
        3. Run the tool loop until a terminal response or max_turns

        Raises IterationLimitExceeded when the loop is cut off, and lets
        model client errors propagate unchanged.
        """
        async with self._locks.hold(session_id):
            with self._store.in_use(session_id):
                transcript = self._store.get_or_create(session_id)
                transcript.append(Message(role="user", content=user_message))
                outcome = await self._tool_loop(transcript)

        logger.info(
            "Turn complete: session=%s iterations=%d tokens=%d/%d",
            session_id,
            outcome.iterations,
            outcome.usage.input_tokens,
            outcome.usage.output_tokens,
        )
        return outcome

    # ------------------------------------------------------------------
    # Tool loop
    # ------------------------------------------------------------------

    async def _tool_loop(self, transcript: list[Message]) -> TurnOutcome:
        """Run the tool use loop until completion or max_turns.

        The loop:
        1. Call API with the system prompt, full transcript, and tool declarations
        2. If stop_reason is "tool_use" with tool_use blocks: append the
           assistant content, dispatch every tool, append all results as
           one user message, and repeat
        3. Otherwise append the assistant content and return the first text
        """
        tools = self._registry.describe()
        max_turns = self._settings.max_turns
        usage = Usage()
        iterations = 0

        while iterations < max_turns:
            iterations += 1
            api_response = await self._client.create_message(
                system_prompt=self._settings.system_prompt,
                messages=[m.to_dict() for m in transcript],
                tools=tools or None,
            )
            usage.add(api_response.usage)

            tool_uses = [b for b in api_response.content if b.get("type") == "tool_use"]

            if api_response.stop_reason == "tool_use" and tool_uses:
                # Append FULL assistant response (text + tool_use blocks)
                transcript.append(Message(role="assistant", content=api_response.content))
                # All tool results go back in a SINGLE user message
                transcript.append(Message(role="user", content=self._dispatch_tools(tool_uses)))
                continue

            return self._finish(transcript, api_response, usage, iterations)

        logger.warning("Tool loop reached max_turns=%d without a final response", max_turns)
        raise IterationLimitExceeded(iterations)

    def _dispatch_tools(self, tool_uses: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Execute tool_use blocks in order, returning matching tool_result blocks."""
        results: list[dict[str, Any]] = []
        for block in tool_uses:
            tool_name = block.get("name", "")
            tool_input = block.get("input", {})
            logger.info("Executing tool: %s %s", tool_name, tool_input)
            result = self._registry.execute(tool_name, tool_input)
            results.append(tool_result_block(block.get("id", ""), serialize_result(result)))
        return results

    @staticmethod
    def _finish(
        transcript: list[Message],
        api_response: ApiResponse,
        usage: Usage,
        iterations: int,
    ) -> TurnOutcome:
        transcript.append(Message(role="assistant", content=api_response.content))
        return TurnOutcome(
            response=first_text(api_response.content),
            usage=usage,
            iterations=iterations,
        )
