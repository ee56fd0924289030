"""Request-level failures raised by the agent core.

Each maps to one HTTP status at the REST boundary. Tool failures are not
part of this family: they are returned to the model as tool_result data.
"""

from __future__ import annotations


class AgentChatError(Exception):
    """Base class for agentchat failures."""

    status_code = 500


class ValidationError(AgentChatError):
    """Caller supplied missing or malformed input."""

    status_code = 400


class IterationLimitExceeded(AgentChatError):
    """The agent loop hit max_turns without a terminal response."""

    def __init__(self, iterations: int) -> None:
        super().__init__(f"Agent loop exceeded maximum iterations ({iterations})")
        self.iterations = iterations


class UpstreamError(AgentChatError):
    """The model provider call failed (transport, timeout, or API error)."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error_type: str | None = None,
    ) -> None:
        super().__init__(message)
        self.upstream_status = status_code
        self.error_type = error_type


class SessionNotFound(AgentChatError):
    """No transcript exists for the requested session id."""

    status_code = 404

    def __init__(self, session_id: str) -> None:
        super().__init__("Session not found")
        self.session_id = session_id
