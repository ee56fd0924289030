"""Sessions module -- transcript storage for agentchat.

Public API:
    SessionStore         - Protocol implemented by every backend
    InMemorySessionStore - Unbounded process-wide map
    LRUSessionStore      - Bounded map with LRU eviction and idle TTL
    SessionLocks         - Optional per-session turn serialization
    create_session_store - Backend factory driven by Settings
"""

from agentchat.sessions.locks import SessionLocks
from agentchat.sessions.store import (
    InMemorySessionStore,
    LRUSessionStore,
    SessionStore,
    create_session_store,
)

__all__ = [
    "InMemorySessionStore",
    "LRUSessionStore",
    "SessionLocks",
    "SessionStore",
    "create_session_store",
]
