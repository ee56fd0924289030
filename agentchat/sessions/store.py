"""Session stores: session id -> transcript.

SessionStore is the protocol the runner and REST layer depend on. Two
in-process backends are provided:

- InMemorySessionStore: unbounded dict, sessions live until deleted
- LRUSessionStore: bounded OrderedDict with least-recently-used
  eviction and optional idle expiry

All methods are synchronous; transcripts are returned by reference and
appended to in place.
"""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from collections.abc import Callable, Iterator
from contextlib import AbstractContextManager, contextmanager
from typing import Protocol

from agentchat.api.models import Conversation, Message
from agentchat.config import Settings

logger = logging.getLogger(__name__)


class SessionStore(Protocol):
    """Protocol for transcript storage keyed by session id."""

    def get_or_create(self, session_id: str) -> list[Message]:
        """Return the session's transcript, creating an empty one on first use."""
        ...

    def get(self, session_id: str) -> list[Message] | None:
        """Return the transcript, or None if the session does not exist."""
        ...

    def append(self, session_id: str, message: Message) -> None:
        """Append a turn, creating the session if needed."""
        ...

    def delete(self, session_id: str) -> bool:
        """Remove a session. Returns False if it did not exist."""
        ...

    def in_use(self, session_id: str) -> AbstractContextManager[None]:
        """Keep the session from being evicted while a turn is running on it."""
        ...

    def session_ids(self) -> list[str]:
        ...

    def __contains__(self, session_id: object) -> bool:
        ...

    def __len__(self) -> int:
        ...


class InMemorySessionStore:
    """Process-wide dict of conversations with no eviction."""

    def __init__(self) -> None:
        self._conversations: dict[str, Conversation] = {}

    def get_or_create(self, session_id: str) -> list[Message]:
        conversation = self._conversations.get(session_id)
        if conversation is None:
            conversation = Conversation(session_id=session_id)
            self._conversations[session_id] = conversation
        return conversation.messages

    def get(self, session_id: str) -> list[Message] | None:
        conversation = self._conversations.get(session_id)
        return conversation.messages if conversation else None

    @contextmanager
    def in_use(self, session_id: str) -> Iterator[None]:
        yield

    def append(self, session_id: str, message: Message) -> None:
        self.get_or_create(session_id).append(message)

    def delete(self, session_id: str) -> bool:
        return self._conversations.pop(session_id, None) is not None

    def session_ids(self) -> list[str]:
        return list(self._conversations)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._conversations

    def __len__(self) -> int:
        return len(self._conversations)


class LRUSessionStore:
    """Bounded conversation cache with LRU eviction and optional idle TTL.

    Any access (get, get_or_create, append) marks a session as most
    recently used. With ttl_seconds > 0, sessions idle longer than the
    TTL are dropped lazily on the next access. Sessions held through
    in_use() are never evicted or expired; if every session is held, the
    store grows past max_sessions until one is released.
    """

    def __init__(
        self,
        max_sessions: int = 1000,
        ttl_seconds: float = 0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_sessions < 1:
            raise ValueError("max_sessions must be >= 1")
        self._max_sessions = max_sessions
        self._ttl = ttl_seconds
        self._clock = clock
        self._conversations: OrderedDict[str, Conversation] = OrderedDict()
        self._last_used: dict[str, float] = {}
        self._pinned: dict[str, int] = {}

    def _expire(self) -> None:
        if self._ttl <= 0:
            return
        cutoff = self._clock() - self._ttl
        # Oldest first, so stop at the first live session
        for session_id in list(self._conversations):
            if session_id in self._pinned:
                continue
            if self._last_used[session_id] > cutoff:
                break
            logger.debug("Expiring idle session %s", session_id)
            self._drop(session_id)

    def _drop(self, session_id: str) -> None:
        self._conversations.pop(session_id, None)
        self._last_used.pop(session_id, None)

    def _evict_for_capacity(self) -> None:
        """Drop least recently used sessions that are not in use."""
        while len(self._conversations) >= self._max_sessions:
            evicted = next((s for s in self._conversations if s not in self._pinned), None)
            if evicted is None:
                logger.debug("All %d sessions in use, growing past capacity", len(self._conversations))
                return
            self._drop(evicted)
            logger.debug("Evicted session %s (capacity %d)", evicted, self._max_sessions)

    def _touch(self, session_id: str) -> None:
        self._conversations.move_to_end(session_id)
        self._last_used[session_id] = self._clock()

    def get_or_create(self, session_id: str) -> list[Message]:
        self._expire()
        if session_id in self._conversations:
            self._touch(session_id)
            return self._conversations[session_id].messages

        self._evict_for_capacity()

        conversation = Conversation(session_id=session_id)
        self._conversations[session_id] = conversation
        self._last_used[session_id] = self._clock()
        return conversation.messages

    def get(self, session_id: str) -> list[Message] | None:
        self._expire()
        if session_id not in self._conversations:
            return None
        self._touch(session_id)
        return self._conversations[session_id].messages

    def append(self, session_id: str, message: Message) -> None:
        self.get_or_create(session_id).append(message)

    @contextmanager
    def in_use(self, session_id: str) -> Iterator[None]:
        self._pinned[session_id] = self._pinned.get(session_id, 0) + 1
        try:
            yield
        finally:
            remaining = self._pinned.pop(session_id) - 1
            if remaining:
                self._pinned[session_id] = remaining
            if session_id in self._conversations:
                self._touch(session_id)

    def delete(self, session_id: str) -> bool:
        self._expire()
        if session_id not in self._conversations:
            return False
        self._drop(session_id)
        return True

    def session_ids(self) -> list[str]:
        self._expire()
        return list(self._conversations)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._conversations

    def __len__(self) -> int:
        return len(self._conversations)


def create_session_store(settings: Settings) -> SessionStore:
    """Build the session backend selected by settings.session_backend."""
    if settings.session_backend == "lru":
        logger.info(
            "Session store: lru (max_sessions=%d, ttl=%ds)",
            settings.max_sessions,
            settings.session_ttl_seconds,
        )
        return LRUSessionStore(settings.max_sessions, settings.session_ttl_seconds)
    logger.info("Session store: in-memory (unbounded)")
    return InMemorySessionStore()
