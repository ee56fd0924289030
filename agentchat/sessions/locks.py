"""Per-session mutual exclusion for agent turns.

With locking enabled, two /chat requests for the same session run one
after the other instead of interleaving appends into one transcript.
Requests for different sessions never wait on each other.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


class SessionLocks:
    """Lazily created asyncio.Lock per session id.

    Locks are dropped once no request holds or waits on them, so the
    map does not grow with the number of sessions ever seen.
    """

    def __init__(self, enabled: bool = True) -> None:
        self.enabled = enabled
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, session_id: str) -> AsyncIterator[None]:
        """Hold the session's lock for the duration of the block."""
        if not self.enabled:
            yield
            return

        lock = self._locks.setdefault(session_id, asyncio.Lock())
        self._waiters[session_id] = self._waiters.get(session_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[session_id] -= 1
            if self._waiters[session_id] == 0:
                del self._waiters[session_id]
                self._locks.pop(session_id, None)

    def __len__(self) -> int:
        """Number of sessions with a turn running or queued."""
        return len(self._locks)
