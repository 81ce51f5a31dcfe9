"""
Bounded registry of apply-leave sessions.

One ``ApplyLeaveSession`` per (bearer token, session id) pair, each with its
own backend client bound to that token. A caller presenting a different token
for the same session id gets a separate session. Idle sessions expire after
the TTL and the oldest are evicted beyond the size cap.
"""

import logging
import time
from collections import OrderedDict
from collections.abc import Callable
from typing import Any

from messleave.api_client import MessApiClient
from messleave.apply_leave import ApplyLeaveSession
from messleave.circuit_breaker import CircuitBreaker
from messleave.config import settings

logger = logging.getLogger(__name__)

SessionKey = tuple[str | None, str]


class SessionRegistry:
    def __init__(
        self,
        client_factory: Callable[[str | None], MessApiClient] | None = None,
        max_sessions: int | None = None,
        ttl_seconds: int | None = None,
    ):
        # All sessions talk to the same backend, so they share one breaker
        self.circuit_breaker = CircuitBreaker(
            failure_threshold=settings.circuit_breaker_failure_threshold,
            timeout=settings.circuit_breaker_timeout,
            name="MessApiCircuitBreaker",
        )
        self.client_factory = client_factory or self._default_client
        self.max_sessions = max_sessions or settings.max_sessions
        self.ttl_seconds = ttl_seconds or settings.session_ttl_seconds

        # Keyed by (token, session_id), oldest first so eviction is deterministic.
        # Each entry holds ts (last access) and session.
        self.sessions: OrderedDict[SessionKey, dict[str, Any]] = OrderedDict()

    def _default_client(self, token: str | None) -> MessApiClient:
        return MessApiClient(token=token, circuit_breaker=self.circuit_breaker)

    async def _close(self, key: SessionKey, entry: dict[str, Any]) -> None:
        await entry["session"].client.close()
        logger.info(f"Closed apply-leave session {key[1]}")

    async def prune(self) -> None:
        """Drop expired sessions, then the oldest ones beyond capacity."""
        now = time.time()

        expired = [key for key, entry in self.sessions.items() if now - entry["ts"] > self.ttl_seconds]
        for key in expired:
            await self._close(key, self.sessions.pop(key))

        while len(self.sessions) > self.max_sessions:
            oldest_key, entry = self.sessions.popitem(last=False)
            await self._close(oldest_key, entry)

    async def get(self, session_id: str, token: str | None = None) -> ApplyLeaveSession:
        """Return the caller's session for ``session_id``, creating it on first use."""
        key = (token, session_id)
        entry = self.sessions.get(key)
        if entry is None:
            entry = {"session": ApplyLeaveSession(self.client_factory(token))}
            self.sessions[key] = entry
            logger.info(f"Created apply-leave session {session_id}")

        entry["ts"] = time.time()
        self.sessions.move_to_end(key)

        await self.prune()
        return entry["session"]

    async def reset(self, session_id: str, token: str | None = None) -> bool:
        key = (token, session_id)
        entry = self.sessions.pop(key, None)
        if entry is None:
            return False
        await self._close(key, entry)
        return True

    async def close_all(self) -> None:
        while self.sessions:
            key, entry = self.sessions.popitem(last=False)
            await self._close(key, entry)

    def __len__(self) -> int:
        return len(self.sessions)
