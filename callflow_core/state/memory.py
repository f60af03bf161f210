"""In-memory state store implementation."""

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Callable, Collection, Dict, List, Optional

import structlog

from .base import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_TTL_SECONDS,
    DeleteRequest,
    PutRequest,
    StateStore,
    WriteRequest,
    build_write_requests,
)

logger = structlog.get_logger(__name__)


@dataclass
class StoredItem:
    """A single stored attribute."""

    value: str
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class InMemoryStateStore(StateStore):
    """
    Process-local state store.

    Every stored item carries its own expiry, refreshed when written.
    Sessions whose items have all expired are swept on writes, at most once
    per cleanup interval. Batch writes can be recorded and throttled so that
    the last item of a batch is left unprocessed, which exercises the retry
    path.
    """

    def __init__(
        self,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        batch_size: int = DEFAULT_BATCH_SIZE,
        clock: Callable[[], float] = time.time,
        record_batches: bool = False,
        cleanup_interval_seconds: float = 60.0,
    ):
        super().__init__(ttl_seconds=ttl_seconds, batch_size=batch_size)
        self._clock = clock
        self._sessions: Dict[str, Dict[str, StoredItem]] = {}
        self._session_expiry: Dict[str, float] = {}
        self._lock = asyncio.Lock()
        self._throttled_writes = 0
        self._cleanup_interval = cleanup_interval_seconds
        self._last_cleanup = clock()
        self.record_batches = record_batches
        self.batches: List[List[WriteRequest]] = []

    def throttle_next_writes(self, count: int) -> None:
        """Leave one item unprocessed on each of the next `count` batch writes."""
        self._throttled_writes = count

    @property
    def session_count(self) -> int:
        return len(self._sessions)

    async def _load_items(self, session_id: str) -> Dict[str, str]:
        now = self._clock()
        async with self._lock:
            items = self._sessions.get(session_id, {})
            expired = [key for key, item in items.items() if item.is_expired(now)]
            for key in expired:
                del items[key]
            if not items:
                self._drop_session(session_id)
            return {key: item.value for key, item in items.items()}

    async def _write_batch(
        self,
        session_id: str,
        batch: List[WriteRequest],
    ) -> List[WriteRequest]:
        if self.record_batches:
            self.batches.append(list(batch))

        unprocessed: List[WriteRequest] = []
        to_apply = batch
        if self._throttled_writes > 0 and len(batch) > 1:
            self._throttled_writes -= 1
            to_apply, unprocessed = batch[:-1], batch[-1:]

        async with self._lock:
            self._apply(session_id, to_apply)
            self._maybe_cleanup()

        return unprocessed

    async def save_diff_if(
        self,
        session_id: str,
        diff: Dict[str, Any],
        guard_key: str,
        allowed: Collection[Optional[str]],
    ) -> bool:
        requests = build_write_requests(diff)
        now = self._clock()

        async with self._lock:
            item = self._sessions.get(session_id, {}).get(guard_key)
            current = item.value if item and not item.is_expired(now) else None

            if current not in allowed:
                logger.info(
                    "conditional_write_rejected",
                    session_id=session_id,
                    guard_key=guard_key,
                    current=current,
                )
                return False

            self._apply(session_id, requests)
            self._maybe_cleanup()
            return True

    def _apply(self, session_id: str, requests: List[WriteRequest]) -> None:
        expires_at = self._clock() + self.ttl_seconds
        items = self._sessions.setdefault(session_id, {})

        for request in requests:
            if isinstance(request, PutRequest):
                items[request.key] = StoredItem(value=request.value, expires_at=expires_at)
            elif isinstance(request, DeleteRequest):
                items.pop(request.key, None)

        if items:
            self._session_expiry[session_id] = max(
                self._session_expiry.get(session_id, 0.0), expires_at
            )
        else:
            self._drop_session(session_id)

    def _drop_session(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)
        self._session_expiry.pop(session_id, None)

    def _maybe_cleanup(self) -> None:
        now = self._clock()
        if now - self._last_cleanup < self._cleanup_interval:
            return
        self._last_cleanup = now
        self._remove_expired_sessions(now)

    def _remove_expired_sessions(self, now: float) -> int:
        expired = [
            session_id
            for session_id, expires_at in self._session_expiry.items()
            if now >= expires_at
        ]
        for session_id in expired:
            self._drop_session(session_id)
        if expired:
            logger.debug("expired_sessions_removed", count=len(expired))
        return len(expired)

    async def cleanup_expired(self) -> int:
        """Remove sessions whose items have all expired."""
        async with self._lock:
            return self._remove_expired_sessions(self._clock())

    async def clear(self) -> None:
        async with self._lock:
            self._sessions.clear()
            self._session_expiry.clear()
