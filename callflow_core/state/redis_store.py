"""
Redis State Store
=================

Stores each session as a Redis hash keyed by session id. Every write
refreshes the hash expiry so a session is retained for the configured window
after its last write.

Usage:
    store = RedisStateStore.from_url("redis://localhost:6379/0")

    state = await store.load("contact-123")
    await store.save_diff("contact-123", {"CurrentRule": "Greeting"})
"""

from typing import Any, Collection, Dict, List, Optional

import redis.asyncio as redis
import structlog
from redis.exceptions import WatchError

from .base import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_TTL_SECONDS,
    DeleteRequest,
    PutRequest,
    StateStore,
    StateStoreError,
    WriteRequest,
    build_write_requests,
)

logger = structlog.get_logger(__name__)


class RedisStateStore(StateStore):
    """State store backed by one Redis hash per session."""

    def __init__(
        self,
        client: "redis.Redis",
        key_prefix: str = "callflow:",
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        super().__init__(ttl_seconds=ttl_seconds, batch_size=batch_size)
        if client is None:
            raise StateStoreError("Redis client is required")
        self._client = client
        self.key_prefix = key_prefix

    @classmethod
    def from_url(
        cls,
        url: str,
        key_prefix: str = "callflow:",
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> "RedisStateStore":
        client = redis.from_url(url, decode_responses=True)
        logger.info("redis_state_store_created", url=url, key_prefix=key_prefix)
        return cls(
            client,
            key_prefix=key_prefix,
            ttl_seconds=ttl_seconds,
            batch_size=batch_size,
        )

    def session_key(self, session_id: str) -> str:
        return f"{self.key_prefix}state:{session_id}"

    async def _load_items(self, session_id: str) -> Dict[str, str]:
        items = await self._client.hgetall(self.session_key(session_id))
        return {
            _as_text(key): _as_text(value)
            for key, value in items.items()
        }

    async def _write_batch(
        self,
        session_id: str,
        batch: List[WriteRequest],
    ) -> List[WriteRequest]:
        key = self.session_key(session_id)
        pipe = self._client.pipeline(transaction=True)
        self._queue_requests(pipe, key, batch)
        await pipe.execute()
        return []

    async def save_diff_if(
        self,
        session_id: str,
        diff: Dict[str, Any],
        guard_key: str,
        allowed: Collection[Optional[str]],
    ) -> bool:
        key = self.session_key(session_id)
        requests = build_write_requests(diff)

        async with self._client.pipeline(transaction=True) as pipe:
            while True:
                try:
                    await pipe.watch(key)
                    current = await pipe.hget(key, guard_key)
                    if current is not None:
                        current = _as_text(current)

                    if current not in allowed:
                        await pipe.unwatch()
                        logger.info(
                            "conditional_write_rejected",
                            session_id=session_id,
                            guard_key=guard_key,
                            current=current,
                        )
                        return False

                    pipe.multi()
                    self._queue_requests(pipe, key, requests)
                    await pipe.execute()
                    return True
                except WatchError:
                    logger.debug("conditional_write_retry", session_id=session_id)
                    continue

    def _queue_requests(self, pipe: Any, key: str, requests: List[WriteRequest]) -> None:
        for request in requests:
            if isinstance(request, PutRequest):
                pipe.hset(key, request.key, request.value)
            elif isinstance(request, DeleteRequest):
                pipe.hdel(key, request.key)
        pipe.expire(key, self.ttl_seconds)

    async def close(self) -> None:
        await self._client.aclose()


def _as_text(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return value
