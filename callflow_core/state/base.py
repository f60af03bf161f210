"""
State Store Base Types

This module defines the storage contract for per-session state:
whole-attribute reads, and diff writes submitted as batched put/delete
requests chunked to the backend's maximum batch size.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Collection, Dict, List, Optional, Union

import structlog

from ..core.errors import CallflowError
from .codec import decode_value, encode_value
from .session import SessionState

logger = structlog.get_logger(__name__)


DEFAULT_BATCH_SIZE = 25
DEFAULT_TTL_SECONDS = 24 * 60 * 60


# =============================================================================
# Write Requests
# =============================================================================


@dataclass
class PutRequest:
    """Store an encoded attribute value."""

    key: str
    value: str


@dataclass
class DeleteRequest:
    """Remove an attribute."""

    key: str


WriteRequest = Union[PutRequest, DeleteRequest]


def build_write_requests(diff: Dict[str, Any]) -> List[WriteRequest]:
    """Turn a state diff into put and delete requests."""
    requests: List[WriteRequest] = []
    for key, value in diff.items():
        encoded = encode_value(value)
        if encoded is None:
            requests.append(DeleteRequest(key=key))
        else:
            requests.append(PutRequest(key=key, value=encoded))
    return requests


def chunk_requests(
    requests: List[WriteRequest],
    size: int,
) -> List[List[WriteRequest]]:
    """Split requests into batches of at most `size` items."""
    return [requests[i:i + size] for i in range(0, len(requests), size)]


# =============================================================================
# State Store
# =============================================================================


class StateStore(ABC):
    """
    Durable per-session key/value store with a retention window.

    Subclasses implement item loading, a single batch write that may leave
    some items unprocessed, and a conditional write.
    """

    def __init__(
        self,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        self.ttl_seconds = ttl_seconds
        self.batch_size = batch_size

    async def load(self, session_id: str) -> Dict[str, Any]:
        """Load and decode every attribute for a session."""
        items = await self._load_items(session_id)
        return {key: decode_value(key, raw) for key, raw in items.items()}

    async def load_session(self, session_id: str) -> SessionState:
        return SessionState(session_id, await self.load(session_id))

    async def save_diff(self, session_id: str, diff: Dict[str, Any]) -> int:
        """
        Persist a diff of changed attributes.

        None values delete the attribute. Each chunk is retried until every
        item in it has been processed.

        Returns:
            Number of write requests submitted
        """
        requests = build_write_requests(diff)
        if not requests:
            return 0

        for batch in chunk_requests(requests, self.batch_size):
            await self._write_batch_fully(session_id, batch)

        logger.debug(
            "state_persisted",
            session_id=session_id,
            keys=list(diff.keys()),
            requests=len(requests),
        )
        return len(requests)

    async def save_session(self, session: SessionState) -> int:
        """Persist a session's pending changes and reset its tracking."""
        written = await self.save_diff(session.session_id, session.diff())
        session.mark_persisted()
        return written

    async def _write_batch_fully(
        self,
        session_id: str,
        batch: List[WriteRequest],
    ) -> None:
        pending = batch
        attempt = 0
        while pending:
            attempt += 1
            pending = await self._write_batch(session_id, pending)
            if pending:
                logger.warning(
                    "state_batch_unprocessed",
                    session_id=session_id,
                    unprocessed=len(pending),
                    attempt=attempt,
                )

    @abstractmethod
    async def _load_items(self, session_id: str) -> Dict[str, str]:
        """Load raw stored strings for a session."""
        pass

    @abstractmethod
    async def _write_batch(
        self,
        session_id: str,
        batch: List[WriteRequest],
    ) -> List[WriteRequest]:
        """Write one batch, returning any unprocessed requests."""
        pass

    @abstractmethod
    async def save_diff_if(
        self,
        session_id: str,
        diff: Dict[str, Any],
        guard_key: str,
        allowed: Collection[Optional[str]],
    ) -> bool:
        """
        Persist a diff only if the stored value of `guard_key` is one of
        `allowed` (None matches an absent attribute).

        Returns:
            True when the diff was written
        """
        pass

    async def close(self) -> None:
        """Release backend resources."""
        pass


# =============================================================================
# Exceptions
# =============================================================================


class StateStoreError(CallflowError):
    """Base exception for state storage errors."""
    pass


__all__ = [
    "PutRequest",
    "DeleteRequest",
    "WriteRequest",
    "build_write_requests",
    "chunk_requests",
    "StateStore",
    "StateStoreError",
]
