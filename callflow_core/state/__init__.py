"""
Session State Package

Per-session attribute storage with diff-based persistence:

    from callflow_core.state import InMemoryStateStore, SessionState

    store = InMemoryStateStore()
    session = await store.load_session("contact-123")
    session.update("CurrentRule", "Greeting")
    await store.save_session(session)
"""

from .base import (
    DeleteRequest,
    PutRequest,
    StateStore,
    StateStoreError,
    WriteRequest,
    build_write_requests,
    chunk_requests,
)
from .codec import decode_value, encode_value, is_number
from .keys import StateKeys
from .memory import InMemoryStateStore
from .redis_store import RedisStateStore
from .session import SessionState

__all__ = [
    "DeleteRequest",
    "PutRequest",
    "StateStore",
    "StateStoreError",
    "WriteRequest",
    "build_write_requests",
    "chunk_requests",
    "decode_value",
    "encode_value",
    "is_number",
    "StateKeys",
    "InMemoryStateStore",
    "RedisStateStore",
    "SessionState",
]
