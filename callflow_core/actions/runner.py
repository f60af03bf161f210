"""
Action Runners

Runners hand an action to whatever executes it and return without waiting
for the action to finish. The action reports back through the supervisor's
completion path.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, Optional, Set

import httpx
import structlog

from .base import ActionDispatchError

logger = structlog.get_logger(__name__)


ActionHandler = Callable[[Dict[str, Any]], Awaitable[Any]]


class ActionRunner(ABC):
    """Dispatches actions by reference."""

    @abstractmethod
    async def dispatch(self, action_ref: str, payload: Dict[str, Any]) -> None:
        """
        Start an action without waiting for its result.

        Raises:
            ActionDispatchError: If the action could not be started
        """
        pass

    async def close(self) -> None:
        pass


class LocalActionRunner(ActionRunner):
    """
    Runs registered coroutine handlers as background asyncio tasks.

    Usage:
        runner = LocalActionRunner()
        runner.register("arn:function/search", search_handler)
        await runner.dispatch("arn:function/search", {"ContactId": "c-1"})
        await runner.drain()
    """

    def __init__(self, handlers: Optional[Dict[str, ActionHandler]] = None):
        self._handlers: Dict[str, ActionHandler] = dict(handlers or {})
        self._tasks: Set["asyncio.Task[Any]"] = set()

    def register(self, action_ref: str, handler: ActionHandler) -> None:
        self._handlers[action_ref] = handler

    async def dispatch(self, action_ref: str, payload: Dict[str, Any]) -> None:
        handler = self._handlers.get(action_ref)
        if handler is None:
            raise ActionDispatchError(f"No handler registered for action: {action_ref}")

        task = asyncio.create_task(self._run(action_ref, handler, payload))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.debug("action_dispatched", action_ref=action_ref)

    async def _run(self, action_ref: str, handler: ActionHandler, payload: Dict[str, Any]) -> None:
        try:
            await handler(payload)
        except Exception:
            # Handlers record their own failure; this only stops the task
            # exception from going unobserved
            logger.exception("action_handler_failed", action_ref=action_ref)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every dispatched action to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def close(self) -> None:
        await self.drain()


class HttpActionRunner(ActionRunner):
    """
    Dispatches actions as webhook calls.

    The action reference is a URL, or a path joined to `base_url`. The
    endpoint is expected to accept the request and run the action in the
    background.
    """

    def __init__(
        self,
        base_url: str = "",
        timeout_seconds: float = 10.0,
        headers: Optional[Dict[str, str]] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout_seconds, connect=5.0),
            headers=headers or {},
        )

    async def dispatch(self, action_ref: str, payload: Dict[str, Any]) -> None:
        try:
            response = await self._client.post(action_ref, json=payload)
        except httpx.TimeoutException as e:
            raise ActionDispatchError(f"Action dispatch timed out: {action_ref}") from e
        except httpx.HTTPError as e:
            raise ActionDispatchError(f"Action dispatch failed: {action_ref}: {e}") from e

        if not 200 <= response.status_code < 300:
            raise ActionDispatchError(
                f"Action dispatch rejected: {action_ref}: HTTP {response.status_code}"
            )

        logger.debug(
            "action_dispatched",
            action_ref=action_ref,
            status_code=response.status_code,
        )

    async def close(self) -> None:
        await self._client.aclose()
