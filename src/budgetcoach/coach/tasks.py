"""In-process runner for best-effort background enrichments."""

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

logger = logging.getLogger(__name__)


class BackgroundTasks:
    """Spawn fire-and-forget coroutines whose failures are logged, not raised.

    Tasks that share a ``session_id`` run one at a time, in spawn order, so
    two turns of the same session never summarize or learn concurrently.
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()
        self._session_locks: dict[str, asyncio.Lock] = {}
        self._pending: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._tasks)

    async def _run(
        self, name: str, coro: Coroutine[Any, Any, Any], session_id: str | None
    ) -> Any:
        try:
            if session_id is None:
                return await coro
            async with self._session_locks[session_id]:
                return await coro
        except asyncio.CancelledError:
            coro.close()
            raise
        except Exception:
            logger.exception("Background task %s failed", name)
            return None

    def _forget(self, task: asyncio.Task[Any], session_id: str | None) -> None:
        self._tasks.discard(task)
        if session_id is None:
            return
        self._pending[session_id] -= 1
        if not self._pending[session_id]:
            del self._pending[session_id]
            del self._session_locks[session_id]

    def spawn(
        self,
        name: str,
        coro: Coroutine[Any, Any, Any],
        session_id: str | None = None,
    ) -> asyncio.Task[Any]:
        """Schedule a coroutine on the running loop.

        Args:
            name: Label used in logs
            coro: Coroutine to run
            session_id: Serialize with other tasks of this session

        Returns:
            The scheduled task
        """
        if session_id is not None:
            self._session_locks.setdefault(session_id, asyncio.Lock())
            self._pending[session_id] = self._pending.get(session_id, 0) + 1

        task = asyncio.create_task(self._run(name, coro, session_id), name=name)
        self._tasks.add(task)
        task.add_done_callback(lambda t: self._forget(t, session_id))
        return task

    async def drain(self) -> None:
        """Wait for every outstanding task, including ones spawned meanwhile."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

