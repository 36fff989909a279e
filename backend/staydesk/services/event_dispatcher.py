"""Outbound events — audit and notification writes that run after the business transaction commits.

Each event runs as its own asyncio task with its own session. A failing event
is logged and dropped; it never reaches the request that emitted it.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = logging.getLogger(__name__)

EventHandler = Callable[[AsyncSession], Awaitable[object]]


class EventDispatcher:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory
        self._tasks: set[asyncio.Task] = set()

    def emit(self, name: str, handler: EventHandler) -> asyncio.Task:
        task = asyncio.create_task(self._run(name, handler), name=f"event:{name}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, name: str, handler: EventHandler) -> None:
        try:
            async with self.session_factory() as db:
                await handler(db)
                await db.commit()
        except Exception as e:
            logger.error(f"Outbound event '{name}' failed and was dropped: {e}")

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every in-flight event (shutdown and tests)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
