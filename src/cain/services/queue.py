"""
Closable request queue between the admission path and a provisioner.
"""

import asyncio
import logging
from typing import Generic, TypeVar

from ..errors import QueueClosedError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RequestQueue(Generic[T]):
    """
    FIFO queue with a capacity of one request and an explicit close.

    The small capacity makes the admission path wait while the worker is
    still busy with the previous request. Closing wakes up the consumer, and
    every later ``put`` fails with ``QueueClosedError`` instead of racing
    the shutdown.
    """

    def __init__(self, name: str, maxsize: int = 1):
        self.name = name
        # one extra slot so the close sentinel never blocks
        self._queue: asyncio.Queue[T | None] = asyncio.Queue(maxsize=maxsize + 1)
        self._maxsize = maxsize
        self._closed = False
        self._not_full = asyncio.Condition()

    @property
    def closed(self) -> bool:
        return self._closed

    def qsize(self) -> int:
        return self._queue.qsize()

    async def put(self, item: T) -> None:
        """
        Submit a request, waiting while the queue is full.

        Raises:
            QueueClosedError: If the queue is or gets closed
        """
        async with self._not_full:
            await self._not_full.wait_for(
                lambda: self._closed or self._queue.qsize() < self._maxsize
            )
            if self._closed:
                raise QueueClosedError(self.name)
            self._queue.put_nowait(item)

    async def get(self) -> T | None:
        """Return the next request, None once closed and drained."""
        if self._closed and self._queue.empty():
            return None

        item = await self._queue.get()
        async with self._not_full:
            self._not_full.notify_all()
        return item

    async def close(self) -> None:
        """Close the queue, idempotent."""
        async with self._not_full:
            if self._closed:
                return
            self._closed = True
            self._not_full.notify_all()
            self._queue.put_nowait(None)
        logger.debug(f"Closed provisioning queue {self.name}")
