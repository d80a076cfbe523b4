# jwst_cosmos/progress.py
"""
Bounded single-producer/single-consumer progress delivery.

A background task publishes events; a UI either iterates the channel or
polls it between redraws. Progress is advisory, so a full channel drops the
oldest pending event instead of blocking the producer.
"""

import asyncio
import logging
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_CAPACITY = 100

_CLOSED = object()


class ProgressChannel(Generic[T]):
    """
    Bounded FIFO of progress events with drop-oldest overflow.

    The producer calls publish() and finally close(). The consumer uses
    `async for event in channel`, get(), or the non-blocking poll().
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        # One extra slot keeps room for the close marker.
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=capacity + 1)
        self._capacity = capacity
        self._closed = False
        self._drained = False
        self.dropped = 0

    @property
    def closed(self) -> bool:
        """True once the producer has finished."""
        return self._closed

    def publish(self, event: T) -> bool:
        """
        Enqueue an event without blocking.

        Returns:
            False if the channel is already closed (event discarded).
        """
        if self._closed:
            return False
        if self._queue.qsize() >= self._capacity:
            self._queue.get_nowait()
            self.dropped += 1
            logger.debug(f"Progress channel full, dropped oldest event ({self.dropped} total)")
        self._queue.put_nowait(event)
        return True

    def close(self) -> None:
        """Mark the end of the stream. Idempotent."""
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)

    async def get(self) -> T | None:
        """Wait for the next event; None once the channel is closed and drained."""
        if self._drained:
            return None
        item = await self._queue.get()
        if item is _CLOSED:
            self._drained = True
            return None
        return item

    def poll(self) -> list[T]:
        """Return every event currently buffered, without waiting."""
        events: list[T] = []
        while not self._drained:
            try:
                item = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            if item is _CLOSED:
                self._drained = True
                break
            events.append(item)
        return events

    def __aiter__(self) -> "ProgressChannel[T]":
        return self

    async def __anext__(self) -> T:
        item = await self.get()
        if item is None:
            raise StopAsyncIteration
        return item
