"""
Server-Sent Events channel for terminal subscribers.

QueueChannel is the SubscriberChannel the HTTP stream endpoint hands to the
broadcast hub. The hub pushes frames without blocking; the streaming response
drains them through frames(). A channel that falls too far behind is closed
rather than allowed to buffer without bound.
"""
from __future__ import annotations

import asyncio
import logging
from typing import AsyncGenerator, Callable, List, Optional

from sandterm.exceptions import ChannelClosedError

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


class QueueChannel:
    def __init__(self, maxsize: int = 256) -> None:
        self._maxsize = maxsize
        # Unbounded underneath so the close sentinel always fits; send() enforces maxsize
        self._queue: "asyncio.Queue[Optional[str]]" = asyncio.Queue()
        self._closed = False
        self._callbacks: List[Callable[[], None]] = []

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, frame: str) -> None:
        if self._closed:
            raise ChannelClosedError("Channel is closed")
        if self._queue.qsize() >= self._maxsize:
            self.close()
            raise ChannelClosedError(f"Subscriber fell behind ({self._maxsize} events buffered)")
        self._queue.put_nowait(frame)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(None)
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                logger.error("Channel close callback failed: %s", e)

    def add_close_callback(self, callback: Callable[[], None]) -> None:
        if self._closed:
            callback()
            return
        self._callbacks.append(callback)

    async def frames(self) -> AsyncGenerator[str, None]:
        """Yield queued frames until the channel closes; closes on client disconnect."""
        try:
            while True:
                frame = await self._queue.get()
                if frame is None:
                    break
                yield frame
        finally:
            self.close()
