import asyncio
from typing import AsyncIterator, List

from gamepulse import config
from gamepulse.data_models import ProgressEvent
from gamepulse.logging import get_logger

logger = get_logger(__name__)


class ProgressChannel:
    """
    Bounded fire-and-forget queue of progress events.

    publish() never blocks and never raises; when nobody drains the channel
    the oldest events are dropped.
    """

    def __init__(self, maxsize: int = config.PROGRESS_CHANNEL_SIZE):
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0

    def publish(self, event: ProgressEvent):
        while True:
            try:
                self._queue.put_nowait(event)
                return
            except asyncio.QueueFull:
                try:
                    self._queue.get_nowait()
                    self.dropped += 1
                except asyncio.QueueEmpty:
                    pass

    async def get(self) -> ProgressEvent:
        return await self._queue.get()

    def drain(self) -> List[ProgressEvent]:
        events = []
        while not self._queue.empty():
            events.append(self._queue.get_nowait())
        return events

    async def __aiter__(self) -> AsyncIterator[ProgressEvent]:
        while True:
            yield await self._queue.get()
