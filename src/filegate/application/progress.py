"""Upload progress stream"""

import asyncio
import math
from typing import AsyncIterator, Optional

_CLOSED = object()


class UploadProgress:
    """Progress of one upload as a finite stream of percentages.

    Callers either poll ``percent`` or iterate with ``async for``. Values
    never decrease; a successful transfer ends with 100. A failed transfer
    closes the stream without reaching 100. The stream supports a single
    iterating consumer.
    """

    def __init__(self):
        self._percent: Optional[int] = None
        self._closed = False
        self._queue: asyncio.Queue = asyncio.Queue()

    @property
    def percent(self) -> int:
        """Latest reported percentage (0 before the first report)"""
        return self._percent or 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def completed(self) -> bool:
        return self._percent == 100

    def report(self, loaded: int, total: int) -> None:
        """Record that ``loaded`` of ``total`` bytes were sent"""
        if self._closed:
            return
        if total <= 0:
            percent = 100
        else:
            # Half-up rounding, capped to [previous, 100]
            percent = math.floor(loaded * 100 / total + 0.5)
        previous = self._percent if self._percent is not None else 0
        percent = min(100, max(previous, percent))
        if percent == self._percent:
            return
        self._percent = percent
        self._queue.put_nowait(percent)

    def finish(self) -> None:
        """Report completion and close the stream"""
        self.report(1, 1)
        self.close()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> AsyncIterator[int]:
        return self

    async def __anext__(self) -> int:
        item = await self._queue.get()
        if item is _CLOSED:
            # Keep the marker for later calls
            self._queue.put_nowait(_CLOSED)
            raise StopAsyncIteration
        return item
