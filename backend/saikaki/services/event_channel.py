# saikaki/services/event_channel.py
"""
One-way event channel between a relay task (producer) and the SSE response
generator (consumer).
"""
from __future__ import annotations

import asyncio
from typing import Any, AsyncIterator, Dict, List

Event = Dict[str, Any]

_EOF = object()


class ChannelClosedError(RuntimeError):
    """Write attempted after the channel was closed or the client went away."""


class EventChannel:
    def __init__(self) -> None:
        self._queue: "asyncio.Queue[Any]" = asyncio.Queue()
        self._closed = False
        self._disconnected = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def disconnected(self) -> bool:
        return self._disconnected

    def send(self, event: Event) -> None:
        if self._closed:
            raise ChannelClosedError("event channel is closed")
        self._queue.put_nowait(event)

    def close(self) -> None:
        """Producer side: no more events. Idempotent."""
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_EOF)

    def disconnect(self) -> None:
        """Consumer side: the client is gone, further sends must fail."""
        self._disconnected = True
        self.close()

    async def events(self) -> AsyncIterator[Event]:
        while True:
            item = await self._queue.get()
            if item is _EOF:
                return
            yield item

    def drain(self) -> List[Event]:
        """Everything queued so far, without waiting."""
        out: List[Event] = []
        while not self._queue.empty():
            item = self._queue.get_nowait()
            if item is _EOF:
                break
            out.append(item)
        return out
