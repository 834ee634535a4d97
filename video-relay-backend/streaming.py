"""
Per-job progress channel: collects lifecycle events and drains them as
server-sent-event frames for the single client waiting on the job.
"""

import asyncio
import logging
from typing import AsyncIterator, Optional

from schemas import (
    CompletedEvent,
    ErrorEvent,
    JobEvent,
    ProgressEvent,
    StartedEvent,
    is_terminal,
    to_sse_frame,
)

HEARTBEAT_FRAME = b": keep-alive\n\n"


class ProgressChannel:
    def __init__(self, job_id: str = ""):
        self.job_id = job_id
        self._queue: "asyncio.Queue[JobEvent]" = asyncio.Queue()
        self._terminal: Optional[JobEvent] = None

    @property
    def closed(self) -> bool:
        return self._terminal is not None

    @property
    def terminal_event(self) -> Optional[JobEvent]:
        return self._terminal

    def _put(self, event: JobEvent) -> None:
        if self._terminal is not None:
            logging.debug(f"Job {self.job_id}: dropping {event.status} event after {self._terminal.status}")
            return
        if is_terminal(event):
            self._terminal = event
        self._queue.put_nowait(event)

    def started(self) -> None:
        self._put(StartedEvent())

    def progress(self, percent: float) -> None:
        self._put(ProgressEvent(percent=round(percent, 1)))

    def completed(self, url: str) -> None:
        self._put(CompletedEvent(compressed_video_url=url))

    def error(self, message: str) -> None:
        self._put(ErrorEvent(error=message))

    async def events(self, heartbeat: Optional[float] = None) -> AsyncIterator[Optional[JobEvent]]:
        """
        Yield events until the terminal one. Yields None when `heartbeat`
        seconds pass without an event.
        """
        while True:
            try:
                event = await asyncio.wait_for(self._queue.get(), timeout=heartbeat)
            except asyncio.TimeoutError:
                yield None
                continue
            yield event
            if is_terminal(event):
                return

    async def frames(self, heartbeat: Optional[float] = None) -> AsyncIterator[bytes]:
        async for event in self.events(heartbeat):
            yield HEARTBEAT_FRAME if event is None else to_sse_frame(event)
