"""
Memory Line Source - Simulated log follower for testing

Lines are pushed from code instead of being read from a file, so the
matching pipeline can be exercised without processes or disk I/O.
"""
import asyncio
from typing import AsyncIterator, Optional, Union
import structlog

from vswitch.exceptions import ExternalProcessError
from vswitch.sources.base import LineSource

logger = structlog.get_logger(__name__)

_END = object()


class MemoryLineSource(LineSource):
    """
    In-memory line source

    push() appends a line, finish() ends the stream normally and fail()
    ends it with an ExternalProcessError, like a crashed follower.
    """

    def __init__(
        self,
        path: str = "memory://log",
        fail_on_open: bool = False,
        open_gate: Optional[asyncio.Event] = None,
    ):
        """
        Args:
            path: Nominal log path
            fail_on_open: open() raises ExternalProcessError
            open_gate: open() waits until this event is set, like a slow spawn
        """
        super().__init__("memory", path)
        self.fail_on_open = fail_on_open
        self.open_gate = open_gate
        self.opened = False
        self.closed = False
        self._queue: "asyncio.Queue[Union[str, object, ExternalProcessError]]" = asyncio.Queue()

    async def open(self) -> None:
        if self.open_gate is not None:
            await self.open_gate.wait()
        if self.fail_on_open:
            raise ExternalProcessError(f"Simulated failure opening {self.path}")
        self.opened = True
        self.running = True
        logger.debug("memory_source_opened", path=self.path)

    def push(self, line: str) -> None:
        self._queue.put_nowait(line)

    def finish(self) -> None:
        self._queue.put_nowait(_END)

    def fail(self, message: str = "simulated follower crash", returncode: Optional[int] = 1) -> None:
        self._queue.put_nowait(ExternalProcessError(message, returncode=returncode))

    async def lines(self) -> AsyncIterator[str]:
        while True:
            item = await self._queue.get()
            if item is _END:
                break
            if isinstance(item, ExternalProcessError):
                self.running = False
                raise item
            self.lines_read += 1
            yield item
        self.running = False

    async def close(self) -> None:
        self.closed = True
        self.running = False
        self._queue.put_nowait(_END)
