"""
Tail Process Source - Follow a log with a `tail` subprocess

Spawns `tail -n 0 -f <path>` (or `-F` to follow the name across rotation)
so only lines appended after startup are seen.
"""
import asyncio
from typing import AsyncIterator, List, Optional
import structlog

from vswitch.exceptions import ExternalProcessError
from vswitch.sources.base import LineSource, decode_line

logger = structlog.get_logger(__name__)

# Longest line passed on; longer lines are skipped whole
LINE_LIMIT_BYTES = 1024 * 1024
READ_CHUNK_BYTES = 4096


class TailProcessSource(LineSource):
    """
    Line source backed by a long-lived `tail` process

    stderr output is logged as it arrives. An exit with a non-zero code
    that was not requested through close() surfaces as ExternalProcessError
    from the line iterator.
    """

    def __init__(self, path: str, command: str = "tail", follow_name: bool = False):
        """
        Initialize tail source

        Args:
            path: Log file to follow
            command: tail executable
            follow_name: Use -F (retry and follow the file name) instead of -f
        """
        super().__init__("tail", path)
        self.command = command
        self.follow_name = follow_name
        self.process: Optional[asyncio.subprocess.Process] = None
        self.returncode: Optional[int] = None
        self._closing = False
        self._stderr_task: Optional[asyncio.Task] = None
        self.lines_skipped = 0

    def _arguments(self) -> List[str]:
        return [self.command, "-n", "0", "-F" if self.follow_name else "-f", self.path]

    async def open(self) -> None:
        arguments = self._arguments()
        try:
            self.process = await asyncio.create_subprocess_exec(
                *arguments,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ExternalProcessError(f"Cannot start {' '.join(arguments)}: {e}") from e

        self.running = True
        self._stderr_task = asyncio.create_task(self._drain_stderr())
        logger.info("tail_process_started", path=self.path, pid=self.process.pid)

    async def _drain_stderr(self) -> None:
        while True:
            raw = await self.process.stderr.readline()
            if not raw:
                return
            logger.error("tail_process_stderr", path=self.path, output=decode_line(raw))

    async def lines(self) -> AsyncIterator[str]:
        if self.process is None:
            raise ExternalProcessError(f"tail for {self.path} was not opened")

        buffered = b""
        discarding = False
        while True:
            chunk = await self.process.stdout.read(READ_CHUNK_BYTES)
            if not chunk:
                break

            *complete, buffered = (buffered + chunk).split(b"\n")
            for raw in complete:
                if discarding:
                    # Rest of a line already reported as too long
                    discarding = False
                    continue
                if len(raw) > LINE_LIMIT_BYTES:
                    self._skip_line()
                    continue
                self.lines_read += 1
                yield decode_line(raw)

            if len(buffered) > LINE_LIMIT_BYTES:
                if not discarding:
                    self._skip_line()
                buffered = b""
                discarding = True

        if buffered and not discarding:
            self.lines_read += 1
            yield decode_line(buffered)

        self.returncode = await self.process.wait()
        self.running = False

        logger.info("tail_process_exited", path=self.path, returncode=self.returncode)

        if self.returncode != 0 and not self._closing:
            raise ExternalProcessError(
                f"tail for {self.path} exited with code {self.returncode}",
                returncode=self.returncode,
            )

    def _skip_line(self) -> None:
        self.lines_skipped += 1
        logger.warning("log_line_too_long", path=self.path, limit=LINE_LIMIT_BYTES)

    async def close(self) -> None:
        self._closing = True
        self.running = False

        if self.process is not None and self.process.returncode is None:
            self.process.terminate()
            try:
                await asyncio.wait_for(self.process.wait(), timeout=5.0)
            except asyncio.TimeoutError:
                logger.warning("tail_process_kill", path=self.path, pid=self.process.pid)
                self.process.kill()
                await self.process.wait()

        if self._stderr_task is not None:
            self._stderr_task.cancel()
            try:
                await self._stderr_task
            except asyncio.CancelledError:
                pass
            self._stderr_task = None

    def get_statistics(self) -> dict:
        stats = super().get_statistics()
        stats["pid"] = self.process.pid if self.process is not None else None
        stats["returncode"] = self.returncode
        stats["lines_skipped"] = self.lines_skipped
        return stats
