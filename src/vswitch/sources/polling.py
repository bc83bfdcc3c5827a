"""
Polling File Source - Follow a log by reading it periodically

Pure-Python follower for hosts without `tail`. Seeks to the end on open,
reads whatever was appended every poll interval, and reopens the file from
the start when it is rotated (new inode) or truncated.
"""
import asyncio
import os
from typing import AsyncIterator, BinaryIO, Optional
import structlog

from vswitch.exceptions import ExternalProcessError
from vswitch.sources.base import LineSource, decode_line

logger = structlog.get_logger(__name__)


class PollingFileSource(LineSource):
    """Line source that polls the log file for appended data"""

    def __init__(self, path: str, poll_interval: float = 0.25):
        """
        Initialize polling source

        Args:
            path: Log file to follow
            poll_interval: Seconds to sleep when no new data is available
        """
        super().__init__("poll", path)
        self.poll_interval = poll_interval
        self.rotations = 0
        self._file: Optional[BinaryIO] = None
        self._inode: Optional[int] = None
        self._partial = b""

    async def open(self) -> None:
        try:
            self._file = open(self.path, "rb")
            self._file.seek(0, os.SEEK_END)
            self._inode = os.fstat(self._file.fileno()).st_ino
        except OSError as e:
            raise ExternalProcessError(f"Cannot open log file {self.path}: {e}") from e

        self.running = True
        logger.info("polling_source_opened", path=self.path)

    def _rotated(self) -> bool:
        """True if the path now points at a different or shorter file"""
        try:
            stat = os.stat(self.path)
        except FileNotFoundError:
            # Mid-rotation; keep the old handle until the new file appears
            return False
        return stat.st_ino != self._inode or stat.st_size < self._file.tell()

    def _reopen(self) -> None:
        self._file.close()
        self._file = open(self.path, "rb")
        self._inode = os.fstat(self._file.fileno()).st_ino
        self._partial = b""
        self.rotations += 1
        logger.info("log_file_rotated", path=self.path, rotations=self.rotations)

    async def lines(self) -> AsyncIterator[str]:
        if self._file is None:
            raise ExternalProcessError(f"Log file {self.path} was not opened")

        while self.running:
            try:
                chunk = self._file.readline()
                if not chunk:
                    if self._rotated():
                        self._reopen()
                        continue
                    await asyncio.sleep(self.poll_interval)
                    continue
            except OSError as e:
                self.running = False
                raise ExternalProcessError(f"Cannot read log file {self.path}: {e}") from e

            if not chunk.endswith(b"\n"):
                # Writer is mid-line; wait for the rest
                self._partial += chunk
                continue

            raw, self._partial = self._partial + chunk, b""
            self.lines_read += 1
            yield decode_line(raw)

    async def close(self) -> None:
        self.running = False
        if self._file is not None:
            self._file.close()
            self._file = None

    def get_statistics(self) -> dict:
        stats = super().get_statistics()
        stats["rotations"] = self.rotations
        return stats
