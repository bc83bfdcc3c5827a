"""
Line Source Base Class - Abstract interface for log followers

A line source produces a lazy, unbounded, non-restartable stream of text
lines appended to a log after the source was opened. Concrete followers
(subprocess tail, polling reader, in-memory mock) are interchangeable.
"""
from abc import ABC, abstractmethod
from typing import AsyncIterator
import structlog

logger = structlog.get_logger(__name__)


class LineSource(ABC):
    """Base class for all log followers"""

    def __init__(self, name: str, path: str):
        """
        Initialize line source

        Args:
            name: Human-readable source name
            path: Log file being followed
        """
        self.name = name
        self.path = path
        self.running = False
        self.lines_read = 0

    @abstractmethod
    async def open(self) -> None:
        """
        Start following the log from its current end

        Raises:
            ExternalProcessError: The follower could not be started
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Stop following and release resources"""
        pass

    @abstractmethod
    def lines(self) -> AsyncIterator[str]:
        """
        Iterate over appended lines, without line terminators

        The iterator ends when the source is closed. It raises
        ExternalProcessError if the follower dies abnormally.
        """
        pass

    def is_running(self) -> bool:
        return self.running

    def get_statistics(self) -> dict:
        return {
            "source": self.name,
            "path": self.path,
            "running": self.running,
            "lines_read": self.lines_read,
        }


def decode_line(raw: bytes) -> str:
    """Decode one raw line and drop its terminator"""
    return raw.decode("utf-8", errors="replace").rstrip("\r\n")
