"""
vswitch Line Sources - log followers

Provides the abstract LineSource and its implementations:
- TailProcessSource: `tail -f` subprocess
- PollingFileSource: pure-Python polling reader
- MemoryLineSource: in-memory source for testing
"""

from vswitch.config import Settings
from vswitch.sources.base import LineSource
from vswitch.sources.memory import MemoryLineSource
from vswitch.sources.polling import PollingFileSource
from vswitch.sources.tail import TailProcessSource


def create_line_source(path: str, settings: Settings) -> LineSource:
    """
    Build the follower selected in settings

    Args:
        path: Log file to follow
        settings: Daemon settings (log_source, tail options, poll interval)
    """
    if settings.log_source == "poll":
        return PollingFileSource(path, poll_interval=settings.poll_interval_seconds)
    return TailProcessSource(
        path,
        command=settings.tail_command,
        follow_name=settings.tail_follow_name,
    )


__all__ = [
    "LineSource",
    "MemoryLineSource",
    "PollingFileSource",
    "TailProcessSource",
    "create_line_source",
]
