"""
vswitch Control - scheduling, persistence, and configuration loading
"""

from vswitch.control.scheduler import Scheduler, ScheduledCall, epoch_ms
from vswitch.control.timer_store import TimerStore
from vswitch.control.config_loader import ConfigLoader, LoadResult

__all__ = [
    "Scheduler",
    "ScheduledCall",
    "epoch_ms",
    "TimerStore",
    "ConfigLoader",
    "LoadResult",
]
