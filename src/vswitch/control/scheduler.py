"""
Scheduler - One-shot delayed callbacks

Auto-off timers and log monitoring startup delays are scheduled on the
running asyncio loop instead of blocking. Each ScheduledCall is independently
cancellable; a cancelled call never fires.
"""
import asyncio
import time
from datetime import datetime
from typing import Callable, Dict, Optional, Set
import structlog

logger = structlog.get_logger(__name__)


def epoch_ms() -> int:
    """Current wall-clock time in epoch milliseconds"""
    return int(time.time() * 1000)


class ScheduledCall:
    """A callback that runs once after a delay"""

    def __init__(self, name: str, callback: Callable, delay_seconds: float):
        """
        Initialize a scheduled call

        Args:
            name: Human-readable name used in logs
            callback: Plain function or async function to call
            delay_seconds: Delay before the callback runs
        """
        self.name = name
        self.callback = callback
        self.delay_seconds = max(0.0, delay_seconds)
        self.created_at = datetime.now()
        self.fired = False
        self.cancelled = False
        self.errors = 0

        self._handle: Optional[asyncio.TimerHandle] = None
        self._deadline: Optional[float] = None
        self._tasks: Set[asyncio.Task] = set()

    @property
    def active(self) -> bool:
        """True while the call is armed and has neither fired nor been cancelled"""
        return self._handle is not None and not self.fired and not self.cancelled

    def start(self) -> "ScheduledCall":
        """Arm the call on the running event loop"""
        loop = asyncio.get_running_loop()
        self._deadline = loop.time() + self.delay_seconds
        self._handle = loop.call_later(self.delay_seconds, self._fire)
        return self

    def remaining(self) -> float:
        """Seconds until the call fires (0 if not active)"""
        if not self.active or self._deadline is None:
            return 0.0
        return max(0.0, self._deadline - asyncio.get_running_loop().time())

    def cancel(self) -> bool:
        """
        Cancel the call

        Returns:
            True if a pending call was cancelled, False if it already fired
        """
        if not self.active:
            return False

        self.cancelled = True
        self._handle.cancel()
        self._handle = None
        logger.debug("scheduled_call_cancelled", call=self.name)
        return True

    def _fire(self) -> None:
        if self.cancelled:
            return

        self.fired = True
        self._handle = None

        try:
            result = self.callback()
            if asyncio.iscoroutine(result):
                task = asyncio.ensure_future(result)
                self._tasks.add(task)
                task.add_done_callback(self._task_done)
        except Exception as e:
            self.errors += 1
            logger.error(
                "scheduled_call_error",
                call=self.name,
                error=str(e),
                exc_info=True,
            )

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self.errors += 1
            logger.error(
                "scheduled_call_error",
                call=self.name,
                error=str(error),
                exc_info=error,
            )

    def get_statistics(self) -> dict:
        """Get call statistics"""
        return {
            "name": self.name,
            "delay_s": self.delay_seconds,
            "active": self.active,
            "fired": self.fired,
            "cancelled": self.cancelled,
            "errors": self.errors,
            "created_at": self.created_at.isoformat(),
        }


class Scheduler:
    """
    Named collection of one-shot calls

    Scheduling a name that is already armed replaces the previous call,
    so at most one call per name is ever pending.
    """

    def __init__(self):
        """Initialize the scheduler"""
        self.tasks: Dict[str, ScheduledCall] = {}
        logger.info("scheduler_initialized")

    def schedule(self, name: str, callback: Callable, delay_seconds: float) -> ScheduledCall:
        """
        Schedule a callback to run once after a delay

        Args:
            name: Unique call name
            callback: Plain or async function to call
            delay_seconds: Delay in seconds

        Returns:
            The armed ScheduledCall
        """
        previous = self.tasks.get(name)
        if previous is not None and previous.cancel():
            logger.debug("scheduled_call_replaced", call=name)

        call = ScheduledCall(name, callback, delay_seconds).start()
        self.tasks[name] = call

        logger.debug("call_scheduled", call=name, delay_s=round(delay_seconds, 3))
        return call

    def cancel(self, name: str) -> bool:
        """
        Cancel and forget a scheduled call

        Args:
            name: Call name

        Returns:
            True if a pending call was cancelled
        """
        call = self.tasks.pop(name, None)
        if call is None:
            return False
        return call.cancel()

    def pending(self, name: str) -> bool:
        call = self.tasks.get(name)
        return call is not None and call.active

    def get_statistics(self) -> dict:
        """
        Get statistics for all known calls

        Returns:
            Dictionary mapping call names to their statistics
        """
        return {name: call.get_statistics() for name, call in self.tasks.items()}

    def clear(self) -> None:
        """Cancel all scheduled calls"""
        count = len(self.tasks)
        for call in self.tasks.values():
            call.cancel()
        self.tasks.clear()
        logger.info("scheduler_cleared", call_count=count)
