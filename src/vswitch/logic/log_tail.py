"""
Log Tail

Follows one switch's log through a LineSource, cleans each line, drops the
daemon's own output, and hands what remains to the registry. A follower
that fails is logged and stays stopped; the registry lifecycle decides
whether a new one is started.
"""
import asyncio
from typing import Callable, Optional
import structlog

from vswitch.exceptions import ExternalProcessError
from vswitch.logic.feedback import FeedbackFilter
from vswitch.logic.keywords import strip_ansi
from vswitch.sources.base import LineSource

logger = structlog.get_logger(__name__)

# (switch_id, cleaned line)
LineHandler = Callable[[str, str], None]


class LogTail:
    """Watcher task for one log-monitored switch"""

    def __init__(
        self,
        switch_id: str,
        switch_name: str,
        source: LineSource,
        on_line: LineHandler,
        feedback: FeedbackFilter,
    ):
        """
        Initialize log tail

        Args:
            switch_id: Identity of the owning switch
            switch_name: Switch name, used by the feedback filter
            source: Line source to read from (owned by this tail)
            on_line: Called with (switch_id, line) for every accepted line
            feedback: Filter recognizing the daemon's own log lines
        """
        self.switch_id = switch_id
        self.switch_name = switch_name
        self.source = source
        self.on_line = on_line
        self.feedback = feedback
        self.task: Optional[asyncio.Task] = None
        self.failed = False
        self.error: Optional[str] = None
        self.stopped = False

        # Statistics
        self.lines_routed = 0
        self.lines_filtered = 0

    @property
    def running(self) -> bool:
        return self.task is not None and not self.task.done()

    async def start(self) -> bool:
        """
        Open the source and start the watcher task

        Returns:
            True if the watcher is running, False if the source failed to open
            or the tail was stopped first
        """
        if self.stopped:
            return False

        if self.running:
            logger.warning("log_tail_already_running", switch=self.switch_name)
            return True

        try:
            await self.source.open()
        except ExternalProcessError as e:
            self.failed = True
            self.error = str(e)
            logger.error(
                "log_tail_start_failed",
                switch=self.switch_name,
                path=self.source.path,
                error=str(e),
            )
            return False

        if self.stopped:
            # stop() ran while the source was opening and found nothing to close
            await self.source.close()
            logger.info("log_tail_stopped_while_starting", switch=self.switch_name)
            return False

        logger.info(
            "log_monitoring_started",
            switch=self.switch_name,
            path=self.source.path,
            source=self.source.name,
        )
        self.task = asyncio.create_task(self._run())
        return True

    async def _run(self) -> None:
        try:
            async for raw in self.source.lines():
                line = strip_ansi(raw).strip()
                if not line:
                    continue

                if self.feedback.is_own_line(line, self.switch_name):
                    self.lines_filtered += 1
                    continue

                self.lines_routed += 1
                try:
                    self.on_line(self.switch_id, line)
                except Exception as e:
                    logger.error(
                        "log_line_handler_error",
                        switch=self.switch_name,
                        error=str(e),
                        exc_info=True,
                    )

        except ExternalProcessError as e:
            self.failed = True
            self.error = str(e)
            logger.error(
                "log_tail_failed",
                switch=self.switch_name,
                path=self.source.path,
                returncode=e.returncode,
                error=str(e),
            )
        else:
            logger.info("log_tail_ended", switch=self.switch_name, path=self.source.path)

    async def stop(self) -> None:
        """Stop the watcher task and close the source"""
        self.stopped = True
        if self.task is not None and not self.task.done():
            self.task.cancel()
            try:
                await self.task
            except asyncio.CancelledError:
                pass
        self.task = None

        await self.source.close()
        logger.info("log_monitoring_stopped", switch=self.switch_name)

    def get_statistics(self) -> dict:
        return {
            "running": self.running,
            "failed": self.failed,
            "error": self.error,
            "lines_routed": self.lines_routed,
            "lines_filtered": self.lines_filtered,
            "source": self.source.get_statistics(),
        }
