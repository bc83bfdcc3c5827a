"""
Switch Registry

Owns every SwitchController, its keyword matcher and its log watcher, keyed
by switch identity. Reconciles that collection against each configuration
load, routes log lines to the owning switch, and fans out state changes to
bridge listeners.
"""
import asyncio
from dataclasses import dataclass, asdict
from typing import Any, Callable, Dict, List, Optional, Sequence, Set
import structlog

from vswitch.config import Settings
from vswitch.control.scheduler import Scheduler, epoch_ms
from vswitch.control.timer_store import TimerStore
from vswitch.exceptions import ConfigurationError, SwitchNotFoundError
from vswitch.logic.feedback import FeedbackFilter
from vswitch.logic.keywords import KeywordMatcher
from vswitch.logic.log_tail import LogTail
from vswitch.logic.switch_controller import SwitchController
from vswitch.models.switches import SwitchConfig, switch_id_for
from vswitch.sources import LineSource, create_line_source

logger = structlog.get_logger(__name__)


@dataclass
class SwitchStateChange:
    """Notification sent to the bridge when a switch's exposed value changes"""
    switch_id: str
    name: str
    on: bool
    source: str  # command, trigger, timer, restore
    timer_end_time: Optional[int] = None

    def to_dict(self) -> dict:
        return asdict(self)


ChangeListener = Callable[[SwitchStateChange], Any]


@dataclass
class ReconcileSummary:
    added: List[str]
    updated: List[str]
    removed: List[str]
    errors: List[str]

    def to_dict(self) -> dict:
        return asdict(self)


class SwitchRegistry:
    """
    Collection of switch controllers keyed by identity

    Exactly one controller exists per configured switch. Errors while
    building or running one switch are logged and never affect another.
    """

    def __init__(
        self,
        store: TimerStore,
        settings: Settings,
        source_factory: Optional[Callable[[str], LineSource]] = None,
        clock: Callable[[], int] = epoch_ms,
    ):
        """
        Initialize switch registry

        Args:
            store: Timer/state store shared by all controllers
            settings: Daemon settings
            source_factory: Builds a line source for a log path
            clock: Wall-clock source in epoch milliseconds
        """
        self.store = store
        self.settings = settings
        self.source_factory = source_factory or (lambda path: create_line_source(path, settings))
        self.clock = clock

        self.controllers: Dict[str, SwitchController] = {}
        self.matchers: Dict[str, KeywordMatcher] = {}
        self.log_tails: Dict[str, LogTail] = {}
        self.scheduler = Scheduler()
        self.feedback = FeedbackFilter(settings.self_log_tokens)

        self.listeners: List[ChangeListener] = []
        self._listener_tasks: Set[asyncio.Task] = set()

        # Statistics
        self.reconciliations = 0
        self.lines_routed = 0
        self.keyword_matches = 0
        self.last_errors: List[str] = []

        logger.info("switch_registry_initialized")

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    async def reconcile(self, configs: Sequence[SwitchConfig]) -> ReconcileSummary:
        """
        Bring the registry in line with a configuration

        Args:
            configs: Switch configurations in file order

        Returns:
            Summary of added, updated and removed switch names plus errors
        """
        self.reconciliations += 1
        summary = ReconcileSummary(added=[], updated=[], removed=[], errors=[])

        desired: Dict[str, SwitchConfig] = {}
        for config in configs:
            if config.switch_id in desired:
                message = f'Duplicate switch name "{config.name}" ignored'
                logger.error("switch_configuration_duplicate", switch=config.name)
                summary.errors.append(message)
                continue
            desired[config.switch_id] = config

        for switch_id in [sid for sid in self.controllers if sid not in desired]:
            summary.removed.append(await self._remove(switch_id))

        for switch_id, config in desired.items():
            controller = self.controllers.get(switch_id)
            log_changed = False

            try:
                if controller is None:
                    controller = SwitchController(
                        config, self.store, on_change=self._handle_change, clock=self.clock
                    )
                    self.controllers[switch_id] = controller
                    summary.added.append(config.name)
                    self._emit(controller, "restore")
                elif controller.config != config:
                    log_changed = controller.config.log_settings() != config.log_settings()
                    controller.update_config(config)
                    summary.updated.append(config.name)
            except ConfigurationError as e:
                logger.error(
                    "switch_configuration_invalid",
                    switch=config.name,
                    error=str(e),
                )
                summary.errors.append(str(e))
                continue

            self.matchers[switch_id] = KeywordMatcher(config.keywords)
            await self._sync_log_tail(config, restart=log_changed)

        self.last_errors = summary.errors
        logger.info(
            "switches_reconciled",
            total=len(self.controllers),
            added=len(summary.added),
            updated=len(summary.updated),
            removed=len(summary.removed),
            errors=len(summary.errors),
        )
        return summary

    async def _remove(self, switch_id: str) -> str:
        await self._stop_log_tail(switch_id)
        self.matchers.pop(switch_id, None)
        controller = self.controllers.pop(switch_id)
        controller.dispose(purge=True)
        logger.info("switch_removed", switch=controller.name)
        return controller.name

    # ------------------------------------------------------------------
    # Log monitoring
    # ------------------------------------------------------------------

    @staticmethod
    def _tail_task_name(switch_id: str) -> str:
        return f"log_tail:{switch_id}"

    async def _sync_log_tail(self, config: SwitchConfig, restart: bool = False) -> None:
        switch_id = config.switch_id

        if not config.use_log_file:
            await self._stop_log_tail(switch_id)
            return

        existing = self.log_tails.get(switch_id)
        if restart or (existing is not None and not existing.running):
            await self._stop_log_tail(switch_id)
        elif existing is not None or self.scheduler.pending(self._tail_task_name(switch_id)):
            return

        delay_ms = config.startup_delay(self.settings.default_startup_delay_ms)
        self.scheduler.schedule(
            self._tail_task_name(switch_id),
            lambda: self._start_log_tail(switch_id),
            delay_ms / 1000.0,
        )
        logger.info("log_monitoring_scheduled", switch=config.name, delay_ms=delay_ms)

    async def _start_log_tail(self, switch_id: str) -> None:
        controller = self.controllers.get(switch_id)
        if controller is None or not controller.config.use_log_file:
            return

        config = controller.config
        path = config.log_file_path or self.settings.default_log_file_path
        tail = LogTail(
            switch_id,
            config.name,
            self.source_factory(path),
            self.route_line,
            self.feedback,
        )
        self.log_tails[switch_id] = tail
        await tail.start()

    async def _stop_log_tail(self, switch_id: str) -> None:
        self.scheduler.cancel(self._tail_task_name(switch_id))
        tail = self.log_tails.pop(switch_id, None)
        if tail is not None:
            await tail.stop()

    def route_line(self, switch_id: str, line: str) -> bool:
        """
        Deliver a log line to the switch that watches it

        Returns:
            True if a keyword matched and the switch changed state
        """
        self.lines_routed += 1
        controller = self.controllers.get(switch_id)
        matcher = self.matchers.get(switch_id)
        if controller is None or matcher is None:
            return False

        keyword = matcher.match(line)
        if keyword is None:
            return False

        self.keyword_matches += 1
        logger.debug("keyword_matched", switch=controller.name, keyword=keyword)
        return controller.trigger()

    # ------------------------------------------------------------------
    # Bridge commands
    # ------------------------------------------------------------------

    def get(self, key: str) -> SwitchController:
        """
        Look up a controller by identity or by name

        Raises:
            SwitchNotFoundError: No such switch is configured
        """
        controller = self.controllers.get(key) or self.controllers.get(switch_id_for(key))
        if controller is None:
            raise SwitchNotFoundError(f"Switch {key!r} is not configured")
        return controller

    def set_on(self, key: str, value: bool) -> SwitchController:
        controller = self.get(key)
        controller.set_on(value)
        return controller

    def get_on(self, key: str) -> bool:
        return self.get(key).get_on()

    def trigger(self, key: str) -> bool:
        return self.get(key).trigger()

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def add_listener(self, listener: ChangeListener) -> None:
        """Register a plain or async callable for state change notifications"""
        self.listeners.append(listener)

    def remove_listener(self, listener: ChangeListener) -> None:
        if listener in self.listeners:
            self.listeners.remove(listener)

    def _handle_change(self, controller: SwitchController, source: str) -> None:
        self._emit(controller, source)

    def _emit(self, controller: SwitchController, source: str) -> None:
        change = SwitchStateChange(
            switch_id=controller.switch_id,
            name=controller.name,
            on=controller.state,
            source=source,
            timer_end_time=controller.timer_end_time,
        )

        for listener in list(self.listeners):
            try:
                result = listener(change)
                if asyncio.iscoroutine(result):
                    task = asyncio.ensure_future(result)
                    self._listener_tasks.add(task)
                    task.add_done_callback(self._listener_done)
            except Exception as e:
                logger.error(
                    "bridge_notification_failed",
                    switch=controller.name,
                    error=str(e),
                    exc_info=True,
                )

    def _listener_done(self, task: asyncio.Task) -> None:
        self._listener_tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("bridge_notification_failed", error=str(task.exception()))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def shutdown(self) -> None:
        """
        Stop all watchers and timers

        Persisted records are kept so timers resume on the next start.
        """
        logger.info("switch_registry_shutting_down", switches=len(self.controllers))
        self.scheduler.clear()

        for switch_id in list(self.log_tails):
            await self._stop_log_tail(switch_id)

        for controller in self.controllers.values():
            controller.dispose(purge=False)

        self.controllers.clear()
        self.matchers.clear()

    def get_statistics(self) -> dict:
        return {
            "switches": len(self.controllers),
            "log_tails": len(self.log_tails),
            "reconciliations": self.reconciliations,
            "lines_routed": self.lines_routed,
            "keyword_matches": self.keyword_matches,
            "last_errors": self.last_errors,
            "store": self.store.get_statistics(),
        }
