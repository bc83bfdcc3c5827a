"""
Switch Controller

State machine for one virtual switch. The exposed boolean rests at the
switch's polarity value (off, or on for normally-closed switches); any other
value is the "activated" state. Activation arms an auto-off timer unless the
switch stays on. Persistent timers are stored as absolute deadlines so they
resume, or count as expired, after a restart.

All transitions run synchronously on the event loop, so no two decisions
for the same switch ever interleave.
"""
from datetime import datetime
from typing import Callable, Optional
import structlog

from vswitch.control.scheduler import ScheduledCall, epoch_ms
from vswitch.control.timer_store import TimerStore
from vswitch.models.switches import SwitchConfig

logger = structlog.get_logger(__name__)

# Called with (controller, source) whenever the exposed value changes
StateListener = Callable[["SwitchController", str], None]


def _on_off(value: bool) -> str:
    return "on" if value else "off"


class SwitchController:
    """
    Runtime state and timer for one configured switch

    Construction validates the configuration and reconciles the initial
    state with what was persisted before the last shutdown.
    """

    def __init__(
        self,
        config: SwitchConfig,
        store: TimerStore,
        on_change: Optional[StateListener] = None,
        clock: Callable[[], int] = epoch_ms,
    ):
        """
        Initialize switch controller

        Args:
            config: Switch configuration
            store: Store for persisted timer and state records
            on_change: Listener notified of exposed value changes
            clock: Wall-clock source in epoch milliseconds

        Raises:
            ConfigurationError: Auto-off is enabled with a zero duration
        """
        config.validate_timer()

        self.config = config
        self.store = store
        self.on_change = on_change
        self.clock = clock

        self.state: bool = config.rest_state
        self.timer: Optional[ScheduledCall] = None
        self.timer_end_time: Optional[int] = None  # epoch ms, set iff a timer is armed
        self.restored_from: str = "default"

        # Statistics
        self.commands = 0
        self.triggers = 0
        self.ignored_triggers = 0
        self.timer_expirations = 0

        self._restore()

    @property
    def switch_id(self) -> str:
        return self.config.switch_id

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def activated(self) -> bool:
        return self.state != self.config.rest_state

    @property
    def timer_armed(self) -> bool:
        return self.timer is not None and self.timer.active

    def timer_remaining_ms(self) -> Optional[int]:
        if not self.timer_armed or self.timer_end_time is None:
            return None
        return max(0, self.timer_end_time - self.clock())

    # ------------------------------------------------------------------
    # Startup reconciliation
    # ------------------------------------------------------------------

    def _restore(self) -> None:
        config = self.config
        record = self.store.load(config.name) if config.timer_persistent else None

        if record is not None and record.is_running:
            now = self.clock()
            if now >= record.target_time:
                self.state = config.rest_state
                self.store.clear(config.name)
                self.restored_from = "expired_timer"
                self._remember()
                logger.info(
                    "persistent_timer_expired_during_downtime",
                    switch=config.name,
                    state=_on_off(self.state),
                    overdue_ms=now - record.target_time,
                )
            else:
                self.state = not config.rest_state
                self._start_off_timer(target_time=record.target_time)
                self.restored_from = "persistent_timer"
                self._remember()
                logger.info(
                    "persistent_timer_resumed",
                    switch=config.name,
                    remaining_ms=record.target_time - now,
                    state=_on_off(self.state),
                )
        else:
            if record is not None:
                # Stopped timers carry no information
                self.store.clear(config.name)

            remembered = self.store.load_state(config.name) if config.remember_state else None
            if remembered is not None:
                self.state = remembered
                self.restored_from = "remembered_state"
                if self.activated and not config.stay_on:
                    self._start_off_timer()
            else:
                self.state = config.rest_state

        logger.info(
            "switch_initialized",
            switch=config.name,
            state=_on_off(self.state),
            polarity="normally_closed" if config.normally_closed else "normally_open",
            restored_from=self.restored_from,
        )

    # ------------------------------------------------------------------
    # Inbound commands
    # ------------------------------------------------------------------

    def get_on(self) -> bool:
        """Current exposed value"""
        return self.state

    def set_on(self, value: bool) -> None:
        """
        Explicit command from the bridge

        Setting the activated value arms the auto-off timer (unless the
        switch stays on); setting the rest value cancels any timer.
        """
        value = bool(value)
        self.commands += 1
        changed = value != self.state
        self.state = value

        logger.info("switch_turned_" + _on_off(self.state), switch=self.name, source="command")
        if self.activated:
            if not self.config.stay_on:
                self._start_off_timer()
        else:
            self._clear_timer()

        self._remember()
        if changed:
            self._notify("command")

    def trigger(self) -> bool:
        """
        Keyword match for this switch

        Returns:
            True if the switch changed state, False if the trigger was ignored
        """
        config = self.config
        self.triggers += 1

        if self.activated and config.stay_on and config.use_log_file:
            self.ignored_triggers += 1
            logger.debug("trigger_ignored", switch=self.name, reason="stateful_switch_active")
            return False

        if (
            self.activated
            and not config.stay_on
            and self.timer_armed
            and self.timer_end_time is not None
            and self.clock() < self.timer_end_time
        ):
            self.ignored_triggers += 1
            logger.debug("trigger_ignored", switch=self.name, reason="timer_active")
            return False

        self.state = not self.state

        logger.info("switch_turned_" + _on_off(self.state), switch=self.name, source="trigger")
        if self.activated:
            if not config.stay_on:
                self._start_off_timer()
        else:
            self._clear_timer()

        self._remember()
        self._notify("trigger")
        return True

    # ------------------------------------------------------------------
    # Timer handling
    # ------------------------------------------------------------------

    def _start_off_timer(self, target_time: Optional[int] = None) -> None:
        """
        Arm the auto-off timer, replacing any armed one

        Args:
            target_time: Absolute deadline in epoch ms; defaults to now + duration
        """
        self._cancel_timer()

        now = self.clock()
        if target_time is None:
            target_time = now + self.config.timer_duration_ms()
        duration = max(0, target_time - now)

        self.timer_end_time = target_time
        self.timer = ScheduledCall(
            f"auto_off:{self.name}", self._on_timer_fired, duration / 1000.0
        ).start()

        if self.config.timer_persistent:
            self.store.save(self.name, target_time, True)
            logger.info(
                "auto_off_scheduled",
                switch=self.name,
                revert_to=_on_off(self.config.rest_state),
                at=datetime.fromtimestamp(target_time / 1000).isoformat(),
                persistent=True,
            )
        else:
            logger.info(
                "auto_off_scheduled",
                switch=self.name,
                revert_to=_on_off(self.config.rest_state),
                after_ms=duration,
                persistent=False,
            )

    def _cancel_timer(self) -> bool:
        if self.timer is None:
            return False
        cancelled = self.timer.cancel()
        self.timer = None
        self.timer_end_time = None
        return cancelled

    def _clear_timer(self) -> None:
        """Cancel the timer and drop its persisted record"""
        if self._cancel_timer() and self.config.timer_persistent:
            self.store.clear(self.name)

    def _on_timer_fired(self) -> None:
        self.timer = None
        self.timer_end_time = None
        self.timer_expirations += 1

        if self.config.timer_persistent:
            self.store.clear(self.name)

        changed = self.state != self.config.rest_state
        self.state = self.config.rest_state
        logger.info(
            "switch_auto_reverted",
            switch=self.name,
            state=_on_off(self.state),
        )

        self._remember()
        if changed:
            self._notify("timer")

    # ------------------------------------------------------------------
    # Persistence and notification
    # ------------------------------------------------------------------

    def _remember(self) -> None:
        if self.config.remember_state:
            self.store.save_state(self.name, self.state)

    def _notify(self, source: str) -> None:
        if self.on_change is None:
            return
        try:
            self.on_change(self, source)
        except Exception as e:
            logger.error(
                "state_listener_error",
                switch=self.name,
                source=source,
                error=str(e),
                exc_info=True,
            )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def update_config(self, config: SwitchConfig) -> None:
        """
        Apply a new configuration for the same switch

        Raises:
            ValueError: The configuration belongs to a different switch
            ConfigurationError: The new configuration is invalid
        """
        if config.switch_id != self.switch_id:
            raise ValueError(f"Configuration for {config.name!r} cannot update {self.name!r}")
        config.validate_timer()

        previous = self.config
        self.config = config

        if self.timer_armed:
            if config.stay_on or not self.activated:
                self._cancel_timer()
                if previous.timer_persistent:
                    self.store.clear(self.name)
            elif previous.timer_persistent and not config.timer_persistent:
                self.store.clear(self.name)
            elif config.timer_persistent and not previous.timer_persistent:
                self.store.save(self.name, self.timer_end_time, True)

        if previous.remember_state and not config.remember_state:
            self.store.clear_state(self.name)
        elif config.remember_state and not previous.remember_state:
            self._remember()

        logger.info("switch_config_updated", switch=self.name)

    def dispose(self, purge: bool = False) -> None:
        """
        Cancel the timer

        Args:
            purge: Also delete the persisted timer and state records
                (the switch was removed from configuration)
        """
        self._cancel_timer()
        if purge:
            self.store.clear(self.name)
            self.store.clear_state(self.name)
        logger.info("switch_disposed", switch=self.name, purged=purge)

    def get_statistics(self) -> dict:
        return {
            "id": self.switch_id,
            "name": self.name,
            "on": self.state,
            "activated": self.activated,
            "timer_armed": self.timer_armed,
            "timer_end_time": self.timer_end_time,
            "timer_remaining_ms": self.timer_remaining_ms(),
            "restored_from": self.restored_from,
            "commands": self.commands,
            "triggers": self.triggers,
            "ignored_triggers": self.ignored_triggers,
            "timer_expirations": self.timer_expirations,
        }
