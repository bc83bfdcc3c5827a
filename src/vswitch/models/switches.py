"""
Switch configuration model

One SwitchConfig per configured virtual switch. Field names are snake_case,
the camel-cased keys of Homebridge-style config files are accepted as aliases.
"""
import uuid
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from vswitch.exceptions import ConfigurationError

# Namespace for deriving switch identities from names
SWITCH_NAMESPACE = uuid.UUID("6f1c3a52-8d0e-5b7a-9c44-2e5d1f0a7b93")

DEFAULT_STARTUP_DELAY_MS = 10000


def duration_ms(days: int = 0, hours: int = 0, minutes: int = 0, seconds: int = 0) -> int:
    """Convert day/hour/minute/second components to milliseconds"""
    return (((days * 24 + hours) * 60 + minutes) * 60 + seconds) * 1000


def switch_id_for(name: str) -> str:
    """Deterministic identity for a switch name"""
    return str(uuid.uuid5(SWITCH_NAMESPACE, name))


class SwitchConfig(BaseModel):
    """Configuration for a single virtual switch"""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    name: str = Field(..., alias="Name")
    normally_closed: bool = Field(default=False, alias="NormallyClosed")
    stay_on: bool = Field(default=False, alias="SwitchStayOn")

    # Auto-off timer
    time_ms: int = Field(default=1000, ge=0, alias="Time")
    use_custom_time: bool = Field(default=False, alias="UseCustomTime")
    time_days: int = Field(default=0, ge=0, alias="TimeDays")
    time_hours: int = Field(default=0, ge=0, alias="TimeHours")
    time_minutes: int = Field(default=0, ge=0, alias="TimeMinutes")
    time_seconds: int = Field(default=0, ge=0, alias="TimeSeconds")
    timer_persistent: bool = Field(default=False, alias="TimerPersistent")
    remember_state: bool = Field(default=False, alias="RememberState")

    # Log monitoring
    use_log_file: bool = Field(default=False, alias="UseLogFile")
    log_file_path: Optional[str] = Field(default=None, alias="LogFilePath")
    keywords: List[str] = Field(default_factory=list, alias="Keywords")

    # Delay before log monitoring starts
    enable_startup_delay: bool = Field(default=False, alias="EnableStartupDelay")
    startup_delay_ms: Optional[int] = Field(default=None, ge=0, alias="StartupDelay")
    use_custom_startup_delay: bool = Field(default=False, alias="UseCustomStartupDelay")
    startup_delay_days: int = Field(default=0, ge=0, alias="StartupDelayDays")
    startup_delay_hours: int = Field(default=0, ge=0, alias="StartupDelayHours")
    startup_delay_minutes: int = Field(default=0, ge=0, alias="StartupDelayMinutes")
    startup_delay_seconds: int = Field(default=0, ge=0, alias="StartupDelaySeconds")

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("switch name must not be empty")
        return value

    @field_validator("keywords", mode="before")
    @classmethod
    def _coerce_keywords(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return value

    @property
    def switch_id(self) -> str:
        return switch_id_for(self.name)

    @property
    def rest_state(self) -> bool:
        """Exposed value of the switch when it is not activated"""
        return self.normally_closed

    def timer_duration_ms(self) -> int:
        """Auto-off duration in milliseconds"""
        if self.use_custom_time:
            return duration_ms(
                self.time_days, self.time_hours, self.time_minutes, self.time_seconds
            )
        return self.time_ms

    def startup_delay(self, default_ms: int = DEFAULT_STARTUP_DELAY_MS) -> int:
        """
        Delay in milliseconds before log monitoring starts

        Custom day/hour/minute/second fields win when selected, otherwise the
        flat millisecond value, otherwise the default.
        """
        if not self.enable_startup_delay:
            return 0
        if self.use_custom_startup_delay:
            return duration_ms(
                self.startup_delay_days,
                self.startup_delay_hours,
                self.startup_delay_minutes,
                self.startup_delay_seconds,
            )
        if self.startup_delay_ms:
            return self.startup_delay_ms
        return default_ms

    def validate_timer(self) -> None:
        """
        Reject switches that could never revert

        Raises:
            ConfigurationError: auto-off is enabled with a zero duration
        """
        if self.stay_on or self.timer_duration_ms() != 0:
            return
        if self.use_custom_time:
            raise ConfigurationError(
                f'Switch "{self.name}" cannot be initialized: custom timer is selected '
                "and all time fields are 0",
                switch_name=self.name,
            )
        raise ConfigurationError(
            f'Switch "{self.name}" cannot be initialized: timer is 0 ms and the '
            "switch does not stay on",
            switch_name=self.name,
        )

    def log_settings(self) -> Tuple[bool, Optional[str], int]:
        """Fields whose change requires restarting the log watcher"""
        return (self.use_log_file, self.log_file_path, self.startup_delay())
