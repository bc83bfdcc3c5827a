"""
Persisted records

Small JSON documents written per switch so timers and remembered states
survive a restart of the daemon.
"""
from pydantic import BaseModel, ConfigDict, Field


class PersistedTimerRecord(BaseModel):
    """Absolute deadline of a persistent auto-off timer"""

    model_config = ConfigDict(populate_by_name=True)

    target_time: int = Field(..., alias="targetTime")  # epoch milliseconds
    is_running: bool = Field(..., alias="isRunning")


class PersistedSwitchState(BaseModel):
    """Last exposed value of a switch with remember_state enabled"""

    state: bool
