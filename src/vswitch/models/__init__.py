"""
vswitch models - switch configuration and persisted records
"""

from vswitch.models.switches import SwitchConfig, duration_ms, switch_id_for
from vswitch.models.records import PersistedTimerRecord, PersistedSwitchState

__all__ = [
    "SwitchConfig",
    "duration_ms",
    "switch_id_for",
    "PersistedTimerRecord",
    "PersistedSwitchState",
]
