"""
Timer Store - Durable per-switch timer and state records

Persistent auto-off timers are stored as absolute deadlines so a restart
can tell whether the timer expired while the daemon was down. Remembered
switch states live in a separate directory with the same naming scheme.

Layout under the storage directory:
    timers/<slug>-<hash>.json   {"targetTime": 1700000000000, "isRunning": true}
    states/<slug>-<hash>.json   {"state": true}

Read and write failures are logged and treated as "nothing persisted";
they never abort the caller.
"""
import hashlib
import os
import re
import tempfile
from pathlib import Path
from typing import Dict, Optional, Type, TypeVar

import structlog
from pydantic import BaseModel, ValidationError

from vswitch.exceptions import PersistenceError
from vswitch.models.records import PersistedSwitchState, PersistedTimerRecord

logger = structlog.get_logger(__name__)

TIMERS_DIRECTORY = "timers"
STATES_DIRECTORY = "states"

RecordT = TypeVar("RecordT", bound=BaseModel)


def record_filename(switch_name: str) -> str:
    """Filesystem-safe file name for a switch, unique per exact name"""
    slug = re.sub(r"[^A-Za-z0-9_.-]+", "_", switch_name).strip("._") or "switch"
    digest = hashlib.sha1(switch_name.encode("utf-8")).hexdigest()[:8]
    return f"{slug[:64]}-{digest}.json"


class _RecordDirectory:
    """JSON records in one directory, one file per switch name"""

    def __init__(self, directory: Path, record_type: Type[RecordT]):
        self.directory = directory
        self.record_type = record_type
        self.reads = 0
        self.writes = 0
        self.failures = 0

    def path_for(self, switch_name: str) -> Path:
        return self.directory / record_filename(switch_name)

    def read(self, switch_name: str) -> Optional[RecordT]:
        path = self.path_for(switch_name)
        if not path.exists():
            return None

        self.reads += 1
        try:
            return self.record_type.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValidationError, ValueError) as e:
            raise PersistenceError(f"Unreadable record {path}: {e}") from e

    def write(self, switch_name: str, record: BaseModel) -> None:
        """Write the record atomically (temp file in the same directory + rename)"""
        path = self.path_for(switch_name)
        payload = record.model_dump_json(by_alias=True)

        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.directory, prefix=f".{path.stem}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(payload)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_name, path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            raise PersistenceError(f"Cannot write record {path}: {e}") from e

        self.writes += 1

    def delete(self, switch_name: str) -> bool:
        path = self.path_for(switch_name)
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            raise PersistenceError(f"Cannot delete record {path}: {e}") from e


class TimerStore:
    """
    Persistence for per-switch timer and state records

    Keeps an in-memory cache of timer records that is updated on every
    save and clear, so lookups after the first load never touch the disk.
    """

    def __init__(self, storage_path: str):
        """
        Initialize the store

        Args:
            storage_path: Base directory for persisted records
        """
        self.storage_path = Path(storage_path)
        self._timers = _RecordDirectory(self.storage_path / TIMERS_DIRECTORY, PersistedTimerRecord)
        self._states = _RecordDirectory(self.storage_path / STATES_DIRECTORY, PersistedSwitchState)
        self._cache: Dict[str, PersistedTimerRecord] = {}

        logger.info("timer_store_initialized", storage_path=str(self.storage_path))

    # Timer records

    def save(self, switch_name: str, target_time: int, is_running: bool = True) -> bool:
        """
        Persist a timer record

        Args:
            switch_name: Switch name
            target_time: Absolute deadline in epoch milliseconds
            is_running: Whether the timer is armed

        Returns:
            True if the record reached the disk
        """
        record = PersistedTimerRecord(target_time=target_time, is_running=is_running)
        self._cache[switch_name] = record

        try:
            self._timers.write(switch_name, record)
        except PersistenceError as e:
            self._timers.failures += 1
            logger.error("timer_record_save_failed", switch=switch_name, error=str(e))
            return False

        logger.debug(
            "timer_record_saved",
            switch=switch_name,
            target_time=target_time,
            is_running=is_running,
        )
        return True

    def load(self, switch_name: str) -> Optional[PersistedTimerRecord]:
        """
        Load a timer record

        Returns:
            The record, or None if absent or unreadable
        """
        if switch_name in self._cache:
            return self._cache[switch_name]

        try:
            record = self._timers.read(switch_name)
        except PersistenceError as e:
            self._timers.failures += 1
            logger.warning("timer_record_load_failed", switch=switch_name, error=str(e))
            return None

        if record is not None:
            self._cache[switch_name] = record
        return record

    def clear(self, switch_name: str) -> None:
        """Delete a timer record from disk and cache"""
        self._cache.pop(switch_name, None)

        try:
            if self._timers.delete(switch_name):
                logger.debug("timer_record_cleared", switch=switch_name)
        except PersistenceError as e:
            self._timers.failures += 1
            logger.error("timer_record_clear_failed", switch=switch_name, error=str(e))

    # Remembered switch states

    def save_state(self, switch_name: str, state: bool) -> bool:
        """Persist the last exposed value of a switch"""
        try:
            self._states.write(switch_name, PersistedSwitchState(state=state))
        except PersistenceError as e:
            self._states.failures += 1
            logger.error("switch_state_save_failed", switch=switch_name, error=str(e))
            return False

        logger.debug("switch_state_saved", switch=switch_name, state=state)
        return True

    def load_state(self, switch_name: str) -> Optional[bool]:
        """Load the remembered value of a switch, None if absent or unreadable"""
        try:
            record = self._states.read(switch_name)
        except PersistenceError as e:
            self._states.failures += 1
            logger.warning("switch_state_load_failed", switch=switch_name, error=str(e))
            return None

        return record.state if record is not None else None

    def clear_state(self, switch_name: str) -> None:
        """Delete the remembered value of a switch"""
        try:
            self._states.delete(switch_name)
        except PersistenceError as e:
            self._states.failures += 1
            logger.error("switch_state_clear_failed", switch=switch_name, error=str(e))

    def get_statistics(self) -> dict:
        return {
            "storage_path": str(self.storage_path),
            "cached_timers": len(self._cache),
            "timer_writes": self._timers.writes,
            "state_writes": self._states.writes,
            "failures": self._timers.failures + self._states.failures,
        }
