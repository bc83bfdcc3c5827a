"""
Shared test fixtures for vswitch daemon tests.

Provides fixtures for:
- Settings and timer stores in temporary directories
- Switch registries wired to in-memory line sources
- API client (httpx AsyncClient over ASGI)
- Sample switch configurations
"""
import sys
from pathlib import Path
from types import SimpleNamespace
from typing import AsyncGenerator, Dict, List

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

# Ensure src/ is on sys.path for direct pytest runs
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from vswitch.config import Settings
from vswitch.api import create_app, set_daemon_instance
from vswitch.control.scheduler import Scheduler
from vswitch.control.timer_store import TimerStore
from vswitch.logic.registry import SwitchRegistry
from vswitch.models.switches import SwitchConfig
from vswitch.sources.memory import MemoryLineSource


# ============================================================================
# Settings and Store Fixtures
# ============================================================================

@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Create test settings rooted in a temporary directory."""
    return Settings(
        config_file=str(tmp_path / "config.json"),
        storage_path=str(tmp_path / "storage"),
        log_level="DEBUG",
        default_log_file_path=str(tmp_path / "homebridge.log"),
        default_startup_delay_ms=0,
        api_docs_enabled=True,
    )


@pytest.fixture
def store(test_settings) -> TimerStore:
    """Create a TimerStore in the temporary storage directory."""
    return TimerStore(test_settings.storage_path)


# ============================================================================
# Registry Fixtures
# ============================================================================

class SourceFactory:
    """Hands out MemoryLineSources and remembers them by path."""

    def __init__(self):
        self.sources: Dict[str, List[MemoryLineSource]] = {}
        self.fail_paths = set()
        self.open_gate = None

    def __call__(self, path: str) -> MemoryLineSource:
        source = MemoryLineSource(
            path, fail_on_open=path in self.fail_paths, open_gate=self.open_gate
        )
        self.sources.setdefault(path, []).append(source)
        return source

    def latest(self, path: str) -> MemoryLineSource:
        return self.sources[path][-1]


@pytest.fixture
def source_factory() -> SourceFactory:
    """Create a factory for in-memory line sources."""
    return SourceFactory()


@pytest_asyncio.fixture
async def registry(store, test_settings, source_factory) -> AsyncGenerator[SwitchRegistry, None]:
    """Create a SwitchRegistry reading from in-memory sources."""
    reg = SwitchRegistry(store, test_settings, source_factory=source_factory)
    yield reg
    await reg.shutdown()


# ============================================================================
# Scheduler Fixtures
# ============================================================================

@pytest_asyncio.fixture
async def scheduler() -> AsyncGenerator[Scheduler, None]:
    """Create a fresh Scheduler instance."""
    sched = Scheduler()
    yield sched
    sched.clear()


# ============================================================================
# App Fixtures
# ============================================================================

@pytest_asyncio.fixture
async def test_app(registry, test_settings):
    """Create a FastAPI test application backed by the test registry."""
    app = create_app(test_settings)

    async def reload():
        # Tests drive configuration through registry.reconcile directly
        return await registry.reconcile(list(c.config for c in registry.controllers.values()))

    daemon = SimpleNamespace(registry=registry, reload=reload)
    set_daemon_instance(daemon)

    yield app

    set_daemon_instance(None)


@pytest_asyncio.fixture
async def async_client(test_app) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP client for API testing."""
    async with AsyncClient(
        transport=ASGITransport(app=test_app),
        base_url="http://test"
    ) as client:
        yield client


# ============================================================================
# Utility Fixtures
# ============================================================================

@pytest.fixture
def mock_clock():
    """Create a controllable wall clock in epoch milliseconds."""

    class MockClock:
        def __init__(self):
            self.current = 1_700_000_000_000

        def __call__(self) -> int:
            return self.current

        def advance(self, ms: int):
            self.current += ms

    return MockClock()


# ============================================================================
# Sample Data Fixtures
# ============================================================================

@pytest.fixture
def doorbell_config(tmp_path) -> SwitchConfig:
    """Log-monitored momentary switch with a short auto-off timer."""
    return SwitchConfig(
        name="Doorbell",
        time_ms=50,
        use_log_file=True,
        log_file_path=str(tmp_path / "doorbell.log"),
        keywords=["doorbell pressed"],
    )


@pytest.fixture
def alarm_config(tmp_path) -> SwitchConfig:
    """Log-monitored switch whose one-minute timer survives restarts."""
    return SwitchConfig(
        name="Alarm",
        time_ms=60000,
        timer_persistent=True,
        use_log_file=True,
        log_file_path=str(tmp_path / "alarm.log"),
        keywords=["intrusion detected"],
    )


@pytest.fixture
def siren_config(tmp_path) -> SwitchConfig:
    """Log-monitored stateful switch that stays on once triggered."""
    return SwitchConfig(
        name="Siren",
        stay_on=True,
        use_log_file=True,
        log_file_path=str(tmp_path / "siren.log"),
        keywords=["siren on"],
    )
