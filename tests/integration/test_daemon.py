"""
Integration tests for the daemon lifecycle.

Tests cover:
- Startup from a configuration file
- Reload via method and HTTP endpoint
- Reload triggered by SIGHUP
- Restart picking up persisted timers
- Polling follower wired end to end
"""
import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from httpx import AsyncClient, ASGITransport

from vswitch.api import get_daemon_instance
from vswitch.main import VSwitchDaemon


def write_config(settings, devices):
    with open(settings.config_file, "w", encoding="utf-8") as f:
        json.dump({"platforms": [{"platform": "HomebridgeVirtualSwitches", "devices": devices}]}, f)


@pytest.fixture
def poll_settings(test_settings):
    return test_settings.model_copy(update={"log_source": "poll", "poll_interval_seconds": 0.01})


@pytest.mark.asyncio
async def test_startup_loads_configuration(poll_settings):
    write_config(poll_settings, [{"Name": "Lamp", "SwitchStayOn": True}, {"Name": "Doorbell"}])
    daemon = VSwitchDaemon(poll_settings)

    await daemon.startup()
    try:
        assert get_daemon_instance() is daemon
        assert {c.name for c in daemon.registry.controllers.values()} == {"Lamp", "Doorbell"}
        assert daemon.app is not None
    finally:
        await daemon.shutdown()

    assert get_daemon_instance() is None


@pytest.mark.asyncio
async def test_startup_without_configuration_file(poll_settings):
    daemon = VSwitchDaemon(poll_settings)

    await daemon.startup()
    try:
        assert daemon.registry.controllers == {}
    finally:
        await daemon.shutdown()


@pytest.mark.asyncio
async def test_reload_reports_changes_and_errors(poll_settings):
    write_config(poll_settings, [{"Name": "Lamp"}, {"Name": "Old"}])
    daemon = VSwitchDaemon(poll_settings)
    await daemon.startup()

    try:
        write_config(poll_settings, [
            {"Name": "Lamp", "Time": 2000},
            {"Name": "New"},
            {"Name": "Broken", "Time": 0},
            {"Time": 5},
        ])
        summary = await daemon.reload()

        assert summary.added == ["New"]
        assert summary.updated == ["Lamp"]
        assert summary.removed == ["Old"]
        assert len(summary.errors) == 2
    finally:
        await daemon.shutdown()


@pytest.mark.asyncio
async def test_reload_endpoint(poll_settings):
    write_config(poll_settings, [{"Name": "Lamp"}])
    daemon = VSwitchDaemon(poll_settings)
    await daemon.startup()

    try:
        write_config(poll_settings, [{"Name": "Lamp"}, {"Name": "Fan"}])
        async with AsyncClient(transport=ASGITransport(app=daemon.app), base_url="http://test") as client:
            response = await client.post("/api/switches/reload")

            assert response.status_code == 200
            assert response.json()["added"] == ["Fan"]

            daemon.config_loader.config_file.write_text("{broken")
            response = await client.post("/api/switches/reload")
            assert response.status_code == 422
    finally:
        await daemon.shutdown()


@pytest.mark.asyncio
async def test_reload_signal_applies_configuration(poll_settings):
    write_config(poll_settings, [{"Name": "Lamp"}])
    daemon = VSwitchDaemon(poll_settings)
    await daemon.startup()

    try:
        write_config(poll_settings, [{"Name": "Lamp"}, {"Name": "Fan"}])
        daemon.handle_reload_signal()
        assert len(daemon._background_tasks) == 1

        await asyncio.sleep(0.02)

        assert daemon._background_tasks == set()
        assert daemon.registry.get("Fan") is not None
        assert daemon.reload_failures == 0
    finally:
        await daemon.shutdown()


@pytest.mark.asyncio
async def test_failed_signal_reload_is_counted(poll_settings, monkeypatch):
    daemon = VSwitchDaemon(poll_settings)
    await daemon.startup()

    try:
        monkeypatch.setattr(daemon, "reload", AsyncMock(side_effect=RuntimeError("disk gone")))
        daemon.handle_reload_signal()
        await asyncio.sleep(0.02)

        assert daemon._background_tasks == set()
        assert daemon.reload_failures == 1
    finally:
        await daemon.shutdown()


@pytest.mark.asyncio
async def test_shutdown_cancels_pending_reload(poll_settings, monkeypatch):
    daemon = VSwitchDaemon(poll_settings)
    await daemon.startup()

    async def slow_reload():
        await asyncio.sleep(10)

    monkeypatch.setattr(daemon, "reload", slow_reload)
    daemon.handle_reload_signal()
    await asyncio.sleep(0)
    task = next(iter(daemon._background_tasks))

    await daemon.shutdown()

    assert task.cancelled() is True
    assert daemon.reload_failures == 0


@pytest.mark.asyncio
async def test_restart_resumes_persistent_timer(poll_settings):
    write_config(poll_settings, [{"Name": "Alarm", "Time": 60000, "TimerPersistent": True}])

    first = VSwitchDaemon(poll_settings)
    await first.startup()
    first.registry.trigger("Alarm")
    target = first.registry.get("Alarm").timer_end_time
    await first.shutdown()

    second = VSwitchDaemon(poll_settings)
    await second.startup()
    try:
        controller = second.registry.get("Alarm")
        assert controller.get_on() is True
        assert controller.timer_end_time == target
    finally:
        await second.shutdown()


@pytest.mark.asyncio
async def test_polling_follower_triggers_switch(poll_settings, tmp_path):
    log = tmp_path / "homebridge.log"
    log.write_text("earlier doorbell pressed\n")
    write_config(poll_settings, [{
        "Name": "Doorbell",
        "Time": 100,
        "UseLogFile": True,
        "LogFilePath": str(log),
        "Keywords": ["Doorbell Pressed"],
    }])

    daemon = VSwitchDaemon(poll_settings)
    await daemon.startup()
    try:
        await asyncio.sleep(0.05)
        assert daemon.registry.get_on("Doorbell") is False

        with open(log, "a", encoding="utf-8") as f:
            f.write("\x1b[33m[Ring]\x1b[0m doorbell pressed\n")
        await asyncio.sleep(0.05)

        assert daemon.registry.get_on("Doorbell") is True

        await asyncio.sleep(0.15)
        assert daemon.registry.get_on("Doorbell") is False
    finally:
        await daemon.shutdown()
