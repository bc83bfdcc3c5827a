"""
Tests for ConfigLoader.
"""
import json

import pytest

from vswitch.control.config_loader import ConfigLoader, parse_switches
from vswitch.exceptions import ConfigurationError


def write_config(path, document):
    path.write_text(json.dumps(document))
    return ConfigLoader(str(path))


class TestConfigLoader:

    def test_bare_list(self, tmp_path):
        loader = write_config(tmp_path / "config.json", [
            {"Name": "Doorbell", "Time": 5000},
            {"Name": "Alarm", "SwitchStayOn": True},
        ])

        result = loader.load()

        assert [s.name for s in result.switches] == ["Doorbell", "Alarm"]
        assert result.errors == []
        assert result.switches[0].time_ms == 5000
        assert result.switches[1].stay_on is True

    def test_devices_key(self, tmp_path):
        loader = write_config(tmp_path / "config.json", {"devices": [{"Name": "Lamp"}]})

        assert [s.name for s in loader.load().switches] == ["Lamp"]

    def test_homebridge_platforms(self, tmp_path):
        loader = write_config(tmp_path / "config.json", {
            "bridge": {"name": "Homebridge"},
            "platforms": [
                {"platform": "Other"},
                {"platform": "HomebridgeVirtualSwitches", "devices": [{"Name": "Lamp"}]},
            ],
        })

        assert [s.name for s in loader.load().switches] == ["Lamp"]

    def test_no_devices(self, tmp_path):
        loader = write_config(tmp_path / "config.json", {"platforms": []})

        assert loader.load().switches == []

    def test_invalid_record_does_not_block_others(self, tmp_path):
        loader = write_config(tmp_path / "config.json", [
            {"Name": "Good"},
            {"Name": "Bad", "Time": -5},
            "not an object",
            {"Name": "  "},
            {"Name": "AlsoGood"},
        ])

        result = loader.load()

        assert [s.name for s in result.switches] == ["Good", "AlsoGood"]
        assert len(result.errors) == 3
        assert all(isinstance(e, ConfigurationError) for e in result.errors)
        assert result.errors[0].switch_name == "Bad"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            ConfigLoader(str(tmp_path / "missing.json")).load()

    def test_bad_json(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("[{")

        with pytest.raises(ConfigurationError):
            ConfigLoader(str(path)).load()

    def test_scalar_document(self, tmp_path):
        with pytest.raises(ConfigurationError):
            write_config(tmp_path / "config.json", 42).load()

    def test_devices_not_a_list(self, tmp_path):
        with pytest.raises(ConfigurationError):
            write_config(tmp_path / "config.json", {"devices": {"Name": "Lamp"}}).load()


def test_parse_switches_snake_case_names():
    result = parse_switches([{"name": "Lamp", "stay_on": True}])

    assert result.switches[0].name == "Lamp"
    assert result.switches[0].stay_on is True
