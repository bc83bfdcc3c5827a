"""
Configuration Loader - Read switch definitions from a JSON file

Accepts a bare list of switch records, an object with a "devices" list, or a
Homebridge-style config.json whose first platform entry carries "devices".
Invalid records are reported individually; they never prevent the valid
ones from loading.
"""
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List

import structlog
from pydantic import ValidationError

from vswitch.exceptions import ConfigurationError
from vswitch.models.switches import SwitchConfig

logger = structlog.get_logger(__name__)


@dataclass
class LoadResult:
    """Outcome of a configuration load"""
    switches: List[SwitchConfig] = field(default_factory=list)
    errors: List[ConfigurationError] = field(default_factory=list)


def _describe_validation_error(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ())) or "record"
        parts.append(f"{location}: {item.get('msg')}")
    return "; ".join(parts)


def parse_switches(records: List[Any]) -> LoadResult:
    """
    Validate raw switch records

    Args:
        records: Sequence of dictionaries as found in the config file

    Returns:
        LoadResult with the valid switches in order and one error per bad record
    """
    result = LoadResult()

    for index, record in enumerate(records):
        if not isinstance(record, dict):
            result.errors.append(
                ConfigurationError(f"Switch #{index} is not an object")
            )
            continue

        name = record.get("Name", record.get("name"))
        try:
            result.switches.append(SwitchConfig.model_validate(record))
        except ValidationError as e:
            message = f"Switch #{index} ({name!r}) is invalid: {_describe_validation_error(e)}"
            result.errors.append(ConfigurationError(message, switch_name=name or None))

    return result


class ConfigLoader:
    """
    Loads switch configuration from disk

    Runs on daemon startup and again on every reload request.
    """

    def __init__(self, config_file: str):
        """
        Initialize config loader

        Args:
            config_file: Path to the JSON configuration file
        """
        self.config_file = Path(config_file)
        logger.info("config_loader_initialized", config_file=str(self.config_file))

    def _extract_records(self, document: Any) -> List[Any]:
        if isinstance(document, list):
            return document

        if not isinstance(document, dict):
            raise ConfigurationError("Configuration must be a list or an object")

        if "devices" in document:
            devices = document["devices"]
        else:
            platforms = document.get("platforms") or []
            devices = next(
                (p.get("devices") for p in platforms if isinstance(p, dict) and "devices" in p),
                [],
            )

        if not isinstance(devices, list):
            raise ConfigurationError('"devices" must be a list')
        return devices

    def load(self) -> LoadResult:
        """
        Load and validate all switch definitions

        Returns:
            LoadResult with valid switches and per-record errors

        Raises:
            ConfigurationError: The file is missing or is not valid JSON
        """
        logger.info("loading_configuration", config_file=str(self.config_file))

        try:
            document = json.loads(self.config_file.read_text(encoding="utf-8"))
        except FileNotFoundError as e:
            raise ConfigurationError(f"Configuration file not found: {self.config_file}") from e
        except (OSError, ValueError) as e:
            raise ConfigurationError(f"Cannot read configuration {self.config_file}: {e}") from e

        result = parse_switches(self._extract_records(document))

        for error in result.errors:
            logger.error("switch_configuration_invalid", error=str(error))

        logger.info(
            "configuration_loaded",
            switches=len(result.switches),
            errors=len(result.errors),
        )
        return result
