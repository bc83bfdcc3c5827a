"""
Tests for the log handlers and the service token they write.

A switch monitoring the daemon's own log file must not trigger from
what the daemon writes there.
"""
import json
import logging

import pytest

from vswitch.config import Settings
from vswitch.logging_config import SERVICE_TOKEN, add_service, get_file_handler
from vswitch.logic.feedback import FeedbackFilter


@pytest.fixture
def file_logger(tmp_path):
    created = []

    def make(json_format: bool):
        path = tmp_path / ("daemon.json" if json_format else "daemon.log")
        handler = get_file_handler(str(path), "DEBUG", json_format=json_format)
        logger = logging.getLogger(f"vswitch.tests.{path.name}")
        logger.setLevel(logging.DEBUG)
        logger.propagate = False
        logger.addHandler(handler)
        created.append((logger, handler))
        return logger, path

    yield make

    for logger, handler in created:
        logger.removeHandler(handler)
        handler.close()


def test_service_token_is_a_self_log_token():
    assert SERVICE_TOKEN in Settings().self_log_tokens


def test_add_service_processor():
    processor = add_service("vswitch")

    assert processor(None, "info", {"event": "switch_turned_on"})["service"] == "vswitch"
    assert processor(None, "info", {"event": "x", "service": "other"})["service"] == "other"


def test_text_lines_are_recognized_as_own(file_logger):
    logger, path = file_logger(json_format=False)
    feedback = FeedbackFilter([SERVICE_TOKEN])

    logger.debug("keyword_matched keyword='doorbell pressed'")
    logger.info("switch_turned_on switch=Doorbell")

    debug_line, info_line = path.read_text().splitlines()
    assert "[vswitch] DEBUG:" in debug_line
    assert feedback.is_diagnostic(debug_line) is True
    assert feedback.is_own_line(info_line, "Doorbell") is True
    assert feedback.is_own_line(info_line, "Siren") is False


def test_json_lines_carry_service(file_logger):
    logger, path = file_logger(json_format=True)

    logger.info("switch_turned_on switch=Doorbell")

    line = path.read_text().splitlines()[0]
    record = json.loads(line)
    assert record["service"] == "vswitch"
    assert record["levelname"] == "INFO"
    assert FeedbackFilter([SERVICE_TOKEN]).mentions_switch(line, "Doorbell") is True


def test_file_handler_level(tmp_path):
    handler = get_file_handler(str(tmp_path / "daemon.log"), "warning", json_format=False)
    try:
        assert handler.level == logging.WARNING
    finally:
        handler.close()
