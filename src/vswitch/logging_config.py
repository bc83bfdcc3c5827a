"""
vswitch Logging Configuration

structlog renders every event; the daemon's name is bound to each one as
``service`` so that lines it writes into a monitored log are recognized by
the feedback filter (see ``Settings.self_log_tokens``).
"""
import logging
import sys

import structlog
from pythonjsonlogger import jsonlogger

# Identifies the daemon's own lines in a shared log
SERVICE_TOKEN = "vswitch"

TEXT_FILE_FORMAT = "%(asctime)s [{service}] %(levelname)s: %(message)s"


def add_service(service: str = SERVICE_TOKEN):
    """structlog processor stamping events with the service token"""

    def processor(logger, method_name, event_dict):
        event_dict.setdefault("service", service)
        return event_dict

    return processor


def setup_logging(log_level: str = "INFO", json_logs: bool = False, service: str = SERVICE_TOKEN) -> None:
    """
    Configure application logging

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: Render JSON instead of colored console output
        service: Token bound to every event
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=numeric_level)

    processors = [
        structlog.contextvars.merge_contextvars,
        add_service(service),
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if json_logs:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors += [structlog.processors.ExceptionRenderer(), structlog.dev.ConsoleRenderer(colors=True)]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Quiet per-request access lines
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def get_file_handler(
    log_file: str,
    log_level: str = "INFO",
    json_format: bool = True,
    service: str = SERVICE_TOKEN,
) -> logging.FileHandler:
    """
    Create a file handler for logging to disk

    Each record carries the service token, and text records read
    "[vswitch] DEBUG: ...", so a switch that monitors this same file
    skips the daemon's own lines.

    Args:
        log_file: Path to log file
        log_level: Minimum log level
        json_format: Write JSON objects instead of text lines
        service: Token written into every record

    Returns:
        Configured file handler
    """
    handler = logging.FileHandler(log_file)
    handler.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    if json_format:
        formatter = jsonlogger.JsonFormatter(
            "%(asctime)s %(levelname)s %(name)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
            static_fields={"service": service},
        )
    else:
        formatter = logging.Formatter(
            TEXT_FILE_FORMAT.format(service=service),
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    handler.setFormatter(formatter)
    return handler
