"""Logging configuration."""

import json
import logging
import sys
from typing import Any, Dict

LOGGER_NAME = "mcp_c3_tools"


class ColorCodes:
    RESET = "\033[0m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    MAGENTA = "\033[35m"
    BOLD = "\033[1m"


LEVEL_COLORS = {
    "DEBUG": ColorCodes.BLUE,
    "INFO": ColorCodes.GREEN,
    "WARNING": ColorCodes.YELLOW,
    "ERROR": ColorCodes.RED + ColorCodes.BOLD,
    "CRITICAL": ColorCodes.MAGENTA + ColorCodes.BOLD,
}


class JsonFormatter(logging.Formatter):
    """Format log records as color-coded JSON lines."""

    def __init__(self, colors: bool = True):
        super().__init__()
        self.colors = colors

    def format(self, record: logging.LogRecord) -> str:
        output: Dict[str, Any] = {
            "ts": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
        }

        # Event-style records are logged as dicts
        if isinstance(record.msg, dict):
            output.update(record.msg)
        else:
            output["msg"] = record.getMessage()

        if hasattr(record, "data"):
            output["data"] = record.data

        if record.exc_info:
            output["exc"] = self.formatException(record.exc_info)

        json_str = json.dumps(output, default=str)
        if not self.colors:
            return json_str
        color = LEVEL_COLORS.get(record.levelname, "")
        return f"{color}{json_str}{ColorCodes.RESET}"


def configure_logging(level: str = "INFO") -> None:
    """Set up package logging on stderr.

    Stdout is reserved for the MCP stdio transport, so the package logger
    never propagates to the root logger.
    """
    app_logger = logging.getLogger(LOGGER_NAME)

    if not app_logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(JsonFormatter(colors=sys.stderr.isatty()))
        handler.setLevel(logging.DEBUG)
        app_logger.addHandler(handler)

    app_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    app_logger.propagate = False


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the package namespace."""
    if name == LOGGER_NAME or name.startswith(f"{LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{LOGGER_NAME}.{name}")


def log_with_data(
    logger: logging.Logger, level: int, msg: str, data: Dict[str, Any] | None = None
) -> None:
    """Log a message with optional structured data."""
    if data:
        logger.log(level, msg, extra={"data": data})
    else:
        logger.log(level, msg)
