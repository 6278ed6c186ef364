"""Logging configuration.

The chat CLI redraws the streamed reply in place on stdout, so records go to
stderr or to a log file.
"""

import logging
import os
import sys

from pydantic import BaseModel

# Both log every request and connection event
HTTP_LOGGERS = ("httpx", "httpcore")


class LogConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    http_level: str = "WARNING"
    log_file: str | None = None
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    date_format: str = "%Y-%m-%d %H:%M:%S"

    @classmethod
    def from_env(cls, **overrides: str | None) -> "LogConfig":
        """Build a configuration from LOG_LEVEL, PLAYGROUND_HTTP_LOG_LEVEL and PLAYGROUND_LOG_FILE.

        Args:
            overrides: Explicit values (e.g. from CLI flags); None entries are ignored
        """
        values = {
            "level": os.getenv("LOG_LEVEL", "INFO"),
            "http_level": os.getenv("PLAYGROUND_HTTP_LOG_LEVEL", "WARNING"),
            "log_file": os.getenv("PLAYGROUND_LOG_FILE") or None,
        }
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)


def setup_logging(config: LogConfig | None = None) -> logging.Handler:
    """Set up logging for the client and CLI.

    Returns:
        The handler installed on the root logger
    """
    if config is None:
        config = LogConfig.from_env()

    level = getattr(logging, config.level.upper())
    if config.log_file:
        handler: logging.Handler = logging.FileHandler(config.log_file, encoding="utf-8")
    else:
        handler = logging.StreamHandler(sys.stderr)
    # Module loggers carry their own level, so filter at the handler too
    handler.setLevel(level)

    logging.basicConfig(
        level=level,
        format=config.format,
        datefmt=config.date_format,
        handlers=[handler],
        force=True,
    )

    http_level = getattr(logging, config.http_level.upper())
    for name in HTTP_LOGGERS:
        logging.getLogger(name).setLevel(http_level)

    return handler


def get_logger(name: str, level: str | None = None) -> logging.Logger:
    """Get a logger for a specific module.

    Args:
        name: Module name (typically __name__)
        level: Explicit level, overrides the LOG_LEVEL environment variable

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    log_level = level if level else os.getenv("LOG_LEVEL", "INFO")
    logger.setLevel(log_level.upper())

    return logger
