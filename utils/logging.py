"""Project-wide logging utilities."""
from __future__ import annotations

import json
import logging
import os
from logging import Logger
from typing import Any, Dict, Mapping, Optional

DEFAULT_LOGGER = "workbench"
PLAIN_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

_defaults: Dict[str, Any] = {"level": None, "json": True}
_configured: Dict[str, Logger] = {}


class JsonFormatter(logging.Formatter):
    """Render records as single-line JSON documents."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        payload = {
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        context = getattr(record, "context", None)
        if context:
            payload["context"] = context
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def _formatter(json_output: bool) -> logging.Formatter:
    return JsonFormatter() if json_output else logging.Formatter(PLAIN_FORMAT)


def _level(name: Optional[str]) -> int:
    level_name = (name or os.getenv("LOG_LEVEL") or "INFO").upper()
    return getattr(logging, level_name, logging.INFO)


def configure_logger(name: str, level: Optional[str] = None, json_output: Optional[bool] = None) -> Logger:
    """Configure and return a project logger."""
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    if json_output is None:
        json_output = bool(_defaults["json"])
    logger.setLevel(_level(level or _defaults["level"]))
    handler = logging.StreamHandler()
    handler.setFormatter(_formatter(json_output))

    logger.addHandler(handler)
    logger.propagate = False
    _configured[name] = logger
    return logger


def apply_logging_settings(cfg: Mapping[str, Any]) -> None:
    """Apply the ``logging`` settings section to existing and future loggers.

    ``LOG_LEVEL`` in the environment wins over the configured level.
    """
    _defaults["level"] = os.getenv("LOG_LEVEL") or cfg.get("level")
    _defaults["json"] = bool(cfg.get("json", True))
    for logger in _configured.values():
        logger.setLevel(_level(_defaults["level"]))
        for handler in logger.handlers:
            handler.setFormatter(_formatter(_defaults["json"]))


def get_logger(name: Optional[str] = None) -> Logger:
    """Return a configured logger."""
    return configure_logger(name or DEFAULT_LOGGER)
