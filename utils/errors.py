"""Error roots shared across packages."""
from __future__ import annotations


class WorkbenchError(Exception):
    """Base class for errors raised by the workbench."""


class ConfigError(WorkbenchError):
    """Required configuration is missing or malformed. Never retried."""
