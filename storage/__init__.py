"""Embedded SQLite storage exports."""
from .database import Database, utc_now
from .log_store import LogStore
from .secrets_store import SecretsStore
from .settings_store import SettingsStore

__all__ = ["Database", "LogStore", "SecretsStore", "SettingsStore", "utc_now"]
