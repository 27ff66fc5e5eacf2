"""Generic settings table and the PA-API credential set kept inside it."""
from __future__ import annotations

from typing import List, Optional

from connectors.models import CREDENTIAL_FIELDS, PaapiCredentials
from storage.database import Database, utc_now

PAAPI_SECTION = "paapi"

_COLUMNS = "section, name, value, created_at, updated_at"
_UPSERT = """
    INSERT INTO settings (section, name, value, created_at, updated_at)
    VALUES (?, ?, ?, ?, ?)
    ON CONFLICT(section, name) DO UPDATE SET
        value = excluded.value,
        updated_at = excluded.updated_at
"""


class SettingsStore:
    def __init__(self, database: Database) -> None:
        self.db = database

    def list_settings(self, section: Optional[str] = None) -> List[dict]:
        if section:
            return self.db.fetch_all(
                f"SELECT {_COLUMNS} FROM settings WHERE section = ? ORDER BY name",
                (section,),
            )
        return self.db.fetch_all(f"SELECT {_COLUMNS} FROM settings ORDER BY section, name")

    def get_setting(self, section: str, name: str) -> Optional[dict]:
        return self.db.fetch_one(
            f"SELECT {_COLUMNS} FROM settings WHERE section = ? AND name = ?",
            (section, name),
        )

    def upsert_setting(self, section: str, name: str, value: str) -> None:
        now = utc_now()
        self.db.execute(_UPSERT, (section, name, value, now, now))

    def delete_setting(self, section: str, name: str) -> None:
        self.db.execute("DELETE FROM settings WHERE section = ? AND name = ?", (section, name))

    # ------------------------------------------------------------------
    # PA-API credentials
    # ------------------------------------------------------------------
    def get_paapi_credentials(self) -> Optional[PaapiCredentials]:
        """Stored credential set, or ``None`` when nothing has been saved."""
        rows = self.list_settings(PAAPI_SECTION)
        if not rows:
            return None
        values = {row["name"]: row["value"] for row in rows}
        credentials = PaapiCredentials.from_mapping(values)
        return PaapiCredentials(
            **{attr: getattr(credentials, attr) for attr in CREDENTIAL_FIELDS},
            created_at=rows[0]["created_at"],
            updated_at=rows[0]["updated_at"],
        )

    def put_paapi_credentials(self, credentials: PaapiCredentials) -> None:
        now = utc_now()
        with self.db.transaction() as connection:
            for attr, name in CREDENTIAL_FIELDS.items():
                connection.execute(
                    _UPSERT,
                    (PAAPI_SECTION, name, getattr(credentials, attr), now, now),
                )

    def delete_paapi_credentials(self) -> None:
        with self.db.transaction() as connection:
            for name in CREDENTIAL_FIELDS.values():
                connection.execute(
                    "DELETE FROM settings WHERE section = ? AND name = ?",
                    (PAAPI_SECTION, name),
                )
