"""Secrets table. Values are stored as cipher envelopes only."""
from __future__ import annotations

from typing import List, Optional

from storage.database import Database, utc_now

_COLUMNS = "id, name, value_encrypted, created_at, updated_at"


class SecretsStore:
    def __init__(self, database: Database) -> None:
        self.db = database

    def list_secrets(self) -> List[dict]:
        return self.db.fetch_all(f"SELECT {_COLUMNS} FROM secrets ORDER BY name")

    def get_secret(self, name: str) -> Optional[dict]:
        return self.db.fetch_one(f"SELECT {_COLUMNS} FROM secrets WHERE name = ?", (name,))

    def put_secret(self, name: str, envelope: str) -> None:
        now = utc_now()
        self.db.execute(
            """
            INSERT INTO secrets (name, value_encrypted, created_at, updated_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(name) DO UPDATE SET
                value_encrypted = excluded.value_encrypted,
                updated_at = excluded.updated_at
            """,
            (name, envelope, now, now),
        )

    def delete_secret(self, name: str) -> None:
        self.db.execute("DELETE FROM secrets WHERE name = ?", (name,))
