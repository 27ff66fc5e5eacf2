"""Append-only event log persisted in SQLite."""
from __future__ import annotations

import json
from typing import Any, List, Optional

from storage.database import Database, utc_now


class LogStore:
    def __init__(self, database: Database, *, max_limit: int = 1000) -> None:
        self.db = database
        self.max_limit = max_limit

    def append(self, level: str, message: str, context: Any = None) -> int:
        """Record an event and return its id. ``context`` is stored as JSON."""
        serialized = json.dumps(context, default=str) if context else None
        cursor = self.db.execute(
            "INSERT INTO logs (level, message, context, created_at) VALUES (?, ?, ?, ?)",
            (level, message, serialized, utc_now()),
        )
        return int(cursor.lastrowid)

    def list_logs(self, limit: int = 100, level: Optional[str] = None) -> List[dict]:
        """Newest events first; ``limit`` is clamped to ``[1, max_limit]``."""
        limit = min(max(int(limit or 100), 1), self.max_limit)
        sql = "SELECT id, level, message, context, created_at FROM logs"
        params: List[Any] = []
        if level:
            sql += " WHERE level = ?"
            params.append(level)
        sql += " ORDER BY created_at DESC, id DESC LIMIT ?"
        params.append(limit)
        return self.db.fetch_all(sql, params)

    def delete_log(self, log_id: int) -> None:
        self.db.execute("DELETE FROM logs WHERE id = ?", (log_id,))
