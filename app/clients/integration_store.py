"""SQLite-backed storage for third-party integration records."""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional


class IntegrationStore:
    """Persist one row per (restaurant, platform) integration.

    Credentials and settings are stored as JSON documents; callers are
    responsible for encrypting token values before handing them over.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = Path(db_path)
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS integrations (
                    restaurant_id TEXT NOT NULL,
                    platform_id TEXT NOT NULL,
                    status TEXT NOT NULL,
                    credentials TEXT NOT NULL,
                    settings TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    PRIMARY KEY (restaurant_id, platform_id)
                )
                """
            )

    def get_integration(
        self, *, restaurant_id: str, platform_id: str
    ) -> Optional[Dict[str, Any]]:
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT * FROM integrations
                WHERE restaurant_id = ? AND platform_id = ?
                """,
                (restaurant_id, platform_id),
            ).fetchone()
        if not row:
            return None
        return self._row_to_record(row)

    def upsert_integration(
        self,
        *,
        restaurant_id: str,
        platform_id: str,
        status: str,
        credentials: Dict[str, Any],
        settings: Dict[str, Any],
    ) -> None:
        """Insert a new integration or refresh credentials and status.

        Settings are only written on insert so reconnecting keeps the
        restaurant's sync preferences.
        """
        now_iso = datetime.now(timezone.utc).isoformat()
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO integrations (
                    restaurant_id, platform_id, status, credentials, settings,
                    created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(restaurant_id, platform_id) DO UPDATE SET
                    status = excluded.status,
                    credentials = excluded.credentials,
                    updated_at = excluded.updated_at
                """,
                (
                    restaurant_id,
                    platform_id,
                    status,
                    json.dumps(credentials),
                    json.dumps(settings),
                    now_iso,
                    now_iso,
                ),
            )

    def update_integration(
        self,
        *,
        restaurant_id: str,
        platform_id: str,
        credentials: Dict[str, Any],
        status: Optional[str] = None,
    ) -> bool:
        """Replace credentials (and optionally status); False if no row matched."""
        now_iso = datetime.now(timezone.utc).isoformat()
        with self._connect() as conn:
            cursor = conn.execute(
                """
                UPDATE integrations
                SET credentials = ?,
                    status = COALESCE(?, status),
                    updated_at = ?
                WHERE restaurant_id = ? AND platform_id = ?
                """,
                (json.dumps(credentials), status, now_iso, restaurant_id, platform_id),
            )
        return cursor.rowcount > 0

    def list_integrations(self, *, platform_id: str) -> List[Dict[str, Any]]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM integrations
                WHERE platform_id = ? ORDER BY restaurant_id
                """,
                (platform_id,),
            ).fetchall()
        return [self._row_to_record(row) for row in rows]

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> Dict[str, Any]:
        return {
            "restaurant_id": row["restaurant_id"],
            "platform_id": row["platform_id"],
            "status": row["status"],
            "credentials": json.loads(row["credentials"]),
            "settings": json.loads(row["settings"]),
            "created_at": row["created_at"],
            "updated_at": row["updated_at"],
        }


__all__ = ["IntegrationStore"]
