from __future__ import annotations

import json
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class StateStore:
    """SQLite audit trail for calendar actions and check-in runs.

    Calendar state itself lives in memory; only history is written here.
    """

    def __init__(self, db_path: str) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()
        self._init_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_schema(self) -> None:
        schema_sql = """
        CREATE TABLE IF NOT EXISTS checkin_runs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            started_at TEXT NOT NULL,
            status TEXT NOT NULL,
            message TEXT,
            duration_ms INTEGER NOT NULL,
            suggestions INTEGER NOT NULL
        );

        CREATE TABLE IF NOT EXISTS audit_events (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            created_at TEXT NOT NULL,
            event_id TEXT NOT NULL,
            action TEXT NOT NULL,
            details_json TEXT NOT NULL
        );
        """
        with self._lock:
            with self._connect() as conn:
                conn.executescript(schema_sql)

    def start_checkin_run(self, *, message: str = "running") -> int:
        with self._lock:
            with self._connect() as conn:
                cursor = conn.execute(
                    """
                    INSERT INTO checkin_runs(started_at, status, message, duration_ms, suggestions)
                    VALUES (?, 'running', ?, 0, 0)
                    """,
                    (_utc_now(), message),
                )
                conn.commit()
                return int(cursor.lastrowid)

    def finish_checkin_run(
        self,
        *,
        run_id: int,
        status: str,
        message: str,
        duration_ms: int,
        suggestions: int = 0,
    ) -> None:
        with self._lock:
            with self._connect() as conn:
                conn.execute(
                    """
                    UPDATE checkin_runs
                    SET status = ?, message = ?, duration_ms = ?, suggestions = ?
                    WHERE id = ?
                    """,
                    (str(status), str(message), int(duration_ms), int(suggestions), int(run_id)),
                )
                conn.commit()

    def recent_checkin_runs(self, limit: int = 20) -> list[dict[str, Any]]:
        with self._lock:
            with self._connect() as conn:
                rows = conn.execute(
                    """
                    SELECT id, started_at, status, message, duration_ms, suggestions
                    FROM checkin_runs
                    ORDER BY id DESC
                    LIMIT ?
                    """,
                    (max(1, limit),),
                ).fetchall()
        return [dict(row) for row in rows]

    def record_audit_event(self, *, event_id: str, action: str, details: dict[str, Any]) -> None:
        with self._lock:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO audit_events(created_at, event_id, action, details_json)
                    VALUES (?, ?, ?, ?)
                    """,
                    (_utc_now(), event_id, action, json.dumps(details, ensure_ascii=False, default=str)),
                )
                conn.commit()

    def recent_audit_events(self, limit: int = 100, action: str | None = None) -> list[dict[str, Any]]:
        with self._lock:
            with self._connect() as conn:
                if action is None:
                    rows = conn.execute(
                        """
                        SELECT id, created_at, event_id, action, details_json
                        FROM audit_events
                        ORDER BY id DESC
                        LIMIT ?
                        """,
                        (max(1, limit),),
                    ).fetchall()
                else:
                    rows = conn.execute(
                        """
                        SELECT id, created_at, event_id, action, details_json
                        FROM audit_events
                        WHERE action = ?
                        ORDER BY id DESC
                        LIMIT ?
                        """,
                        (str(action), max(1, limit)),
                    ).fetchall()
        output: list[dict[str, Any]] = []
        for row in rows:
            item = dict(row)
            item["details"] = json.loads(item.pop("details_json") or "{}")
            output.append(item)
        return output
