"""SQLite storage for pods and their assistant messages.

Provides:
- Schema initialization
- PodRepository: pod lookup and session id updates (engine ports)
- MessageRepository: persisted assistant message snapshots
"""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime
from pathlib import Path

from podstream.models import PodLookup, PodSnapshot

DB_PATH = Path.cwd() / "podstream.db"


class PodRepository:
    """Repository for pods table."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def _row_to_lookup(self, row: sqlite3.Row) -> PodLookup:
        server_ids = json.loads(row["mcp_server_ids"] or "[]")
        pod = PodSnapshot(
            id=row["id"],
            workspace_path=row["workspace_path"],
            model=row["model"],
            repository_id=row["repository_id"],
            # An empty string means the session was cleared.
            claude_session_id=row["claude_session_id"] or None,
            output_style_id=row["output_style_id"],
            command_id=row["command_id"],
            mcp_server_ids=tuple(server_ids),
        )
        return PodLookup(canvas_id=row["canvas_id"], pod=pod)

    def get_by_id_global(self, pod_id: str) -> PodLookup | None:
        row = self.conn.execute(
            "SELECT * FROM pods WHERE id = ?", (pod_id,)
        ).fetchone()
        return self._row_to_lookup(row) if row else None

    def list_by_canvas(self, canvas_id: str) -> list[PodLookup]:
        rows = self.conn.execute(
            "SELECT * FROM pods WHERE canvas_id = ? ORDER BY created_at", (canvas_id,)
        ).fetchall()
        return [self._row_to_lookup(row) for row in rows]

    def upsert(self, canvas_id: str, pod: PodSnapshot) -> None:
        now = datetime.now().isoformat()
        self.conn.execute(
            """INSERT INTO pods
               (id, canvas_id, workspace_path, model, repository_id,
                claude_session_id, output_style_id, command_id, mcp_server_ids,
                created_at, updated_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
               ON CONFLICT(id) DO UPDATE SET
                canvas_id = excluded.canvas_id,
                workspace_path = excluded.workspace_path,
                model = excluded.model,
                repository_id = excluded.repository_id,
                claude_session_id = excluded.claude_session_id,
                output_style_id = excluded.output_style_id,
                command_id = excluded.command_id,
                mcp_server_ids = excluded.mcp_server_ids,
                updated_at = excluded.updated_at""",
            (
                pod.id,
                canvas_id,
                pod.workspace_path,
                pod.model,
                pod.repository_id,
                pod.claude_session_id,
                pod.output_style_id,
                pod.command_id,
                json.dumps(list(pod.mcp_server_ids)),
                now,
                now,
            ),
        )
        self.conn.commit()

    def set_claude_session_id(self, canvas_id: str, pod_id: str, session_id: str) -> None:
        self.conn.execute(
            "UPDATE pods SET claude_session_id = ?, updated_at = ? WHERE id = ? AND canvas_id = ?",
            (session_id, datetime.now().isoformat(), pod_id, canvas_id),
        )
        self.conn.commit()


class MessageRepository:
    """Repository for pod_messages table."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def upsert_message(self, canvas_id: str, pod_id: str, message: dict) -> None:
        self.conn.execute(
            """INSERT INTO pod_messages (id, canvas_id, pod_id, role, payload, updated_at)
               VALUES (?, ?, ?, ?, ?, ?)
               ON CONFLICT(id) DO UPDATE SET
                payload = excluded.payload,
                updated_at = excluded.updated_at""",
            (
                message["id"],
                canvas_id,
                pod_id,
                message.get("role", "assistant"),
                json.dumps(message, ensure_ascii=False),
                datetime.now().isoformat(),
            ),
        )
        self.conn.commit()

    def list_for_pod(self, pod_id: str) -> list[dict]:
        rows = self.conn.execute(
            "SELECT payload FROM pod_messages WHERE pod_id = ? ORDER BY rowid",
            (pod_id,),
        ).fetchall()
        return [json.loads(row["payload"]) for row in rows]


def init_db(db_path: Path | str = DB_PATH) -> sqlite3.Connection:
    """Initialize SQLite database with schema."""
    conn = sqlite3.connect(db_path, check_same_thread=False)
    conn.row_factory = sqlite3.Row

    try:
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        conn.execute("PRAGMA busy_timeout=5000")
    except sqlite3.OperationalError:
        # Best-effort; some environments may reject specific pragmas.
        pass

    conn.execute("""
        CREATE TABLE IF NOT EXISTS pods (
            id TEXT PRIMARY KEY,
            canvas_id TEXT NOT NULL,
            workspace_path TEXT NOT NULL,
            model TEXT NOT NULL,
            repository_id TEXT,
            claude_session_id TEXT,
            output_style_id TEXT,
            command_id TEXT,
            mcp_server_ids TEXT DEFAULT '[]',
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """)

    conn.execute("""
        CREATE TABLE IF NOT EXISTS pod_messages (
            id TEXT PRIMARY KEY,
            canvas_id TEXT NOT NULL,
            pod_id TEXT NOT NULL,
            role TEXT NOT NULL,
            payload TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """)
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_pod_messages_pod ON pod_messages(pod_id)"
    )

    conn.commit()
    return conn
