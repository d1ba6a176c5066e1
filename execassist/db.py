"""SQLite persistence layer."""

from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator

from execassist.models import ActionReceipt, AuditEntry, PlannedAction, SessionTurn

SCHEMA_VERSION = 1


class Database:
    """Small SQLite wrapper with explicit schema management."""

    def __init__(self, path: Path) -> None:
        self._path = path

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self._path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def initialize(self) -> None:
        """Create or migrate schema."""

        with self._connect() as conn:
            conn.execute("CREATE TABLE IF NOT EXISTS schema_version (version INTEGER NOT NULL)")
            row = conn.execute("SELECT version FROM schema_version LIMIT 1").fetchone()
            if row is None:
                self._create_schema(conn)
                conn.execute("INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
            elif row["version"] != SCHEMA_VERSION:
                raise RuntimeError(
                    f"Unsupported schema version {row['version']} (expected {SCHEMA_VERSION})"
                )

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS planned_actions (
                id TEXT PRIMARY KEY,
                idempotency_key TEXT,
                status TEXT NOT NULL,
                action_json TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS audit_log (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                action_id TEXT NOT NULL,
                transition TEXT NOT NULL,
                message TEXT NOT NULL,
                external_ref TEXT,
                created_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS session_turns (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                session_id TEXT NOT NULL,
                text TEXT NOT NULL,
                intent TEXT,
                entities_json TEXT,
                created_at TEXT NOT NULL
            );
            """
        )

    def upsert_action(self, action: PlannedAction) -> None:
        now = _utc_now_iso()
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO planned_actions(id, idempotency_key, status, action_json, created_at, updated_at)
                VALUES(?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    idempotency_key=excluded.idempotency_key,
                    status=excluded.status,
                    action_json=excluded.action_json,
                    updated_at=excluded.updated_at
                """,
                (action.id, action.idempotency_key, action.status, _action_to_json(action), now, now),
            )

    def load_actions(self) -> list[PlannedAction]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT action_json FROM planned_actions ORDER BY created_at ASC, rowid ASC"
            ).fetchall()
        return [_action_from_json(row["action_json"]) for row in rows]

    def append_audit(self, entry: AuditEntry) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO audit_log(action_id, transition, message, external_ref, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    entry.action_id,
                    entry.transition,
                    entry.message,
                    entry.external_ref,
                    entry.timestamp.astimezone(timezone.utc).isoformat(),
                ),
            )

    def load_audit(self, limit: int) -> list[AuditEntry]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT action_id, transition, message, external_ref, created_at
                FROM audit_log
                ORDER BY id DESC
                LIMIT ?
                """,
                (limit,),
            ).fetchall()
        return [
            AuditEntry(
                action_id=row["action_id"],
                transition=row["transition"],
                message=row["message"],
                external_ref=row["external_ref"],
                timestamp=datetime.fromisoformat(row["created_at"]),
            )
            for row in reversed(rows)
        ]

    def clear_audit(self) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM audit_log")

    def clear_actions(self) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM planned_actions")

    def add_turn(self, session_id: str, turn: SessionTurn) -> None:
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO session_turns(session_id, text, intent, entities_json, created_at) VALUES (?, ?, ?, ?, ?)",
                (
                    session_id,
                    turn.text,
                    turn.intent,
                    json.dumps(turn.entities) if turn.entities is not None else None,
                    _utc_now_iso(),
                ),
            )

    def get_recent_turns(self, session_id: str, limit: int) -> list[SessionTurn]:
        """Return up to ``limit`` turns for a session, most recent last."""

        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT text, intent, entities_json
                FROM session_turns
                WHERE session_id = ?
                ORDER BY id DESC
                LIMIT ?
                """,
                (session_id, limit),
            ).fetchall()
        return [
            SessionTurn(
                text=row["text"],
                intent=row["intent"],
                entities=json.loads(row["entities_json"]) if row["entities_json"] else None,
            )
            for row in reversed(rows)
        ]

    def clear_turns(self, session_id: str) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM session_turns WHERE session_id = ?", (session_id,))


def _action_to_json(action: PlannedAction) -> str:
    data = asdict(action)
    receipt = data.get("receipt")
    if receipt and receipt.get("executed_at") is not None:
        receipt["executed_at"] = receipt["executed_at"].isoformat()
    return json.dumps(data)


def _action_from_json(raw: str) -> PlannedAction:
    data: dict[str, Any] = json.loads(raw)
    receipt = data.pop("receipt", None)
    if receipt:
        executed_at = receipt.get("executed_at")
        receipt["executed_at"] = datetime.fromisoformat(executed_at) if executed_at else None
        data["receipt"] = ActionReceipt(**receipt)
    return PlannedAction(**data)


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
