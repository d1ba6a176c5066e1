"""Append-only audit trail of action transitions."""

from __future__ import annotations

from datetime import datetime, timezone

from execassist.db import Database
from execassist.models import AuditEntry


class AuditLog:
    def __init__(self, db: Database | None = None, window: int = 50) -> None:
        self._db = db
        self._window = window
        self._entries: list[AuditEntry] = []

    def record_audit(
        self,
        action_id: str,
        transition: str,
        message: str,
        external_ref: str | None = None,
    ) -> AuditEntry:
        entry = AuditEntry(
            action_id=action_id,
            transition=transition,
            message=message,
            external_ref=external_ref,
            timestamp=datetime.now(timezone.utc),
        )
        if self._db is not None:
            self._db.append_audit(entry)
        else:
            self._entries.append(entry)
        return entry

    def list_audit(self, limit: int | None = None) -> list[AuditEntry]:
        """Most recent ``limit`` entries (default: the configured window), oldest first."""

        count = limit or self._window
        if self._db is not None:
            return self._db.load_audit(count)
        return list(self._entries[-count:])

    def reset(self) -> None:
        self._entries.clear()
        if self._db is not None:
            self._db.clear_audit()
