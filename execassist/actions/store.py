"""Planned-action store with optional SQLite write-through."""

from __future__ import annotations

import logging
import uuid
from typing import Any

from execassist.db import Database
from execassist.models import ActionReceipt, ActionStatus, Level, PlannedAction

LOGGER = logging.getLogger(__name__)


class ActionStore:
    """Keeps planned actions by id.

    The in-memory map is authoritative; when a database is given every write
    is mirrored to it and existing rows are loaded on construction.
    """

    def __init__(self, db: Database | None = None) -> None:
        self._db = db
        self._actions: dict[str, PlannedAction] = {}
        if db is not None:
            for action in db.load_actions():
                self._actions[action.id] = action
            LOGGER.info("Loaded %d planned actions from database", len(self._actions))

    def save_planned_action(
        self,
        type: str,
        requires_approval: bool,
        payload: dict[str, Any] | None = None,
        *,
        id: str | None = None,
        status: ActionStatus = "PLANNED",
        risk: Level = "medium",
        priority: Level = "medium",
        idempotency_key: str | None = None,
        notes: str | None = None,
    ) -> PlannedAction:
        action = PlannedAction(
            id=id or str(uuid.uuid4()),
            type=type,
            requires_approval=requires_approval,
            payload=dict(payload or {}),
            risk=risk,
            priority=priority,
            idempotency_key=idempotency_key,
            status=status,
            notes=notes,
        )
        self._actions[action.id] = action
        self._persist(action)
        return action

    def get(self, action_id: str) -> PlannedAction | None:
        return self._actions.get(action_id)

    def approve_action(self, action_id: str, approved_by: str, notes: str | None = None) -> PlannedAction | None:
        action = self._actions.get(action_id)
        if action is None:
            return None
        action.status = "APPROVED"
        action.notes = notes or f"Approved by {approved_by}"
        self._persist(action)
        return action

    def record_receipt(self, action_id: str, receipt: ActionReceipt) -> None:
        action = self._actions.get(action_id)
        if action is None:
            LOGGER.warning("Receipt for unknown action %s dropped", action_id)
            return
        action.receipt = receipt
        action.status = receipt.status
        self._persist(action)

    def find_by_idempotency(self, key: str | None) -> PlannedAction | None:
        if not key:
            return None
        return next((a for a in self._actions.values() if a.idempotency_key == key), None)

    def find_receipt(self, key: str | None) -> tuple[PlannedAction, ActionReceipt] | None:
        """Return the first action under ``key`` that already holds a receipt."""

        if not key:
            return None
        for action in self._actions.values():
            if action.idempotency_key == key and action.receipt is not None:
                return action, action.receipt
        return None

    def list_pending_actions(self) -> list[PlannedAction]:
        return [a for a in self._actions.values() if a.status in ("PLANNED", "APPROVED")]

    def reset(self) -> None:
        """Forget every action. Test helper."""

        self._actions.clear()
        if self._db is not None:
            self._db.clear_actions()

    def _persist(self, action: PlannedAction) -> None:
        if self._db is not None:
            self._db.upsert_action(action)
