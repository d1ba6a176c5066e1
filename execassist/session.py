"""Host-facing utterance handling over persisted session history."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from execassist.actions.store import ActionStore
from execassist.db import Database
from execassist.intent.classifier import IntentClassifier
from execassist.intent.planner import create_plan
from execassist.models import PlanningResult, SessionTurn

LOGGER = logging.getLogger(__name__)

# Intents whose steps become planned actions. All of them need approval.
INTENT_ACTION_TYPES: dict[str, str] = {
    "scheduler.block": "calendar.propose_block",
    "support.followUp": "task.create",
}


@dataclass(slots=True)
class SessionReply:
    plan: PlanningResult
    action_ids: list[str] = field(default_factory=list)


class SessionHandler:
    """Plans utterances against the session's recent turns.

    Turns go to the database when one is configured, otherwise they are kept
    in memory for the life of the handler.
    """

    def __init__(
        self,
        db: Database | None,
        classifier: IntentClassifier,
        store: ActionStore,
        history_window: int = 10,
    ) -> None:
        self._db = db
        self._classifier = classifier
        self._store = store
        self._history_window = history_window
        self._turns: dict[str, list[SessionTurn]] = {}

    async def handle_utterance(self, session_id: str, text: str) -> SessionReply:
        history = self._recent_turns(session_id)
        plan = await create_plan(text, history, classifier=self._classifier)

        first = plan.steps[0] if plan.steps else None
        self._add_turn(
            session_id,
            SessionTurn(
                text=text,
                intent=first.intent if first else None,
                entities=dict(first.params) if first else None,
            ),
        )

        action_ids: list[str] = []
        for step in plan.steps:
            action_type = INTENT_ACTION_TYPES.get(step.intent)
            if action_type is None:
                continue
            action = self._store.save_planned_action(
                action_type,
                requires_approval=True,
                payload={**step.params, "summary": step.summary, "session_id": session_id},
            )
            action_ids.append(action.id)

        LOGGER.info(
            "Session %s: %d step(s), %d planned action(s)", session_id, len(plan.steps), len(action_ids)
        )
        return SessionReply(plan=plan, action_ids=action_ids)

    def _recent_turns(self, session_id: str) -> list[SessionTurn]:
        if self._db is not None:
            return self._db.get_recent_turns(session_id, self._history_window)
        return list(self._turns.get(session_id, [])[-self._history_window :])

    def _add_turn(self, session_id: str, turn: SessionTurn) -> None:
        if self._db is not None:
            self._db.add_turn(session_id, turn)
        else:
            self._turns.setdefault(session_id, []).append(turn)
