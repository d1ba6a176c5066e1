from datetime import datetime, timezone

import pytest

from execassist.db import Database
from execassist.models import ActionReceipt, AuditEntry, PlannedAction, SessionTurn


def test_database_initialization_and_actions(tmp_path):
    db = Database(tmp_path / "execassist.db")
    db.initialize()
    db.initialize()

    action = PlannedAction(id="a1", type="task.create", requires_approval=True, payload={"title": "t"})
    db.upsert_action(action)
    action.status = "EXECUTED"
    action.receipt = ActionReceipt(
        status="EXECUTED", message="Task created", external_ref="task-1", executed_at=datetime.now(timezone.utc)
    )
    db.upsert_action(action)

    loaded = db.load_actions()
    assert len(loaded) == 1
    assert loaded[0].status == "EXECUTED"
    assert loaded[0].payload == {"title": "t"}
    assert loaded[0].receipt.external_ref == "task-1"
    assert loaded[0].receipt.executed_at == action.receipt.executed_at

    db.clear_actions()
    assert db.load_actions() == []


def test_unsupported_schema_version_is_rejected(tmp_path):
    db = Database(tmp_path / "execassist.db")
    db.initialize()
    with db._connect() as conn:
        conn.execute("UPDATE schema_version SET version = 99")

    with pytest.raises(RuntimeError):
        db.initialize()


def test_audit_is_bounded_and_oldest_first(tmp_path):
    db = Database(tmp_path / "execassist.db")
    db.initialize()
    for index in range(4):
        db.append_audit(
            AuditEntry(
                action_id=f"a{index}",
                transition="PLANNED",
                message="m",
                timestamp=datetime.now(timezone.utc),
            )
        )

    entries = db.load_audit(limit=2)
    assert [e.action_id for e in entries] == ["a2", "a3"]
    assert entries[0].timestamp.tzinfo is not None

    db.clear_audit()
    assert db.load_audit(limit=10) == []


def test_recent_turns_are_per_session_and_bounded(tmp_path):
    db = Database(tmp_path / "execassist.db")
    db.initialize()
    for index in range(3):
        db.add_turn("s1", SessionTurn(text=f"turn {index}", intent="unknown", entities={"n": index}))
    db.add_turn("s2", SessionTurn(text="other"))

    turns = db.get_recent_turns("s1", limit=2)
    assert [t.text for t in turns] == ["turn 1", "turn 2"]
    assert turns[-1].entities == {"n": 2}
    assert db.get_recent_turns("s2", limit=5)[0].entities is None

    db.clear_turns("s1")
    assert db.get_recent_turns("s1", limit=5) == []
    assert db.get_recent_turns("s2", limit=5) != []
