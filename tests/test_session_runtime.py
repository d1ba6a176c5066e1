import pytest

from execassist.actions.executor import ExecutionContext
from execassist.actions.store import ActionStore
from execassist.config import Settings
from execassist.db import Database
from execassist.intent.classifier import IntentClassifier
from execassist.intent.fallback import NullFallbackClassifier
from execassist.runtime import build_runtime
from execassist.session import SessionHandler


@pytest.mark.asyncio
async def test_session_plans_actions_for_mapped_intents():
    store = ActionStore()
    handler = SessionHandler(None, IntentClassifier(), store)

    reply = await handler.handle_utterance("s1", "Block 30 minutes for focus then remind me to call Sam")

    assert [step.intent for step in reply.plan.steps] == ["scheduler.block", "support.followUp"]
    actions = [store.get(action_id) for action_id in reply.action_ids]
    assert [a.type for a in actions] == ["calendar.propose_block", "task.create"]
    assert all(a.requires_approval for a in actions)
    assert actions[0].payload["minutes"] == 30


@pytest.mark.asyncio
async def test_session_history_feeds_referent_resolution(tmp_path):
    db = Database(tmp_path / "execassist.db")
    db.initialize()
    handler = SessionHandler(db, IntentClassifier(), ActionStore(db), history_window=5)

    await handler.handle_utterance("s1", "Move the meeting to 3pm for the strategy meeting")
    reply = await handler.handle_utterance("s1", "Can you confirm that meeting?")

    step = reply.plan.steps[0]
    assert step.intent == "scheduler.confirm"
    assert step.params["title"] == "strategy"
    assert step.params["time"] == "3 pm"
    assert reply.action_ids == []
    turns = db.get_recent_turns("s1", limit=10)
    assert [t.intent for t in turns] == ["scheduler.reschedule", "scheduler.confirm"]


@pytest.mark.asyncio
async def test_sessions_are_isolated():
    handler = SessionHandler(None, IntentClassifier(), ActionStore())

    await handler.handle_utterance("s1", "Move the meeting to 3pm")
    reply = await handler.handle_utterance("s2", "Can you confirm that meeting?")

    assert "time" not in reply.plan.steps[0].params


@pytest.mark.asyncio
async def test_build_runtime_wires_components(tmp_path):
    settings = Settings(_env_file=None, database_path=tmp_path / "data" / "execassist.db", audit_window=7)

    runtime = build_runtime(settings, fallback=NullFallbackClassifier())

    assert runtime.db is not None
    assert (tmp_path / "data" / "execassist.db").exists()
    assert len(runtime.agents.list()) == 6
    assert set(runtime.tools.list()) == {"actions.list_pending", "n8n.actionpack_webhook"}

    response = await runtime.daily_focus.run({"user_id": "u1"})
    assert response.success is True

    pending = await runtime.tools.run_by_name("actions.list_pending")
    assert len(pending.output["actions"]) == 2

    action = runtime.store.get(response.output.planned_action_ids[0])
    receipt = await runtime.executor.execute_action(action, ExecutionContext(mode="PLAN"))
    assert receipt.status == "PLANNED"
    assert runtime.audit.list_audit()[-1].transition == "PLANNED"


def test_build_runtime_without_database_is_in_memory():
    runtime = build_runtime(Settings(_env_file=None))

    assert runtime.db is None
    assert runtime.store.list_pending_actions() == []
    assert runtime.dispatcher.registry is runtime.agents


def test_separate_runtimes_do_not_share_state():
    first = build_runtime(Settings(_env_file=None))
    second = build_runtime(Settings(_env_file=None))

    first.store.save_planned_action("task.create", requires_approval=True)

    assert second.store.list_pending_actions() == []
