"""Host-lifetime wiring of the core components."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from execassist.actions.audit import AuditLog
from execassist.actions.executor import ActionExecutor
from execassist.actions.store import ActionStore
from execassist.agents.builtin import register_builtin_agents
from execassist.agents.dispatcher import AgentDispatcher
from execassist.agents.registry import AgentRegistry
from execassist.config import Settings, load_settings
from execassist.db import Database
from execassist.flows.daily_focus import DailyFocusService
from execassist.intent.classifier import IntentClassifier
from execassist.intent.fallback import FallbackClassifier, LLMFallbackClassifier
from execassist.llm.openrouter import OpenRouterProvider
from execassist.session import SessionHandler
from execassist.tools.builtin import register_builtin_tools
from execassist.tools.registry import ToolRegistry
from execassist.tools.remote import RemoteToolClient

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class CoreRuntime:
    """Everything a host process needs, constructed once and passed around."""

    settings: Settings
    db: Database | None
    agents: AgentRegistry
    dispatcher: AgentDispatcher
    store: ActionStore
    audit: AuditLog
    tools: ToolRegistry
    executor: ActionExecutor
    classifier: IntentClassifier
    sessions: SessionHandler
    daily_focus: DailyFocusService


def _default_fallback(settings: Settings) -> FallbackClassifier | None:
    if settings.openrouter_api_key and settings.openrouter_model:
        return LLMFallbackClassifier(OpenRouterProvider(settings))
    return None


def build_runtime(
    settings: Settings | None = None, fallback: FallbackClassifier | None = None
) -> CoreRuntime:
    """Initialize storage, registries and services from settings."""

    settings = settings or load_settings()

    db: Database | None = None
    if settings.database_path is not None:
        settings.database_path.parent.mkdir(parents=True, exist_ok=True)
        db = Database(settings.database_path)
        db.initialize()

    agents = AgentRegistry()
    register_builtin_agents(agents)
    dispatcher = AgentDispatcher(agents, timeout_seconds=settings.agent_timeout_seconds)

    store = ActionStore(db)
    audit = AuditLog(db, window=settings.audit_window)

    tools = ToolRegistry(remote=RemoteToolClient(settings))
    register_builtin_tools(tools, store, settings)

    classifier = IntentClassifier(fallback=fallback or _default_fallback(settings))

    runtime = CoreRuntime(
        settings=settings,
        db=db,
        agents=agents,
        dispatcher=dispatcher,
        store=store,
        audit=audit,
        tools=tools,
        executor=ActionExecutor(store, audit, tools, settings),
        classifier=classifier,
        sessions=SessionHandler(db, classifier, store, history_window=settings.session_history_turns),
        daily_focus=DailyFocusService(dispatcher, store, tools),
    )
    LOGGER.info(
        "Core runtime ready (database=%s, agents=%d, tools=%d)",
        settings.database_path or "memory",
        len(agents.list()),
        len(tools.list()),
    )
    return runtime
