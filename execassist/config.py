"""Application configuration."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

FLAG_ACTION_EXECUTION = "ENABLE_ACTION_EXECUTION"
FLAG_CALENDAR_WRITES = "ENABLE_CALENDAR_WRITES"
FLAG_GMAIL_DRAFTS = "ENABLE_GMAIL_DRAFTS"
FLAG_GMAIL_SEND = "ENABLE_GMAIL_SEND"
FLAG_SHEETS_WRITES = "ENABLE_SHEETS_WRITES"


class Settings(BaseSettings):
    """Environment-driven settings validated at startup."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore", populate_by_name=True
    )

    # Execution gates. Everything side-effecting is off unless switched on.
    enable_action_execution: bool = Field(default=False, alias=FLAG_ACTION_EXECUTION)
    enable_calendar_writes: bool = Field(default=False, alias=FLAG_CALENDAR_WRITES)
    enable_gmail_drafts: bool = Field(default=False, alias=FLAG_GMAIL_DRAFTS)
    enable_gmail_send: bool = Field(default=False, alias=FLAG_GMAIL_SEND)
    enable_sheets_writes: bool = Field(default=False, alias=FLAG_SHEETS_WRITES)

    agent_timeout_seconds: float = Field(default=30.0, alias="AGENT_TIMEOUT_SECONDS")
    audit_window: int = Field(default=50, alias="AUDIT_WINDOW")
    session_history_turns: int = Field(default=10, alias="SESSION_HISTORY_TURNS")
    database_path: Path | None = Field(default=None, alias="DATABASE_PATH")

    enable_remote_tools: bool = Field(default=False, alias="ENABLE_REMOTE_TOOLS")
    remote_tools_url: str = Field(default="", alias="REMOTE_TOOLS_URL")
    remote_tools_timeout_seconds: float = Field(default=15.0, alias="REMOTE_TOOLS_TIMEOUT_SECONDS")
    remote_tools_shared_secret: str = Field(default="", alias="REMOTE_TOOLS_SHARED_SECRET")

    enable_actionpack_webhook: bool = Field(default=False, alias="ENABLE_ACTIONPACK_WEBHOOK")
    actionpack_webhook_url: str = Field(default="", alias="ACTIONPACK_WEBHOOK_URL")
    actionpack_webhook_secret: str = Field(default="", alias="ACTIONPACK_WEBHOOK_SECRET")
    actionpack_webhook_timeout_seconds: float = Field(
        default=8.0, alias="ACTIONPACK_WEBHOOK_TIMEOUT_SECONDS"
    )

    # Only needed when the LLM fallback classifier is wired in.
    openrouter_api_key: str = Field(default="", alias="OPENROUTER_API_KEY")
    openrouter_model: str = Field(default="", alias="OPENROUTER_MODEL")
    openrouter_base_url: str = Field(
        default="https://openrouter.ai/api/v1",
        alias="OPENROUTER_BASE_URL",
    )
    request_timeout_seconds: float = Field(default=30.0, alias="REQUEST_TIMEOUT_SECONDS")

    def feature_flags(self) -> dict[str, bool]:
        """Return execution flags keyed by their environment variable names."""

        return {
            FLAG_ACTION_EXECUTION: self.enable_action_execution,
            FLAG_CALENDAR_WRITES: self.enable_calendar_writes,
            FLAG_GMAIL_DRAFTS: self.enable_gmail_drafts,
            FLAG_GMAIL_SEND: self.enable_gmail_send,
            FLAG_SHEETS_WRITES: self.enable_sheets_writes,
        }


def load_settings() -> Settings:
    """Load and validate settings."""

    return Settings()
