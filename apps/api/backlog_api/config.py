from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
  model_config = SettingsConfigDict(env_file=".env", extra="ignore")

  database_url: str = "sqlite+aiosqlite:///data/backlog-sync.db"
  app_version: str = "v2026-10-19"
  build_sha: str = "dev"
  log_level: str = "INFO"

  # Optional bearer token guarding the backlog routes.
  api_token: str | None = None

  discord_bot_token: str | None = None
  discord_api_base_url: str = "https://discord.com/api/v10"
  backlog_channel_id: str | None = None
  backlog_webhook_url: str | None = None
  sink_timeout_seconds: float = 15.0

  refinement_provider: str = "disabled"  # disabled | openai
  openai_api_key: str | None = None
  openai_base_url: str = "https://api.openai.com/v1"
  openai_model: str = "gpt-4o-mini"
  refinement_timeout_seconds: float = 30.0

  def channel_sink_enabled(self) -> bool:
    return bool((self.discord_bot_token or "").strip())

  def webhook_sink_enabled(self) -> bool:
    return bool((self.backlog_webhook_url or "").strip())


settings = Settings()
