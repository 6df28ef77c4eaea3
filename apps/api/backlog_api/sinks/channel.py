from __future__ import annotations

from dataclasses import dataclass

import httpx

from backlog_api.backlog.payload import MessagePayload
from backlog_api.config import Settings
from backlog_api.sinks.base import FailureKind, SinkResult
from backlog_api.sinks.http import USER_AGENT, guarded, message_id_of, normalize_base_url, request_json


@dataclass
class DiscordChannelSink:
  """Bot-authenticated channel messages: send, fetch, edit and delete."""

  token: str | None
  base_url: str = "https://discord.com/api/v10"
  timeout: float = 15.0
  transport: httpx.AsyncBaseTransport | None = None

  @property
  def enabled(self) -> bool:
    return bool((self.token or "").strip())

  def httpx_client(self) -> httpx.AsyncClient:
    headers = {"Authorization": f"Bot {self.token}", "User-Agent": USER_AGENT, "Accept": "application/json"}
    return httpx.AsyncClient(
      base_url=normalize_base_url(self.base_url), headers=headers, timeout=self.timeout, transport=self.transport
    )

  async def send(self, channel_id: str, payload: MessagePayload) -> SinkResult:
    if not self.enabled:
      return SinkResult.failed(FailureKind.DISABLED)

    async def _call() -> SinkResult:
      async with self.httpx_client() as client:
        data = await request_json(client, "POST", f"/channels/{channel_id}/messages", json=payload.to_dict())
      message_id = message_id_of(data)
      if not message_id:
        return SinkResult.failed(FailureKind.TRANSPORT, "send returned no message id")
      return SinkResult.success(message_id)

    return await guarded("channel", "send", _call)

  async def fetch(self, channel_id: str, message_id: str) -> SinkResult:
    if not self.enabled:
      return SinkResult.failed(FailureKind.DISABLED)

    async def _call() -> SinkResult:
      async with self.httpx_client() as client:
        data = await request_json(client, "GET", f"/channels/{channel_id}/messages/{message_id}")
      return SinkResult.success(message_id_of(data) or message_id)

    return await guarded("channel", "fetch", _call)

  async def edit(self, channel_id: str, message_id: str, payload: MessagePayload) -> SinkResult:
    if not self.enabled:
      return SinkResult.failed(FailureKind.DISABLED)

    async def _call() -> SinkResult:
      async with self.httpx_client() as client:
        await request_json(client, "PATCH", f"/channels/{channel_id}/messages/{message_id}", json=payload.to_dict())
      return SinkResult.success(message_id)

    return await guarded("channel", "edit", _call)

  async def delete(self, channel_id: str, message_id: str) -> SinkResult:
    if not self.enabled:
      return SinkResult.failed(FailureKind.DISABLED)

    async def _call() -> SinkResult:
      async with self.httpx_client() as client:
        await request_json(client, "DELETE", f"/channels/{channel_id}/messages/{message_id}")
      return SinkResult.success(message_id)

    return await guarded("channel", "delete", _call)


def channel_sink_from_settings(s: Settings) -> DiscordChannelSink:
  return DiscordChannelSink(token=s.discord_bot_token, base_url=s.discord_api_base_url, timeout=s.sink_timeout_seconds)
