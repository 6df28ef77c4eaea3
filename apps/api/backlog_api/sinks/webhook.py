from __future__ import annotations

from dataclasses import dataclass

import httpx

from backlog_api.backlog.payload import MessagePayload
from backlog_api.config import Settings
from backlog_api.sinks.base import FailureKind, SinkResult
from backlog_api.sinks.http import USER_AGENT, guarded, message_id_of, request_json


@dataclass
class DiscordWebhookSink:
  """Incoming-webhook messages. Disabled entirely (no calls) without a URL."""

  url: str | None
  timeout: float = 15.0
  transport: httpx.AsyncBaseTransport | None = None

  @property
  def enabled(self) -> bool:
    return bool((self.url or "").strip())

  def httpx_client(self) -> httpx.AsyncClient:
    headers = {"User-Agent": USER_AGENT, "Accept": "application/json"}
    return httpx.AsyncClient(headers=headers, timeout=self.timeout, transport=self.transport)

  def _base(self) -> str:
    return (self.url or "").strip().rstrip("/")

  async def create(self, payload: MessagePayload) -> SinkResult:
    if not self.enabled:
      return SinkResult.failed(FailureKind.DISABLED)

    async def _call() -> SinkResult:
      # wait=true makes the webhook answer with the created message
      async with self.httpx_client() as client:
        data = await request_json(
          client, "POST", self._base(), params={"wait": "true"}, json=payload.to_dict(with_controls=False)
        )
      message_id = message_id_of(data)
      if not message_id:
        return SinkResult.failed(FailureKind.TRANSPORT, "webhook returned no message id")
      return SinkResult.success(message_id)

    return await guarded("webhook", "create", _call)

  async def edit(self, message_id: str, payload: MessagePayload) -> SinkResult:
    if not self.enabled:
      return SinkResult.failed(FailureKind.DISABLED)
    if not message_id:
      return SinkResult.failed(FailureKind.NOT_FOUND, "no message id")

    async def _call() -> SinkResult:
      async with self.httpx_client() as client:
        await request_json(
          client, "PATCH", f"{self._base()}/messages/{message_id}", json=payload.to_dict(with_controls=False)
        )
      return SinkResult.success(message_id)

    return await guarded("webhook", "edit", _call)


def webhook_sink_from_settings(s: Settings) -> DiscordWebhookSink:
  return DiscordWebhookSink(url=s.backlog_webhook_url, timeout=s.sink_timeout_seconds)
