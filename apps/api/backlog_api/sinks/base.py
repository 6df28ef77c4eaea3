from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Protocol

from backlog_api.backlog.payload import MessagePayload


class FailureKind(str, enum.Enum):
  NOT_FOUND = "not_found"
  TRANSPORT = "transport"
  DISABLED = "disabled"


@dataclass(frozen=True)
class SinkResult:
  """Outcome of a single sink call. ``message_id`` is set on successful create."""

  ok: bool
  message_id: str | None = None
  failure: FailureKind | None = None
  detail: str = ""

  @classmethod
  def success(cls, message_id: str | None = None) -> "SinkResult":
    return cls(ok=True, message_id=message_id)

  @classmethod
  def failed(cls, failure: FailureKind, detail: str = "") -> "SinkResult":
    return cls(ok=False, failure=failure, detail=detail)

  @property
  def not_found(self) -> bool:
    return self.failure == FailureKind.NOT_FOUND


class ChannelSink(Protocol):
  enabled: bool

  async def send(self, channel_id: str, payload: MessagePayload) -> SinkResult: ...

  async def fetch(self, channel_id: str, message_id: str) -> SinkResult: ...

  async def edit(self, channel_id: str, message_id: str, payload: MessagePayload) -> SinkResult: ...

  async def delete(self, channel_id: str, message_id: str) -> SinkResult: ...


class WebhookSink(Protocol):
  enabled: bool

  async def create(self, payload: MessagePayload) -> SinkResult: ...

  async def edit(self, message_id: str, payload: MessagePayload) -> SinkResult: ...
