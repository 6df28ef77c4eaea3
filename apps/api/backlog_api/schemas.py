from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class AuthorIn(BaseModel):
  id: str = Field(min_length=1, max_length=64)
  label: str = Field(min_length=1, max_length=120)


class ActivitySubmitIn(BaseModel):
  author: AuthorIn
  title: str = Field(min_length=1, max_length=100)
  description: str = Field(min_length=1, max_length=1024)
  steps: str = Field(default="", max_length=1024)
  expectedVsActual: str = Field(default="", max_length=1024)
  context: str = Field(default="", max_length=256)
  channelId: str | None = Field(default=None, max_length=64)


class ActivityOut(BaseModel):
  id: str
  workspaceId: str
  channelId: str | None = None
  messageId: str | None = None
  title: str
  description: str
  acceptanceCriteria: list[str] = []
  steps: str
  expectedVsActual: str
  context: str = ""
  status: Literal["open", "in_progress", "completed"]
  authorId: str
  authorLabel: str
  createdAt: datetime


class SinkOutcomeOut(BaseModel):
  sink: Literal["channel", "webhook"]
  action: Literal["created", "edited", "recreated", "skipped", "failed"]
  messageId: str | None = None
  failure: Literal["not_found", "transport", "disabled"] | None = None
  detail: str = ""


class BoardOut(BaseModel):
  workspaceId: str
  channelId: str | None = None
  channelMessageId: str | None = None
  webhookMessageId: str | None = None


class BoardSyncOut(BaseModel):
  board: BoardOut
  channel: SinkOutcomeOut
  webhook: SinkOutcomeOut


class ActivitySubmitOut(BaseModel):
  activity: ActivityOut
  refined: bool
  channel: SinkOutcomeOut
  webhook: SinkOutcomeOut
  board: BoardSyncOut


class StatusChangeIn(BaseModel):
  # Plain string so unknown values reach the state machine and come back as a 400.
  status: str = Field(min_length=1, max_length=32)


class StatusChangeOut(BaseModel):
  activity: ActivityOut
  message: SinkOutcomeOut
  board: BoardSyncOut


class BoardRebuildIn(BaseModel):
  channelId: str | None = Field(default=None, max_length=64)


class BoardSetupIn(BaseModel):
  channelId: str = Field(min_length=1, max_length=64)


class ComponentInteractionIn(BaseModel):
  workspaceId: str = Field(min_length=1, max_length=64)
  customId: str = Field(min_length=1, max_length=100)
