from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from pydantic import BaseModel

from backlog_api.errors import InvalidStatus


class ActivityStatus(str, enum.Enum):
  OPEN = "open"
  IN_PROGRESS = "in_progress"
  COMPLETED = "completed"


def parse_status(value: Any) -> ActivityStatus:
  if isinstance(value, ActivityStatus):
    return value
  try:
    return ActivityStatus(str(value or "").strip().lower())
  except ValueError:
    raise InvalidStatus(value) from None


@dataclass(frozen=True)
class Author:
  id: str
  label: str


@dataclass(frozen=True)
class RawSubmission:
  title: str
  description: str
  steps: str = ""
  expected_vs_actual: str = ""
  context: str = ""


@dataclass(frozen=True)
class Refinement:
  title: str
  description: str
  acceptance_criteria: tuple[str, ...] = ()


@dataclass(frozen=True)
class Activity:
  id: str
  workspace_id: str
  title: str
  description: str
  steps: str
  expected_vs_actual: str
  status: ActivityStatus
  author_id: str
  author_label: str
  created_at: datetime
  acceptance_criteria: tuple[str, ...] = ()
  context: str = ""
  sink_channel_id: str | None = None
  sink_message_id: str | None = None


@dataclass(frozen=True)
class Board:
  workspace_id: str
  channel_id: str | None = None
  channel_message_id: str | None = None
  webhook_message_id: str | None = None


class BoardPatch(BaseModel):
  """Partial board update. Only fields explicitly set are written; explicit ``None`` clears."""

  channel_id: str | None = None
  channel_message_id: str | None = None
  webhook_message_id: str | None = None

  def changes(self) -> dict[str, str | None]:
    return {name: getattr(self, name) for name in self.model_fields_set}


@dataclass(frozen=True)
class AvailableSinks:
  """Sinks reachable for one submission; ``channel_id`` is where the activity is posted."""

  channel_id: str | None = None
  webhook: bool = False

  def any(self) -> bool:
    return bool(self.channel_id) or self.webhook

