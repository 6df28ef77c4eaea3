from __future__ import annotations

import re
from dataclasses import dataclass

from backlog_api.backlog.types import ActivityStatus

CONTROL_PREFIX = "backlog"

_CONTROL_RE = re.compile(r"^backlog_(?P<activity_id>.+)_(?P<status>open|in_progress|completed)$")


@dataclass(frozen=True)
class ChangeStatusCommand:
  activity_id: str
  status: ActivityStatus
  kind: str = "change_status"


def encode_status_control(activity_id: str, status: ActivityStatus) -> str:
  return f"{CONTROL_PREFIX}_{activity_id}_{status.value}"


def decode_control(custom_id: str | None) -> ChangeStatusCommand | None:
  """Turn a control id from an interaction into a command; ``None`` if it is not ours."""
  m = _CONTROL_RE.match((custom_id or "").strip())
  if not m:
    return None
  return ChangeStatusCommand(activity_id=m.group("activity_id"), status=ActivityStatus(m.group("status")))
