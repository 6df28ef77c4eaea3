from __future__ import annotations

import logging
from typing import Any

from backlog_api.backlog.activity_store import ActivityStore
from backlog_api.backlog.types import Activity, parse_status
from backlog_api.errors import NotFound

logger = logging.getLogger(__name__)


class StatusStateMachine:
  """Flat lifecycle: any of open / in_progress / completed may move to any other.

  Only the stored status changes; rendering and sink updates belong to the caller.
  """

  def __init__(self, activities: ActivityStore) -> None:
    self._activities = activities

  async def apply_transition(self, activity_id: str, workspace_id: str, target: Any) -> Activity:
    status = parse_status(target)
    updated = await self._activities.update_status(activity_id, workspace_id, status)
    if updated is None:
      raise NotFound("Activity not found", details={"activityId": activity_id, "workspaceId": workspace_id})
    logger.info("activity %s in %s moved to %s", activity_id, workspace_id, status.value)
    return updated
