from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable

from backlog_api.ai.refinement import RefinementProvider, refine_best_effort
from backlog_api.backlog.activity_store import ActivityStore
from backlog_api.backlog.board_store import BoardStore
from backlog_api.backlog.interactions import ChangeStatusCommand
from backlog_api.backlog.render import render_activity
from backlog_api.backlog.status import StatusStateMachine
from backlog_api.backlog.sync import ActivityPublishReport, BoardSyncReport, SinkOutcome, SyncEngine
from backlog_api.backlog.types import (
  Activity,
  ActivityStatus,
  AvailableSinks,
  Author,
  Board,
  RawSubmission,
)
from backlog_api.errors import NotFound, SinkUnavailable, ValidationError
from backlog_api.models import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubmissionResult:
  activity: Activity
  refined: bool
  publish: ActivityPublishReport
  board: BoardSyncReport


@dataclass(frozen=True)
class StatusChangeResult:
  activity: Activity
  message: SinkOutcome
  board: BoardSyncReport


class BacklogService:
  """Inbound operations: submit, change status, rebuild and set up the board."""

  def __init__(
    self,
    *,
    activities: ActivityStore,
    boards: BoardStore,
    engine: SyncEngine,
    refiner: RefinementProvider,
    default_channel_id: str | None = None,
    refinement_timeout: float = 30.0,
    clock: Callable[[], datetime] = utcnow,
    id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
  ) -> None:
    self.activities = activities
    self.boards = boards
    self.engine = engine
    self.refiner = refiner
    self.state_machine = StatusStateMachine(activities)
    self.default_channel_id = default_channel_id
    self.refinement_timeout = refinement_timeout
    self._clock = clock
    self._id_factory = id_factory

  def available_sinks(self, channel_id: str | None = None) -> AvailableSinks:
    target = (channel_id or self.default_channel_id or "").strip() or None
    return AvailableSinks(
      channel_id=target if self.engine.channel.enabled else None,
      webhook=self.engine.webhook.enabled,
    )

  async def submit(self, author: Author, raw: RawSubmission, workspace_id: str, sinks: AvailableSinks) -> SubmissionResult:
    if not raw.title.strip() or not raw.description.strip():
      raise ValidationError("title and description are required")
    if not sinks.any():
      raise SinkUnavailable("Configure a backlog channel or a webhook URL to publish activities")

    refinement = await refine_best_effort(self.refiner, raw, timeout=self.refinement_timeout)
    activity = Activity(
      id=self._id_factory(),
      workspace_id=workspace_id,
      sink_channel_id=sinks.channel_id,
      sink_message_id=None,
      title=refinement.title if refinement else raw.title,
      description=refinement.description if refinement else raw.description,
      acceptance_criteria=refinement.acceptance_criteria if refinement else (),
      steps=raw.steps,
      expected_vs_actual=raw.expected_vs_actual,
      context=raw.context,
      status=ActivityStatus.OPEN,
      author_id=author.id,
      author_label=author.label,
      created_at=self._clock(),
    )
    await self.activities.upsert(activity)
    logger.info("activity %s submitted in %s (refined=%s)", activity.id, workspace_id, refinement is not None)

    payload = render_activity(
      author, raw, refinement, status=activity.status, activity_id=activity.id, created_at=activity.created_at
    )
    publish = await self.engine.publish_activity(activity, payload, channel_id=sinks.channel_id)
    board = await self.engine.reconcile_board(workspace_id, channel_id=sinks.channel_id)
    return SubmissionResult(activity=publish.activity, refined=refinement is not None, publish=publish, board=board)

  async def change_status(self, activity_id: str, workspace_id: str, target: Any) -> StatusChangeResult:
    # The stored status is final even when the message below cannot be updated.
    updated = await self.state_machine.apply_transition(activity_id, workspace_id, target)
    message = await self.engine.refresh_activity(updated)
    board = await self.engine.reconcile_board(workspace_id)
    return StatusChangeResult(activity=updated, message=message, board=board)

  async def apply_command(self, workspace_id: str, command: ChangeStatusCommand) -> StatusChangeResult:
    return await self.change_status(command.activity_id, workspace_id, command.status)

  async def rebuild_board(self, workspace_id: str, channel_id: str | None = None) -> BoardSyncReport:
    board = await self.boards.get(workspace_id)
    target = channel_id or (board.channel_id if board else None) or self.default_channel_id
    return await self.engine.reconcile_board(workspace_id, channel_id=target)

  async def setup_board(self, workspace_id: str, channel_id: str) -> BoardSyncReport:
    """Move the board's channel message to ``channel_id``, dropping the old one if possible."""
    if not channel_id.strip():
      raise ValidationError("channelId is required")
    return await self.engine.move_board_channel(workspace_id, channel_id)

  async def list_activities(self, workspace_id: str) -> list[Activity]:
    return await self.activities.get_all(workspace_id)

  async def get_activity(self, activity_id: str, workspace_id: str) -> Activity:
    activity = await self.activities.get_by_id(activity_id, workspace_id)
    if activity is None:
      raise NotFound("Activity not found", details={"activityId": activity_id, "workspaceId": workspace_id})
    return activity

  async def get_board(self, workspace_id: str) -> Board:
    return await self.boards.get(workspace_id) or Board(workspace_id=workspace_id)
