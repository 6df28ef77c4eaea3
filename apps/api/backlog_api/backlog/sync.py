from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Literal

from backlog_api.backlog.activity_store import ActivityStore
from backlog_api.backlog.board_store import BoardStore
from backlog_api.backlog.payload import MessagePayload
from backlog_api.backlog.render import render_activity_message, render_board
from backlog_api.backlog.types import Activity, Board, BoardPatch
from backlog_api.metrics import RuntimeMetrics, runtime_metrics
from backlog_api.sinks.base import ChannelSink, FailureKind, SinkResult, WebhookSink

logger = logging.getLogger(__name__)

SinkName = Literal["channel", "webhook"]
SinkAction = Literal["created", "edited", "recreated", "skipped", "failed"]


@dataclass(frozen=True)
class SinkOutcome:
  sink: SinkName
  action: SinkAction
  message_id: str | None = None
  failure: FailureKind | None = None
  detail: str = ""

  @property
  def ok(self) -> bool:
    return self.action in ("created", "edited", "recreated")


@dataclass(frozen=True)
class ActivityPublishReport:
  activity: Activity
  channel: SinkOutcome
  webhook: SinkOutcome


@dataclass(frozen=True)
class BoardSyncReport:
  board: Board
  channel: SinkOutcome
  webhook: SinkOutcome


def _failed(sink: SinkName, result: SinkResult, message_id: str | None = None) -> SinkOutcome:
  return SinkOutcome(sink=sink, action="failed", message_id=message_id, failure=result.failure, detail=result.detail)


def _skipped(sink: SinkName, failure: FailureKind | None = None, detail: str = "") -> SinkOutcome:
  return SinkOutcome(sink=sink, action="skipped", failure=failure, detail=detail)


class SyncEngine:
  """Keeps sink messages in line with the rendered state.

  Board messages follow a two-state protocol per sink (no reference / has reference):
  edit when the recorded message is still there, create exactly once when it is not.
  Activity messages are created at submission and only edited afterwards.
  """

  def __init__(
    self,
    *,
    activities: ActivityStore,
    boards: BoardStore,
    channel: ChannelSink,
    webhook: WebhookSink,
    metrics: RuntimeMetrics | None = None,
  ) -> None:
    self.activities = activities
    self.boards = boards
    self.channel = channel
    self.webhook = webhook
    self.metrics = metrics or runtime_metrics
    self._locks: dict[tuple[str, str], asyncio.Lock] = {}

  def _lock(self, kind: str, key: str) -> asyncio.Lock:
    # one lock per board (workspace) and per activity message, separate from the store lock
    lock = self._locks.get((kind, key))
    if lock is None:
      lock = self._locks[(kind, key)] = asyncio.Lock()
    return lock

  def _observe(self, outcome: SinkOutcome, target: str) -> SinkOutcome:
    self.metrics.observe_sink(outcome.sink, target, outcome.action)
    return outcome

  # activity messages

  async def publish_activity(
    self, activity: Activity, payload: MessagePayload, *, channel_id: str | None
  ) -> ActivityPublishReport:
    channel_outcome, webhook_outcome = await asyncio.gather(
      self._publish_activity_channel(activity, payload, channel_id),
      self._publish_activity_webhook(activity, payload),
    )
    if channel_outcome.ok and channel_id and channel_outcome.message_id:
      async with self._lock("activity", activity.id):
        stored = await self.activities.record_sink_message(
          activity, channel_id=channel_id, message_id=channel_outcome.message_id
        )
        if stored.status != activity.status and stored.sink_message_id == channel_outcome.message_id:
          # status moved while the message was in flight; the posted copy shows the old one
          logger.info("activity %s changed to %s during publish; refreshing message", activity.id, stored.status.value)
          await self.channel.edit(channel_id, channel_outcome.message_id, render_activity_message(stored))
      activity = stored
    return ActivityPublishReport(
      activity=activity,
      channel=self._observe(channel_outcome, "activity"),
      webhook=self._observe(webhook_outcome, "activity"),
    )

  async def _publish_activity_channel(
    self, activity: Activity, payload: MessagePayload, channel_id: str | None
  ) -> SinkOutcome:
    if not channel_id:
      return _skipped("channel", detail="no channel for this submission")
    if not self.channel.enabled:
      return _skipped("channel", FailureKind.DISABLED)
    sent = await self.channel.send(channel_id, payload)
    if not sent.ok:
      logger.warning("activity %s: channel message not sent (%s)", activity.id, sent.failure)
      return _failed("channel", sent)
    return SinkOutcome(sink="channel", action="created", message_id=sent.message_id)

  async def _publish_activity_webhook(self, activity: Activity, payload: MessagePayload) -> SinkOutcome:
    if not self.webhook.enabled:
      return _skipped("webhook", FailureKind.DISABLED)
    created = await self.webhook.create(payload)
    if not created.ok:
      logger.warning("activity %s: webhook message not sent (%s)", activity.id, created.failure)
      return _failed("webhook", created)
    return SinkOutcome(sink="webhook", action="created", message_id=created.message_id)

  async def refresh_activity(self, activity: Activity) -> SinkOutcome:
    """Edit the activity's channel message in place.

    A message that can no longer be found is left alone; no replacement is posted.
    """
    async with self._lock("activity", activity.id):
      current = await self.activities.get_by_id(activity.id, activity.workspace_id) or activity
      outcome = await self._refresh_activity(current)
    return self._observe(outcome, "activity")

  async def _refresh_activity(self, activity: Activity) -> SinkOutcome:
    channel_id, message_id = activity.sink_channel_id, activity.sink_message_id
    if not channel_id or not message_id:
      return _skipped("channel", detail="activity has no channel message")
    if not self.channel.enabled:
      return _skipped("channel", FailureKind.DISABLED)
    probe = await self.channel.fetch(channel_id, message_id)
    if probe.not_found:
      logger.info("activity %s: channel message %s is gone; not recreating", activity.id, message_id)
      return _skipped("channel", FailureKind.NOT_FOUND, probe.detail)
    if not probe.ok:
      return _failed("channel", probe, message_id)
    edited = await self.channel.edit(channel_id, message_id, render_activity_message(activity))
    if not edited.ok:
      return _failed("channel", edited, message_id)
    return SinkOutcome(sink="channel", action="edited", message_id=message_id)

  # board messages

  async def reconcile_board(self, workspace_id: str, *, channel_id: str | None = None) -> BoardSyncReport:
    """Bring both board sinks up to date.

    ``channel_id`` is where a new channel board message goes when none is usable;
    it defaults to the channel recorded on the board. Passes for one workspace run
    one at a time, each rendering what is stored when it starts.
    """
    async with self._lock("board", workspace_id):
      return await self._reconcile_board(workspace_id, channel_id)

  async def move_board_channel(self, workspace_id: str, channel_id: str) -> BoardSyncReport:
    """Drop the board's channel message (best effort) and rebuild the board in ``channel_id``."""
    async with self._lock("board", workspace_id):
      board = await self.boards.get(workspace_id)
      if board and board.channel_id and board.channel_message_id and self.channel.enabled:
        removed = await self.channel.delete(board.channel_id, board.channel_message_id)
        if not removed.ok and not removed.not_found:
          logger.warning("board %s: old channel message not deleted (%s)", workspace_id, removed.failure)
      await self.boards.set(workspace_id, BoardPatch(channel_id=channel_id, channel_message_id=None))
      return await self._reconcile_board(workspace_id, channel_id)

  async def _reconcile_board(self, workspace_id: str, channel_id: str | None) -> BoardSyncReport:
    activities = await self.activities.get_all(workspace_id)
    payload = render_board(activities)
    board = await self.boards.get(workspace_id)
    if board is None:
      board = await self.boards.set(workspace_id, BoardPatch())

    channel_outcome, webhook_outcome = await asyncio.gather(
      self._reconcile_board_channel(board, payload, channel_id),
      self._reconcile_board_webhook(board, payload),
    )
    final = await self.boards.get(workspace_id) or board
    return BoardSyncReport(
      board=final,
      channel=self._observe(channel_outcome, "board"),
      webhook=self._observe(webhook_outcome, "board"),
    )

  async def _reconcile_board_channel(
    self, board: Board, payload: MessagePayload, channel_id: str | None
  ) -> SinkOutcome:
    if not self.channel.enabled:
      return _skipped("channel", FailureKind.DISABLED)
    workspace_id = board.workspace_id
    stale = False
    if board.channel_id and board.channel_message_id:
      probe = await self.channel.fetch(board.channel_id, board.channel_message_id)
      if probe.ok:
        edited = await self.channel.edit(board.channel_id, board.channel_message_id, payload)
        if edited.ok:
          return SinkOutcome(sink="channel", action="edited", message_id=board.channel_message_id)
        if not edited.not_found:
          logger.warning("board %s: channel edit failed (%s)", workspace_id, edited.failure)
          return _failed("channel", edited, board.channel_message_id)
      elif not probe.not_found:
        logger.warning("board %s: channel probe failed (%s); keeping reference", workspace_id, probe.failure)
        return _failed("channel", probe, board.channel_message_id)
      stale = True
      logger.info("board %s: channel message %s is gone; recreating", workspace_id, board.channel_message_id)

    target = channel_id or board.channel_id
    if not target:
      return _skipped("channel", detail="no board channel configured")
    sent = await self.channel.send(target, payload)
    if not sent.ok:
      logger.warning("board %s: channel create failed (%s)", workspace_id, sent.failure)
      if stale:
        await self.boards.set(workspace_id, BoardPatch(channel_message_id=None))
      return _failed("channel", sent)
    await self.boards.set(workspace_id, BoardPatch(channel_id=target, channel_message_id=sent.message_id))
    return SinkOutcome(sink="channel", action="recreated" if stale else "created", message_id=sent.message_id)

  async def _reconcile_board_webhook(self, board: Board, payload: MessagePayload) -> SinkOutcome:
    if not self.webhook.enabled:
      return _skipped("webhook", FailureKind.DISABLED)
    workspace_id = board.workspace_id
    stale = False
    if board.webhook_message_id:
      # the edit doubles as the probe: a 404 means the message is gone
      edited = await self.webhook.edit(board.webhook_message_id, payload)
      if edited.ok:
        return SinkOutcome(sink="webhook", action="edited", message_id=board.webhook_message_id)
      if not edited.not_found:
        logger.warning("board %s: webhook edit failed (%s)", workspace_id, edited.failure)
        return _failed("webhook", edited, board.webhook_message_id)
      stale = True
      logger.info("board %s: webhook message %s is gone; recreating", workspace_id, board.webhook_message_id)

    created = await self.webhook.create(payload)
    if not created.ok:
      logger.warning("board %s: webhook create failed (%s)", workspace_id, created.failure)
      if stale:
        await self.boards.set(workspace_id, BoardPatch(webhook_message_id=None))
      return _failed("webhook", created)
    await self.boards.set(workspace_id, BoardPatch(webhook_message_id=created.message_id))
    return SinkOutcome(sink="webhook", action="recreated" if stale else "created", message_id=created.message_id)
