from __future__ import annotations

import logging
from datetime import timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from backlog_api.backlog.types import Activity, ActivityStatus, parse_status
from backlog_api.db import Database
from backlog_api.errors import ValidationError
from backlog_api.models import ActivityRow

logger = logging.getLogger(__name__)


def _row_to_activity(row: ActivityRow) -> Activity | None:
  try:
    status = parse_status(row.status)
  except ValidationError:
    logger.warning("skipping activity %s with unreadable status %r", row.id, row.status)
    return None
  criteria = row.acceptance_criteria if isinstance(row.acceptance_criteria, list) else []
  created_at = row.created_at
  if created_at.tzinfo is None:
    created_at = created_at.replace(tzinfo=timezone.utc)
  return Activity(
    id=row.id,
    workspace_id=row.workspace_id,
    sink_channel_id=row.sink_channel_id,
    sink_message_id=row.sink_message_id,
    title=row.title,
    description=row.description or "",
    acceptance_criteria=tuple(str(c) for c in criteria if str(c or "").strip()),
    steps=row.steps or "",
    expected_vs_actual=row.expected_vs_actual or "",
    context=row.context or "",
    status=status,
    author_id=row.author_id,
    author_label=row.author_label,
    created_at=created_at,
  )


def _apply_to_row(row: ActivityRow, a: Activity) -> None:
  row.workspace_id = a.workspace_id
  row.sink_channel_id = a.sink_channel_id
  row.sink_message_id = a.sink_message_id
  row.title = a.title
  row.description = a.description
  row.acceptance_criteria = list(a.acceptance_criteria)
  row.steps = a.steps
  row.expected_vs_actual = a.expected_vs_actual
  row.context = a.context
  row.status = a.status.value
  row.author_id = a.author_id
  row.author_label = a.author_label
  row.created_at = a.created_at


class ActivityStore:
  def __init__(self, db: Database) -> None:
    self._db = db

  async def get_all(self, workspace_id: str | None = None) -> list[Activity]:
    """All activities in creation order, optionally limited to one workspace."""
    async with self._db.session() as session:
      q = select(ActivityRow).order_by(ActivityRow.seq.asc())
      if workspace_id is not None:
        q = q.where(ActivityRow.workspace_id == workspace_id)
      res = await session.execute(q)
      rows = res.scalars().all()
    return [a for a in (_row_to_activity(r) for r in rows) if a is not None]

  async def get_by_id(self, activity_id: str, workspace_id: str) -> Activity | None:
    async with self._db.session() as session:
      row = await self._find(session, activity_id, workspace_id)
      return _row_to_activity(row) if row else None

  async def upsert(self, activity: Activity) -> Activity:
    async with self._db.lock:
      async with self._db.session() as session:
        row = await session.get(ActivityRow, activity.id)
        if row is None:
          seq_res = await session.execute(select(func.max(ActivityRow.seq)))
          max_seq = seq_res.scalar_one()
          row = ActivityRow(id=activity.id, seq=(max_seq + 1) if max_seq is not None else 0)
          session.add(row)
        elif row.workspace_id != activity.workspace_id:
          raise ValidationError("workspace of an activity cannot change", details={"activityId": activity.id})
        _apply_to_row(row, activity)
        await session.commit()
    return activity

  async def update_status(self, activity_id: str, workspace_id: str, status: ActivityStatus) -> Activity | None:
    async with self._db.lock:
      async with self._db.session() as session:
        row = await self._find(session, activity_id, workspace_id)
        if row is None:
          return None
        row.status = status.value
        await session.commit()
        return _row_to_activity(row)

  async def record_sink_message(self, activity: Activity, *, channel_id: str, message_id: str) -> Activity:
    """Attach the channel message to the stored activity and return the stored record.

    Only the two message columns are written, so a status change made while the
    message was being sent survives. The reference is set once; later calls keep it.
    """
    async with self._db.lock:
      async with self._db.session() as session:
        row = await self._find(session, activity.id, activity.workspace_id)
        if row is None:
          logger.warning("activity %s vanished before its channel message was recorded", activity.id)
          return activity
        if row.sink_message_id is None:
          row.sink_channel_id = channel_id
          row.sink_message_id = message_id
          await session.commit()
        stored = _row_to_activity(row)
    return stored or activity

  @staticmethod
  async def _find(session: AsyncSession, activity_id: str, workspace_id: str) -> ActivityRow | None:
    res = await session.execute(
      select(ActivityRow).where(ActivityRow.id == activity_id, ActivityRow.workspace_id == workspace_id)
    )
    return res.scalar_one_or_none()
