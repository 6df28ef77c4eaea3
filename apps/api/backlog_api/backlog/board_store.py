from __future__ import annotations

import logging

from backlog_api.backlog.types import Board, BoardPatch
from backlog_api.db import Database
from backlog_api.models import BoardRow

logger = logging.getLogger(__name__)

_FIELDS = ("channel_id", "channel_message_id", "webhook_message_id")


def _row_to_board(row: BoardRow) -> Board:
  return Board(
    workspace_id=row.workspace_id,
    channel_id=row.channel_id,
    channel_message_id=row.channel_message_id,
    webhook_message_id=row.webhook_message_id,
  )


class BoardStore:
  def __init__(self, db: Database) -> None:
    self._db = db

  async def get(self, workspace_id: str) -> Board | None:
    async with self._db.session() as session:
      row = await session.get(BoardRow, workspace_id)
      return _row_to_board(row) if row else None

  async def set(self, workspace_id: str, patch: BoardPatch) -> Board:
    """Merge ``patch`` onto the stored board; fields absent from the patch keep their value."""
    changes = patch.changes()
    async with self._db.lock:
      async with self._db.session() as session:
        row = await session.get(BoardRow, workspace_id)
        if row is None:
          row = BoardRow(workspace_id=workspace_id)
          session.add(row)
        for name in _FIELDS:
          if name in changes:
            setattr(row, name, changes[name])
        await session.commit()
        board = _row_to_board(row)
    logger.debug("board %s refs updated: %s", workspace_id, sorted(changes))
    return board
