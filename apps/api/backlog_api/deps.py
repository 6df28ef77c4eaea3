from __future__ import annotations

import secrets

from fastapi import HTTPException, Request, status

from backlog_api.ai.refinement import get_refinement_provider
from backlog_api.backlog.activity_store import ActivityStore
from backlog_api.backlog.board_store import BoardStore
from backlog_api.backlog.service import BacklogService
from backlog_api.backlog.sync import SyncEngine
from backlog_api.config import Settings, settings
from backlog_api.db import Database
from backlog_api.sinks.channel import channel_sink_from_settings
from backlog_api.sinks.webhook import webhook_sink_from_settings


def build_service(s: Settings, db: Database | None = None) -> BacklogService:
  """Wire stores, sinks and the refinement provider once per process."""
  db = db or Database(s.database_url)
  activities = ActivityStore(db)
  boards = BoardStore(db)
  engine = SyncEngine(
    activities=activities,
    boards=boards,
    channel=channel_sink_from_settings(s),
    webhook=webhook_sink_from_settings(s),
  )
  return BacklogService(
    activities=activities,
    boards=boards,
    engine=engine,
    refiner=get_refinement_provider(s),
    default_channel_id=s.backlog_channel_id,
    refinement_timeout=s.refinement_timeout_seconds,
  )


def get_backlog_service(request: Request) -> BacklogService:
  service = getattr(request.app.state, "backlog_service", None)
  if service is None:
    service = build_service(settings)
    request.app.state.backlog_service = service
  return service


def require_api_token(request: Request) -> None:
  expected = (settings.api_token or "").strip()
  if not expected:
    return
  auth = request.headers.get("authorization")
  if not auth or not auth.lower().startswith("bearer "):
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")
  provided = auth.split(" ", 1)[1].strip()
  if not secrets.compare_digest(provided, expected):
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid bearer token")
