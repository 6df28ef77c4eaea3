from __future__ import annotations

import asyncio
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
  sys.path.insert(0, str(ROOT))

from backlog_api.ai.refinement import DisabledRefinementProvider
from backlog_api.backlog.activity_store import ActivityStore
from backlog_api.backlog.board_store import BoardStore
from backlog_api.backlog.payload import MessagePayload
from backlog_api.backlog.service import BacklogService
from backlog_api.backlog.sync import SyncEngine
from backlog_api.backlog.types import Activity, ActivityStatus, RawSubmission, Refinement
from backlog_api.db import Database
from backlog_api.deps import get_backlog_service
from backlog_api.main import app
from backlog_api.metrics import RuntimeMetrics
from backlog_api.sinks.base import FailureKind, SinkResult


@pytest.fixture(scope="session")
def anyio_backend() -> str:
  return "asyncio"


class FakeChannelSink:
  """In-memory channel: messages keyed by (channel id, message id)."""

  def __init__(self, enabled: bool = True) -> None:
    self.enabled = enabled
    self.messages: dict[tuple[str, str], MessagePayload] = {}
    self.calls: list[tuple[str, str, str | None]] = []
    self.failing: set[str] = set()
    self.delay = 0.0
    self.sending = asyncio.Event()
    self._next = 1000

  def _fail(self, op: str) -> SinkResult | None:
    if op in self.failing:
      return SinkResult.failed(FailureKind.TRANSPORT, f"{op} failed")
    return None

  def drop(self, channel_id: str, message_id: str) -> None:
    self.messages.pop((channel_id, message_id), None)

  def ops(self, op: str) -> list[tuple[str, str, str | None]]:
    return [c for c in self.calls if c[0] == op]

  async def send(self, channel_id: str, payload: MessagePayload) -> SinkResult:
    self.calls.append(("send", channel_id, None))
    self.sending.set()
    if self.delay:
      await asyncio.sleep(self.delay)
    failed = self._fail("send")
    if failed:
      return failed
    self._next += 1
    message_id = f"m{self._next}"
    self.messages[(channel_id, message_id)] = payload
    return SinkResult.success(message_id)

  async def fetch(self, channel_id: str, message_id: str) -> SinkResult:
    self.calls.append(("fetch", channel_id, message_id))
    failed = self._fail("fetch")
    if failed:
      return failed
    if (channel_id, message_id) not in self.messages:
      return SinkResult.failed(FailureKind.NOT_FOUND)
    return SinkResult.success(message_id)

  async def edit(self, channel_id: str, message_id: str, payload: MessagePayload) -> SinkResult:
    self.calls.append(("edit", channel_id, message_id))
    if self.delay:
      await asyncio.sleep(self.delay)
    failed = self._fail("edit")
    if failed:
      return failed
    if (channel_id, message_id) not in self.messages:
      return SinkResult.failed(FailureKind.NOT_FOUND)
    self.messages[(channel_id, message_id)] = payload
    return SinkResult.success(message_id)

  async def delete(self, channel_id: str, message_id: str) -> SinkResult:
    self.calls.append(("delete", channel_id, message_id))
    if (channel_id, message_id) not in self.messages:
      return SinkResult.failed(FailureKind.NOT_FOUND)
    del self.messages[(channel_id, message_id)]
    return SinkResult.success(message_id)


class FakeWebhookSink:
  def __init__(self, enabled: bool = True) -> None:
    self.enabled = enabled
    self.messages: dict[str, MessagePayload] = {}
    self.calls: list[tuple[str, str | None]] = []
    self.failing: set[str] = set()
    self._next = 5000

  def ops(self, op: str) -> list[tuple[str, str | None]]:
    return [c for c in self.calls if c[0] == op]

  async def create(self, payload: MessagePayload) -> SinkResult:
    self.calls.append(("create", None))
    if "create" in self.failing:
      return SinkResult.failed(FailureKind.TRANSPORT, "create failed")
    self._next += 1
    message_id = f"w{self._next}"
    self.messages[message_id] = payload
    return SinkResult.success(message_id)

  async def edit(self, message_id: str, payload: MessagePayload) -> SinkResult:
    self.calls.append(("edit", message_id))
    if "edit" in self.failing:
      return SinkResult.failed(FailureKind.TRANSPORT, "edit failed")
    if message_id not in self.messages:
      return SinkResult.failed(FailureKind.NOT_FOUND)
    self.messages[message_id] = payload
    return SinkResult.success(message_id)


class FakeRefiner:
  def __init__(self, result: Refinement | None = None, error: Exception | None = None) -> None:
    self.result = result
    self.error = error
    self.seen: list[RawSubmission] = []

  async def refine(self, raw: RawSubmission) -> Refinement | None:
    self.seen.append(raw)
    if self.error:
      raise self.error
    return self.result


BASE_TIME = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_activity(
  activity_id: str = "a1",
  *,
  workspace_id: str = "ws1",
  title: str = "Kit not granted after linking",
  status: ActivityStatus = ActivityStatus.OPEN,
  minutes: int = 0,
  **overrides: Any,
) -> Activity:
  fields: dict[str, Any] = {
    "id": activity_id,
    "workspace_id": workspace_id,
    "title": title,
    "description": "Players do not receive the starter kit.",
    "steps": "1. Link account\n2. Join server",
    "expected_vs_actual": "Expected: kit | Actual: nothing",
    "status": status,
    "author_id": "u1",
    "author_label": "alice#0001",
    "created_at": BASE_TIME + timedelta(minutes=minutes),
  }
  fields.update(overrides)
  return Activity(**fields)


@pytest.fixture
async def db(tmp_path: Path) -> Database:
  database = Database(f"sqlite+aiosqlite:///{tmp_path / 'backlog.db'}")
  yield database
  await database.dispose()


@pytest.fixture
def activities(db: Database) -> ActivityStore:
  return ActivityStore(db)


@pytest.fixture
def boards(db: Database) -> BoardStore:
  return BoardStore(db)


@pytest.fixture
def channel() -> FakeChannelSink:
  return FakeChannelSink()


@pytest.fixture
def webhook() -> FakeWebhookSink:
  return FakeWebhookSink()


@pytest.fixture
def refiner() -> FakeRefiner:
  return FakeRefiner()


@pytest.fixture
def engine(activities: ActivityStore, boards: BoardStore, channel: FakeChannelSink, webhook: FakeWebhookSink) -> SyncEngine:
  return SyncEngine(activities=activities, boards=boards, channel=channel, webhook=webhook, metrics=RuntimeMetrics())


@pytest.fixture
def service(activities: ActivityStore, boards: BoardStore, engine: SyncEngine, refiner: FakeRefiner) -> BacklogService:
  return BacklogService(
    activities=activities,
    boards=boards,
    engine=engine,
    refiner=refiner,
    default_channel_id="c-backlog",
    refinement_timeout=2.0,
  )


@pytest.fixture
async def client(service: BacklogService) -> AsyncClient:
  app.dependency_overrides[get_backlog_service] = lambda: service
  transport = ASGITransport(app=app)
  async with AsyncClient(transport=transport, base_url="http://localhost") as c:
    yield c
  app.dependency_overrides.pop(get_backlog_service, None)


@pytest.fixture
def disabled_refiner() -> DisabledRefinementProvider:
  return DisabledRefinementProvider()
