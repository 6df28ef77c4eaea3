from __future__ import annotations

import asyncio

import pytest

from backlog_api.backlog.activity_store import ActivityStore
from backlog_api.backlog.board_store import BoardStore
from backlog_api.backlog.render import BOARD_TITLE, render_activity_message, render_board_description
from backlog_api.backlog.service import BacklogService
from backlog_api.backlog.sync import SyncEngine
from backlog_api.backlog.types import ActivityStatus, Author, RawSubmission
from conftest import FakeChannelSink, FakeRefiner, FakeWebhookSink, make_activity

AUTHOR = Author(id="u1", label="alice#0001")


def _raw(title: str) -> RawSubmission:
  return RawSubmission(title=title, description="Kit is not granted.", steps="1. Link", expected_vs_actual="-")


def _board_messages(channel: FakeChannelSink) -> list[tuple[str, str]]:
  return [key for key, payload in channel.messages.items() if payload.embeds[0].title == BOARD_TITLE]


async def _assert_board_matches_store(
  workspace_id: str, activities: ActivityStore, boards: BoardStore, channel: FakeChannelSink, webhook: FakeWebhookSink
) -> None:
  board = await boards.get(workspace_id)
  expected = render_board_description(await activities.get_all(workspace_id))
  assert _board_messages(channel) == [(board.channel_id, board.channel_message_id)]
  assert channel.messages[(board.channel_id, board.channel_message_id)].embeds[0].description == expected
  assert webhook.messages[board.webhook_message_id].embeds[0].description == expected


@pytest.mark.anyio
async def test_parallel_first_passes_create_a_single_board_message(
  engine: SyncEngine, activities: ActivityStore, boards: BoardStore, channel: FakeChannelSink, webhook: FakeWebhookSink
) -> None:
  await activities.upsert(make_activity("a1"))
  channel.delay = 0.05

  first, second = await asyncio.gather(
    engine.reconcile_board("ws1", channel_id="c1"),
    engine.reconcile_board("ws1", channel_id="c1"),
  )

  assert sorted([first.channel.action, second.channel.action]) == ["created", "edited"]
  assert len(channel.ops("send")) == 1
  assert len(webhook.ops("create")) == 1
  await _assert_board_matches_store("ws1", activities, boards, channel, webhook)


@pytest.mark.anyio
async def test_later_pass_shows_activities_added_during_a_slow_pass(
  engine: SyncEngine, activities: ActivityStore, boards: BoardStore, channel: FakeChannelSink, webhook: FakeWebhookSink
) -> None:
  await activities.upsert(make_activity("a1", title="first"))
  await engine.reconcile_board("ws1", channel_id="c1")
  channel.delay = 0.05

  async def add_and_sync():  # type: ignore[no-untyped-def]
    await asyncio.sleep(0.01)
    await activities.upsert(make_activity("a2", title="second", minutes=1))
    return await engine.reconcile_board("ws1")

  await asyncio.gather(engine.reconcile_board("ws1"), add_and_sync())

  await _assert_board_matches_store("ws1", activities, boards, channel, webhook)
  key = _board_messages(channel)[0]
  assert "2. second" in channel.messages[key].embeds[0].description


@pytest.mark.anyio
async def test_status_change_while_activity_message_is_sending_is_kept(
  activities: ActivityStore, boards: BoardStore, engine: SyncEngine, channel: FakeChannelSink, webhook: FakeWebhookSink
) -> None:
  service = BacklogService(
    activities=activities,
    boards=boards,
    engine=engine,
    refiner=FakeRefiner(),
    default_channel_id="c1",
    id_factory=lambda: "x1",
  )
  channel.delay = 0.05

  async def complete_during_send():  # type: ignore[no-untyped-def]
    await channel.sending.wait()
    return await service.change_status("x1", "ws1", "completed")

  submitted, _ = await asyncio.gather(
    service.submit(AUTHOR, _raw("Kit missing"), "ws1", service.available_sinks()),
    complete_during_send(),
  )

  stored = await activities.get_by_id("x1", "ws1")
  assert stored.status == ActivityStatus.COMPLETED
  assert stored.sink_message_id == submitted.publish.channel.message_id
  message = channel.messages[("c1", stored.sink_message_id)]
  assert message.embeds[0].title == "✅ Completed · Kit missing"
  await _assert_board_matches_store("ws1", activities, boards, channel, webhook)


@pytest.mark.anyio
async def test_parallel_submissions_share_one_board(
  service: BacklogService,
  activities: ActivityStore,
  boards: BoardStore,
  channel: FakeChannelSink,
  webhook: FakeWebhookSink,
) -> None:
  channel.delay = 0.02

  results = await asyncio.gather(
    *(service.submit(AUTHOR, _raw(f"report {i}"), "ws1", service.available_sinks()) for i in range(3))
  )

  stored = await activities.get_all("ws1")
  assert sorted(a.title for a in stored) == ["report 0", "report 1", "report 2"]
  assert all(a.sink_message_id for a in stored)
  assert {r.activity.id for r in results} == {a.id for a in stored}
  # three activity messages plus one board message per sink
  assert len(webhook.ops("create")) == 4
  await _assert_board_matches_store("ws1", activities, boards, channel, webhook)


@pytest.mark.anyio
async def test_parallel_status_changes_leave_message_matching_store(
  service: BacklogService,
  activities: ActivityStore,
  boards: BoardStore,
  channel: FakeChannelSink,
  webhook: FakeWebhookSink,
) -> None:
  submitted = await service.submit(AUTHOR, _raw("Kit missing"), "ws1", service.available_sinks())
  activity_id = submitted.activity.id
  channel.delay = 0.02

  await asyncio.gather(
    service.change_status(activity_id, "ws1", "in_progress"),
    service.change_status(activity_id, "ws1", "completed"),
    service.change_status(activity_id, "ws1", "open"),
  )

  stored = await activities.get_by_id(activity_id, "ws1")
  shown = channel.messages[("c-backlog", stored.sink_message_id)].embeds[0]
  assert shown.title == render_activity_message(stored).embeds[0].title
  await _assert_board_matches_store("ws1", activities, boards, channel, webhook)
