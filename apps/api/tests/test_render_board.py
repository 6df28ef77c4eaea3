from __future__ import annotations

from backlog_api.backlog.render import BOARD_DESCRIPTION_LIMIT, BOARD_TITLE, render_board, render_board_description
from backlog_api.backlog.types import ActivityStatus
from conftest import make_activity


def test_empty_board_shows_placeholders() -> None:
  assert render_board_description([]) == "\n".join(
    [
      "**📋 To Do (Open)**",
      "_None_",
      "",
      "**🔄 In Progress**",
      "_None_",
      "",
      "**✅ Completed**",
      "_None_",
    ]
  )


def test_partitions_keep_creation_order() -> None:
  items = [
    make_activity("a1", title="first open"),
    make_activity("a2", title="doing", status=ActivityStatus.IN_PROGRESS),
    make_activity("a3", title="second open"),
    make_activity("a4", title="done", status=ActivityStatus.COMPLETED),
  ]
  text = render_board_description(items)
  assert text == "\n".join(
    [
      "**📋 To Do (Open)**",
      "1. first open",
      "2. second open",
      "",
      "**🔄 In Progress**",
      "1. doing",
      "",
      "**✅ Completed**",
      "1. done",
    ]
  )


def test_description_is_hard_truncated() -> None:
  items = [make_activity(f"a{i}", title="t" * 90) for i in range(80)]
  text = render_board_description(items)
  assert len(text) == BOARD_DESCRIPTION_LIMIT
  assert text.startswith("**📋 To Do (Open)**\n1. ")


def test_render_is_deterministic() -> None:
  items = [make_activity("a1"), make_activity("a2", status=ActivityStatus.COMPLETED)]
  first = render_board(items).to_dict()
  second = render_board(list(items)).to_dict()
  assert first == second
  assert first["embeds"][0]["title"] == BOARD_TITLE
  assert first["components"] == []
  assert "timestamp" not in first["embeds"][0]
